"""
Archive Service

Connects the archive codecs to the store: commits the plan produced by
import_apkg() and loads the deck subtree handed to export_apkg().

The codecs are synchronous (zipfile, sqlite3) and run in the default
executor so a large archive does not block the event loop.

Usage:
    service = ApkgService(db_session, owner="local")
    result = await service.import_archive(upload_bytes)
    data, filename = await service.export_deck(deck_id)
"""

from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Optional
import asyncio
import logging
import re

import aiofiles
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.config.scheduling import SchedulingWeights, load_scheduling_weights
from flashdeck.config.settings import settings
from flashdeck.db.models import CardRecord, DeckRecord
from flashdeck.models.domain import utc_now
from flashdeck.services.apkg.exporter import export_apkg
from flashdeck.services.apkg.importer import ArchiveSource, ImportResult, import_apkg
from flashdeck.services.decks.deck_service import DeckService

logger = logging.getLogger(__name__)


class ApkgService:
    """
    Service for archive import and export.

    Provides:
    - Import: decode, persist decks and cards, save media files
    - Export: encode a deck with all of its descendants
    """

    def __init__(
        self,
        db: AsyncSession,
        owner: str,
        weights: Optional[SchedulingWeights] = None,
        media_dir: Optional[str] = None,
    ):
        self.db = db
        self.owner = owner
        self.weights = weights or load_scheduling_weights()
        self.media_dir = Path(media_dir or settings.MEDIA_DIR)
        self.decks = DeckService(db, owner)

    async def import_archive(
        self, source: ArchiveSource, now: Optional[datetime] = None
    ) -> ImportResult:
        """
        Import an archive into the owner's decks.

        Raises:
            UnsupportedFormat: If the archive cannot be read
        """
        now = now or utc_now()
        hierarchy = await self.decks.load_hierarchy()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            partial(
                import_apkg,
                source,
                owner=self.owner,
                now=now,
                weights=self.weights,
                existing=hierarchy.decks(),
            ),
        )

        for deck in result.decks:
            self.db.add(DeckRecord.from_domain(deck))
        # Parents must exist before cards reference them
        await self.db.flush()
        for card in result.cards:
            self.db.add(CardRecord.from_domain(card))
        await self.db.flush()

        await self._save_media(result)

        logger.info(
            f"Imported archive for {self.owner}: {result.decks_imported} decks, "
            f"{result.cards_imported} cards, {result.media_imported} media files"
        )
        return result

    async def _save_media(self, result: ImportResult) -> None:
        if not result.media:
            return
        self.media_dir.mkdir(parents=True, exist_ok=True)
        saved: dict[str, bytes] = {}
        for filename, data in result.media.items():
            try:
                async with aiofiles.open(self.media_dir / filename, "wb") as out_file:
                    await out_file.write(data)
                saved[filename] = data
            except OSError as e:
                logger.error(f"Failed to save media file {filename}: {e}")
                result.errors.append(f"Failed to save media file {filename!r}: {e}")
        result.media = saved

    async def export_deck(
        self, deck_id: str, now: Optional[datetime] = None
    ) -> tuple[bytes, str]:
        """
        Export a deck and its descendants.

        Returns:
            Tuple of archive bytes and a download filename

        Raises:
            NotFoundError: If the deck doesn't exist
            ExportEncodingError: If any card cannot be encoded
        """
        now = now or utc_now()
        hierarchy = await self.decks.load_hierarchy()
        root = hierarchy.get(deck_id)
        subtree = hierarchy.subtree_ids(deck_id)
        decks = [hierarchy.get(d) for d in subtree]
        cards = await self.decks.load_cards(subtree)

        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, export_apkg, decks, cards, now)
        logger.info(f"Exported deck {deck_id} ({root.deck_path}): {len(cards)} cards")
        return data, export_filename(root.name)


def export_filename(deck_name: str) -> str:
    """Download filename for a deck export."""
    safe = re.sub(r"[^\w\-]+", "_", deck_name).strip("_") or "deck"
    return f"{safe}.apkg"
