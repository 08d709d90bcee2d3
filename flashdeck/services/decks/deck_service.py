"""
Deck Service

Persistence-backed deck operations. Each call loads the owner's decks into
a DeckHierarchy, applies the change there, and writes back only the rows
that changed.

Usage:
    from flashdeck.services.decks import DeckService

    service = DeckService(db_session, owner="local")
    deck = await service.create_deck("Spanish", parent_id=None)
    await service.rename_deck(deck.id, "Español")
"""

from datetime import datetime
from typing import Iterable, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.db.models import CardRecord, DeckRecord, ReviewLogRecord
from flashdeck.models.domain import Card, Deck, DeckNode, DeckStats, utc_now
from flashdeck.services.decks.hierarchy import DeckHierarchy

logger = logging.getLogger(__name__)


class DeckService:
    """
    Service for one owner's deck forest.

    Provides:
    - Deck tree listing
    - Create, rename, move and cascading delete
    - Subtree card statistics
    """

    def __init__(self, db: AsyncSession, owner: str):
        self.db = db
        self.owner = owner

    async def load_hierarchy(self) -> DeckHierarchy:
        result = await self.db.execute(
            select(DeckRecord).where(DeckRecord.owner == self.owner)
        )
        return DeckHierarchy(record.to_domain() for record in result.scalars().all())

    async def _write_back(self, decks: Iterable[Deck]) -> None:
        for deck in decks:
            record = await self.db.get(DeckRecord, deck.id)
            if record is None:
                self.db.add(DeckRecord.from_domain(deck))
            else:
                record.apply(deck)
        await self.db.flush()

    async def list_tree(self) -> list[DeckNode]:
        """Get the owner's decks as a forest ordered by name."""
        hierarchy = await self.load_hierarchy()
        return hierarchy.tree()

    async def create_deck(
        self,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Deck:
        """
        Create a deck.

        Raises:
            InvalidDeckName: If the name is empty, contains "::" or is taken
            NotFoundError: If the parent doesn't exist
        """
        hierarchy = await self.load_hierarchy()
        deck = hierarchy.add(
            name, parent_id, owner=self.owner, description=description
        )
        await self._write_back([deck])
        logger.info(f"Created deck {deck.id} ({deck.deck_path})")
        return deck

    async def rename_deck(self, deck_id: str, name: str) -> Deck:
        """Rename a deck; descendant paths are rewritten in the same transaction."""
        hierarchy = await self.load_hierarchy()
        changed = hierarchy.rename(deck_id, name)
        await self._write_back(changed)
        logger.info(f"Renamed deck {deck_id}; {len(changed)} paths updated")
        return hierarchy.get(deck_id)

    async def move_deck(self, deck_id: str, parent_id: Optional[str]) -> Deck:
        """
        Move a deck under a new parent (None for the root level).

        Raises:
            CycleDetected: If the target is the deck itself or a descendant
        """
        hierarchy = await self.load_hierarchy()
        changed = hierarchy.reparent(deck_id, parent_id)
        await self._write_back(changed)
        logger.info(f"Moved deck {deck_id} under {parent_id}; {len(changed)} paths updated")
        return hierarchy.get(deck_id)

    async def delete_deck(self, deck_id: str) -> list[str]:
        """
        Delete a deck with its subtree, cards and review logs.

        Rows are deleted explicitly, children first, so the cascade does not
        depend on the backend enforcing foreign keys.

        Returns:
            Ids of the deleted decks
        """
        hierarchy = await self.load_hierarchy()
        removed = hierarchy.remove(deck_id)

        card_ids = select(CardRecord.id).where(CardRecord.deck_id.in_(removed))
        await self.db.execute(
            delete(ReviewLogRecord).where(ReviewLogRecord.card_id.in_(card_ids))
        )
        await self.db.execute(delete(CardRecord).where(CardRecord.deck_id.in_(removed)))
        # Deepest decks first keeps parent FKs satisfied at every step
        for removed_id in reversed(removed):
            await self.db.execute(delete(DeckRecord).where(DeckRecord.id == removed_id))
        await self.db.flush()

        logger.info(f"Deleted deck {deck_id} and {len(removed) - 1} descendants")
        return removed

    async def load_cards(self, deck_ids: Iterable[str]) -> list[Card]:
        """Cards belonging to any of the given decks."""
        ids = list(deck_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(CardRecord).where(CardRecord.deck_id.in_(ids))
        )
        return [record.to_domain() for record in result.scalars().all()]

    async def get_stats(self, deck_id: str, now: Optional[datetime] = None) -> DeckStats:
        """Card counts over the deck's whole subtree."""
        now = now or utc_now()
        hierarchy = await self.load_hierarchy()
        subtree = hierarchy.subtree_ids(deck_id)
        cards = await self.load_cards(subtree)
        return hierarchy.compute_stats(deck_id, cards, now)
