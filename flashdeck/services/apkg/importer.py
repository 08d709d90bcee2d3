"""
Archive Importer

Decodes an .apkg archive into decks and cards with seeded scheduling state.

Archive layout:
    collection.anki21 | collection.anki2   SQLite collection (col, notes, cards)
    media                                  JSON {"0": "picture.png", ...}
    0, 1, ...                              media file contents

The collection's ``cards.due`` column means different things depending on
the card: a queue position for new cards, epoch seconds for intraday
learning, and a day offset from ``col.crt`` for reviews. It is resolved to
an absolute datetime here and nowhere else.

Problems with individual notes or cards never abort the import; they are
collected in ImportResult.errors (item skipped) or ImportResult.warnings
(item imported with a fix-up). Only an unreadable archive raises
UnsupportedFormat.

Usage:
    result = import_apkg(upload_bytes, owner="local", now=utc_now())
    print(result.decks_imported, result.cards_imported, result.errors)
"""

import io
import json
import logging
import os
import shutil
import sqlite3
import tempfile
import zipfile
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Union

from flashdeck.config.scheduling import SchedulingWeights
from flashdeck.enums.archive import ArchiveCardType, ArchiveQueue
from flashdeck.enums.learning import CardState
from flashdeck.middleware.error_handling import InvalidDeckName, UnsupportedFormat
from flashdeck.models.archive import ArchiveCard, ArchiveDeck, ArchiveNote
from flashdeck.models.domain import Card, Deck, new_id
from flashdeck.services.apkg.schema import (
    COLLECTION_NAMES,
    DEFAULT_DECK_ID,
    MEDIA_NAME,
    REQUIRED_TABLES,
)
from flashdeck.services.decks.hierarchy import DeckHierarchy, join_path, split_path
from flashdeck.services.scheduling.engine import new_card_defaults

logger = logging.getLogger(__name__)

ArchiveSource = Union[bytes, str, os.PathLike, BinaryIO]

SECONDS_PER_DAY = 86400

_CARD_COLUMNS = "id, nid, did, ord, type, queue, due, ivl, factor, reps, lapses"

# Raised by rows whose values have the wrong type or encoding; such a row is
# recorded in ImportResult.errors and skipped.
_ITEM_ERRORS = (TypeError, ValueError, OverflowError, UnicodeDecodeError)


@dataclass
class ImportResult:
    """
    Decoded archive, ready to be persisted.

    Attributes:
        decks: Decks created by this import (parents before children).
            Decks that already existed at the same path are reused, not listed.
        cards: Cards with seeded scheduling state.
        media: Media file name → contents.
        errors: Items that were skipped.
        warnings: Items imported with a fix-up.
    """

    decks: list[Deck] = field(default_factory=list)
    cards: list[Card] = field(default_factory=list)
    media: dict[str, bytes] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def decks_imported(self) -> int:
        return len(self.decks)

    @property
    def cards_imported(self) -> int:
        return len(self.cards)

    @property
    def media_imported(self) -> int:
        return len(self.media)


# ===========================================
# Container
# ===========================================


def _open_zip(source: ArchiveSource) -> zipfile.ZipFile:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        return zipfile.ZipFile(source)
    except zipfile.BadZipFile:
        raise UnsupportedFormat("Archive is not a zip file")


def _collection_member(archive: zipfile.ZipFile) -> str:
    names = set(archive.namelist())
    for candidate in COLLECTION_NAMES:
        if candidate in names:
            return candidate
    raise UnsupportedFormat(
        "No collection database found in archive",
        details={"expected": list(COLLECTION_NAMES)},
    )


def _read_media(archive: zipfile.ZipFile, result: ImportResult) -> None:
    names = set(archive.namelist())
    if MEDIA_NAME not in names:
        return

    try:
        registry = json.loads(archive.read(MEDIA_NAME).decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        result.warnings.append(f"Media registry is malformed and was ignored: {e}")
        return
    if not isinstance(registry, dict):
        result.warnings.append("Media registry is not an object and was ignored")
        return

    for member, filename in registry.items():
        safe_name = os.path.basename(str(filename))
        if not safe_name or safe_name != filename:
            result.warnings.append(f"Media entry {member} has unsafe name {filename!r}")
            continue
        if member not in names:
            result.warnings.append(f"Media file {filename!r} is missing from the archive")
            continue
        result.media[safe_name] = archive.read(member)


# ===========================================
# Collection
# ===========================================


def _check_tables(conn: sqlite3.Connection) -> None:
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    except sqlite3.DatabaseError as e:
        raise UnsupportedFormat(f"Collection is not a readable database: {e}")
    missing = REQUIRED_TABLES - {row[0] for row in rows}
    if missing:
        raise UnsupportedFormat(
            "Collection database is missing required tables",
            details={"missing": sorted(missing)},
        )


def _read_registry(conn: sqlite3.Connection, result: ImportResult) -> tuple[int, list[ArchiveDeck]]:
    row = conn.execute("SELECT crt, decks FROM col LIMIT 1").fetchone()
    if row is None:
        raise UnsupportedFormat("Collection has no col row")
    crt, decks_json = row

    try:
        registry = json.loads(decks_json)
    except (TypeError, json.JSONDecodeError) as e:
        raise UnsupportedFormat(f"Deck registry is not valid JSON: {e}")
    if not isinstance(registry, dict):
        raise UnsupportedFormat("Deck registry is not a JSON object")

    decks: list[ArchiveDeck] = []
    for key, entry in registry.items():
        try:
            deck_id = int(key)
        except ValueError:
            result.errors.append(f"Deck registry key {key!r} is not an id")
            continue
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            result.errors.append(f"Deck {deck_id} has no name")
            continue
        decks.append(ArchiveDeck(id=deck_id, name=entry["name"], desc=entry.get("desc") or ""))
    return int(crt or 0), decks


def _plan_decks(
    archive_decks: list[ArchiveDeck],
    referenced: set[int],
    hierarchy: DeckHierarchy,
    owner: str,
    result: ImportResult,
) -> dict[int, str]:
    """Create decks parents-first; returns archive deck id → deck id."""
    mapping: dict[int, str] = {}
    ordered = sorted(archive_decks, key=lambda d: (len(split_path(d.name)), d.name, d.id))
    for archive_deck in ordered:
        if archive_deck.id == DEFAULT_DECK_ID and archive_deck.id not in referenced:
            continue
        parts = split_path(archive_deck.name)
        if not parts:
            result.errors.append(f"Deck {archive_deck.id} has an empty name")
            continue
        try:
            deck, created = hierarchy.ensure_path(
                join_path(parts), owner=owner, description=archive_deck.desc or None
            )
        except InvalidDeckName as e:
            result.errors.append(f"Deck {archive_deck.name!r} could not be imported: {e.message}")
            continue
        result.decks.extend(created)
        mapping[archive_deck.id] = deck.id
    return mapping


def _from_day_offset(crt: int, days: int) -> datetime:
    return datetime.fromtimestamp(crt, timezone.utc) + timedelta(days=days)


def _from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, timezone.utc)


def resolve_due(card: ArchiveCard, card_type: ArchiveCardType, crt: int, now: datetime) -> datetime:
    """
    Absolute due time of an archive card.

    The queue decides the encoding when the card is on an active queue;
    buried and suspended cards fall back to the encoding of their type.
    """
    if card_type == ArchiveCardType.NEW:
        return now
    if card.queue in (ArchiveQueue.LEARNING, ArchiveQueue.PREVIEW):
        return _from_epoch(card.due)
    if card.queue in (ArchiveQueue.REVIEW, ArchiveQueue.DAY_LEARNING):
        return _from_day_offset(crt, card.due)
    if card_type == ArchiveCardType.LEARNING:
        return _from_epoch(card.due)
    return _from_day_offset(crt, card.due)


def _convert_card(
    archive_card: ArchiveCard,
    note: ArchiveNote,
    deck_id: str,
    crt: int,
    now: datetime,
    defaults: dict[str, float],
    result: ImportResult,
) -> Optional[Card]:
    try:
        card_type = ArchiveCardType(archive_card.type)
    except ValueError:
        result.errors.append(f"Card {archive_card.id} has unknown type {archive_card.type}")
        return None

    try:
        due = resolve_due(archive_card, card_type, crt, now)
    except (OverflowError, OSError, TypeError, ValueError) as e:
        result.errors.append(f"Card {archive_card.id} has an unreadable due value: {e}")
        return None

    state = card_type.to_state()
    fields = note.fields
    front = fields[0] if fields else ""
    if len(fields) < 2:
        result.warnings.append(f"Note {note.id} has no back field; using an empty back")
        back = ""
    else:
        back = fields[1]

    reps = max(0, archive_card.reps)
    scheduled_days = 0
    last_review = None
    if state == CardState.NEW:
        if reps:
            result.warnings.append(
                f"Card {archive_card.id} is new but has {reps} reps; reset to 0"
            )
        reps = 0
    else:
        if state in (CardState.REVIEW, CardState.RELEARNING):
            scheduled_days = max(0, archive_card.interval_days)
        last_review = min(now, due - timedelta(days=scheduled_days))

    return Card(
        id=new_id(),
        deck_id=deck_id,
        front=front,
        back=back,
        due=due,
        stability=defaults["stability"],
        difficulty=defaults["difficulty"],
        scheduled_days=scheduled_days,
        reps=reps,
        lapses=max(0, archive_card.lapses),
        state=state,
        last_review=last_review,
    )


def _read_card(
    row: tuple,
    notes: dict[int, ArchiveNote],
    unreadable_notes: set[int],
    notes_with_cards: set[int],
    deck_map: dict[int, str],
    crt: int,
    now: datetime,
    defaults: dict[str, float],
    result: ImportResult,
) -> Optional[Card]:
    archive_card = ArchiveCard(*row)
    if archive_card.note_id in unreadable_notes:
        result.errors.append(
            f"Card {archive_card.id} skipped: note {archive_card.note_id} could not be read"
        )
        return None
    note = notes.get(archive_card.note_id)
    if note is None:
        result.errors.append(
            f"Card {archive_card.id} references missing note {archive_card.note_id}"
        )
        return None
    notes_with_cards.add(note.id)

    deck_id = deck_map.get(archive_card.deck_id)
    if deck_id is None:
        result.errors.append(
            f"Card {archive_card.id} references unknown deck {archive_card.deck_id}"
        )
        return None

    return _convert_card(archive_card, note, deck_id, crt, now, defaults, result)


def _read_collection(
    db_path: Path,
    *,
    owner: str,
    now: datetime,
    weights: Optional[SchedulingWeights],
    existing: Iterable[Deck],
    result: ImportResult,
) -> None:
    with closing(sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)) as conn:
        _check_tables(conn)
        try:
            crt, archive_decks = _read_registry(conn, result)
            referenced = {row[0] for row in conn.execute("SELECT DISTINCT did FROM cards")}

            hierarchy = DeckHierarchy(existing)
            deck_map = _plan_decks(archive_decks, referenced, hierarchy, owner, result)

            # flds is read as a BLOB so a badly encoded note fails alone
            notes: dict[int, ArchiveNote] = {}
            unreadable_notes: set[int] = set()
            for note_id, guid, flds in conn.execute(
                "SELECT id, guid, CAST(flds AS BLOB) FROM notes"
            ):
                try:
                    notes[note_id] = ArchiveNote.from_row(note_id, guid, flds)
                except _ITEM_ERRORS as e:
                    unreadable_notes.add(note_id)
                    result.errors.append(f"Note {note_id} could not be read: {e}")

            defaults = new_card_defaults(weights)
            notes_with_cards: set[int] = set()
            for row in conn.execute(f"SELECT {_CARD_COLUMNS} FROM cards ORDER BY id"):
                try:
                    card = _read_card(
                        row, notes, unreadable_notes, notes_with_cards,
                        deck_map, crt, now, defaults, result,
                    )
                except _ITEM_ERRORS as e:
                    result.errors.append(f"Card {row[0]} could not be read: {e}")
                    continue
                if card is not None:
                    result.cards.append(card)
        except sqlite3.DatabaseError as e:
            raise UnsupportedFormat(f"Collection database could not be read: {e}")

    for note_id in notes.keys() - notes_with_cards:
        result.errors.append(f"Note {note_id} has no cards")


def import_apkg(
    source: ArchiveSource,
    *,
    owner: str,
    now: datetime,
    weights: Optional[SchedulingWeights] = None,
    existing: Iterable[Deck] = (),
) -> ImportResult:
    """
    Decode an archive.

    Args:
        source: Archive bytes, a path, or a binary file object
        owner: Owner of the created decks
        now: Import time; new cards become due at this instant
        weights: Weights used to seed new-card memory state
        existing: The owner's current decks; archive decks at the same path
            are merged into them instead of being duplicated

    Returns:
        ImportResult with the decks and cards to persist

    Raises:
        UnsupportedFormat: If the archive or its collection cannot be read
    """
    result = ImportResult()

    with _open_zip(source) as archive:
        member = _collection_member(archive)
        _read_media(archive, result)

        with tempfile.TemporaryDirectory(prefix="flashdeck-import-") as tmp:
            db_path = Path(tmp) / "collection.db"
            with archive.open(member) as src, open(db_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            _read_collection(
                db_path,
                owner=owner,
                now=now,
                weights=weights,
                existing=existing,
                result=result,
            )

    logger.info(
        f"Decoded archive: {result.decks_imported} decks, {result.cards_imported} cards, "
        f"{result.media_imported} media, {len(result.errors)} errors, "
        f"{len(result.warnings)} warnings"
    )
    return result
