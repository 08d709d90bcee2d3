"""
Archive Exporter

Encodes decks and cards into an .apkg archive readable by the desktop
flashcard reader.

Encoding:
    - Deck registry: the built-in Default deck (id 1), then one entry per
      exported deck with sequential ids from 2, named by its full "::" path
    - One note and one card per card; note and card ids come from a counter
      seeded with the export time in milliseconds
    - New cards: type/queue 0, due = queue position (the note id)
    - Studied cards: type/queue 2, due = interval in days from export time

Exports are all-or-nothing: the first card that cannot be encoded raises
ExportEncodingError and no archive is produced.

Usage:
    data = export_apkg(decks, cards, now=utc_now())
"""

import io
import json
import logging
import sqlite3
import tempfile
import zipfile
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Iterable

from flashdeck.enums.archive import ArchiveCardType, ArchiveQueue
from flashdeck.middleware.error_handling import ExportEncodingError
from flashdeck.models.archive import FIELD_SEPARATOR
from flashdeck.models.domain import Card, Deck
from flashdeck.services.apkg.schema import (
    BASIC_MODEL_ID,
    DEFAULT_DECK_ID,
    DEFAULT_DECK_NAME,
    DEFAULT_FACTOR,
    EXPORT_COLLECTION_NAME,
    MEDIA_NAME,
    SCHEMA_SQL,
    SCHEMA_VERSION,
    basic_model,
    checksum,
    collection_conf,
    deck_entry,
    deck_options,
)

logger = logging.getLogger(__name__)

_NOTE_INSERT = (
    "INSERT INTO notes (id, guid, mid, mod, usn, tags, flds, sfld, csum, flags, data) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)
_CARD_INSERT = (
    "INSERT INTO cards (id, nid, did, ord, mod, usn, type, queue, due, ivl, factor, "
    "reps, lapses, left, odue, odid, flags, data) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def build_deck_registry(decks: Iterable[Deck], mod: int) -> tuple[dict[str, dict], dict[str, int]]:
    """
    Assign archive ids to decks.

    Returns:
        Tuple of the ``col.decks`` registry and a deck id → archive id map
    """
    registry = {str(DEFAULT_DECK_ID): deck_entry(DEFAULT_DECK_ID, DEFAULT_DECK_NAME, mod)}
    archive_ids: dict[str, int] = {}
    next_id = DEFAULT_DECK_ID + 1
    for deck in sorted(decks, key=lambda d: (d.deck_path, d.id)):
        archive_ids[deck.id] = next_id
        registry[str(next_id)] = deck_entry(next_id, deck.deck_path, mod, deck.description or "")
        next_id += 1
    return registry, archive_ids


def _encode_fields(card: Card) -> tuple[str, int]:
    for side, text in (("front", card.front), ("back", card.back)):
        if FIELD_SEPARATOR in text:
            raise ExportEncodingError(
                f"Card {card.id} {side} contains the field separator",
                details={"card_id": card.id},
            )
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ExportEncodingError(
                f"Card {card.id} {side} cannot be encoded: {e}",
                details={"card_id": card.id},
            )
    return card.front + FIELD_SEPARATOR + card.back, checksum(card.front)


def _write_collection(
    conn: sqlite3.Connection, decks: list[Deck], cards: Iterable[Card], now: datetime
) -> int:
    crt = int(now.timestamp())
    now_ms = int(now.timestamp() * 1000)

    registry, archive_ids = build_deck_registry(decks, crt)
    conn.executescript(SCHEMA_SQL)
    conn.execute(
        "INSERT INTO col (id, crt, mod, scm, ver, dty, usn, ls, conf, models, decks, dconf, tags) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            1,
            crt,
            now_ms,
            now_ms,
            SCHEMA_VERSION,
            0,
            -1,
            0,
            json.dumps(collection_conf()),
            json.dumps(basic_model(crt)),
            json.dumps(registry),
            json.dumps(deck_options(crt)),
            json.dumps({}),
        ),
    )

    counter = now_ms
    written = 0
    for card in cards:
        archive_deck_id = archive_ids.get(card.deck_id)
        if archive_deck_id is None:
            raise ExportEncodingError(
                f"Card {card.id} belongs to deck {card.deck_id} outside the export",
                details={"card_id": card.id, "deck_id": card.deck_id},
            )
        flds, csum = _encode_fields(card)

        note_id = counter
        counter += 1
        conn.execute(
            _NOTE_INSERT,
            (note_id, card.id, BASIC_MODEL_ID, crt, -1, "", flds, card.front, csum, 0, ""),
        )

        if card.is_new():
            card_type, queue, due, factor = ArchiveCardType.NEW, ArchiveQueue.NEW, note_id, 0
        else:
            card_type, queue = ArchiveCardType.REVIEW, ArchiveQueue.REVIEW
            due, factor = card.scheduled_days, DEFAULT_FACTOR

        conn.execute(
            _CARD_INSERT,
            (
                note_id,
                note_id,
                archive_deck_id,
                0,
                crt,
                -1,
                int(card_type),
                int(queue),
                due,
                card.scheduled_days,
                factor,
                card.reps,
                card.lapses,
                0,
                0,
                0,
                0,
                "",
            ),
        )
        written += 1

    conn.commit()
    return written


def export_apkg(decks: Iterable[Deck], cards: Iterable[Card], now: datetime) -> bytes:
    """
    Encode decks and cards as an .apkg archive.

    Args:
        decks: Decks to include; every card's deck must be among them
        cards: Cards to include
        now: Export time; seeds collection creation time and archive ids

    Returns:
        The archive as bytes

    Raises:
        ExportEncodingError: If any card cannot be encoded
    """
    decks = list(decks)
    with tempfile.TemporaryDirectory(prefix="flashdeck-export-") as tmp:
        db_path = Path(tmp) / EXPORT_COLLECTION_NAME
        try:
            with closing(sqlite3.connect(db_path)) as conn:
                written = _write_collection(conn, decks, cards, now)
        except sqlite3.Error as e:
            raise ExportEncodingError(f"Collection database could not be written: {e}")

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.write(db_path, arcname=EXPORT_COLLECTION_NAME)
            zf.writestr(MEDIA_NAME, json.dumps({}))

    logger.info(f"Exported {len(decks)} decks and {written} cards")
    return buffer.getvalue()
