"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
"""

import io
import json
import os
import sqlite3
import sys
import tempfile
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from dotenv import load_dotenv

# Add the project root to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Settings are read once at import time; point them at throwaway locations
# before anything imports flashdeck.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MEDIA_DIR"] = str(Path(tempfile.gettempdir()) / "flashdeck_test_media")
os.environ["DEBUG"] = "false"

from flashdeck.config.scheduling import SchedulingWeights  # noqa: E402
from flashdeck.enums.learning import CardState  # noqa: E402
from flashdeck.models.domain import Card, Deck  # noqa: E402
from flashdeck.services.apkg.schema import SCHEMA_SQL  # noqa: E402


# ============================================================================
# Clock and Weights
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed review clock."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def weights() -> SchedulingWeights:
    """Default weight set."""
    return SchedulingWeights()


# ============================================================================
# Card and Deck Factories
# ============================================================================


@pytest.fixture
def make_card(now) -> Callable[..., Card]:
    """
    Factory for cards.

    new cards by default; pass state=CardState.REVIEW plus scheduling fields
    for studied cards.
    """

    def _make(**overrides: Any) -> Card:
        values: dict[str, Any] = {
            "id": "card-1",
            "deck_id": "deck-1",
            "front": "Q",
            "back": "A",
            "due": now,
        }
        values.update(overrides)
        return Card(**values)

    return _make


@pytest.fixture
def review_card(make_card, now) -> Card:
    """Review card with S=10, D=5, last reviewed 10 days ago."""
    return make_card(
        state=CardState.REVIEW,
        stability=10.0,
        difficulty=5.0,
        due=now,
        last_review=now - timedelta(days=10),
        reps=5,
        scheduled_days=10,
    )


@pytest.fixture
def learning_card(make_card, now) -> Card:
    """Card in its first learning step."""
    return make_card(
        state=CardState.LEARNING,
        stability=3.2,
        difficulty=5.0,
        due=now,
        last_review=now - timedelta(minutes=10),
        reps=1,
    )


def make_deck(
    deck_id: str,
    name: str,
    parent: Optional[Deck] = None,
    owner: str = "local",
    description: Optional[str] = None,
) -> Deck:
    """Deck with a path consistent with its parent."""
    path = f"{parent.deck_path}::{name}" if parent else name
    return Deck(
        id=deck_id,
        owner=owner,
        name=name,
        deck_path=path,
        parent_id=parent.id if parent else None,
        description=description,
    )


# ============================================================================
# Archive Builder
# ============================================================================


def build_apkg(
    decks: dict[str, dict],
    notes: list[tuple[int, str, str]],
    cards: list[dict],
    crt: int = 1_700_000_000,
    media: Optional[dict[str, bytes]] = None,
    collection_name: str = "collection.anki2",
    skip_tables: tuple[str, ...] = (),
    raw_decks_json: Optional[str] = None,
) -> bytes:
    """
    Build an .apkg archive in memory.

    Args:
        decks: The ``col.decks`` registry
        notes: (id, guid, flds) rows
        cards: Card rows; missing columns default to a new card
        crt: Collection creation time in seconds
        media: Media file name → contents
        collection_name: Zip member name of the collection database
        skip_tables: Tables to drop after creating the schema
        raw_decks_json: Verbatim ``col.decks`` value (for malformed input)
    """
    with tempfile.TemporaryDirectory() as tmp:
        db_path = Path(tmp) / "collection.db"
        conn = sqlite3.connect(db_path)
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT INTO col VALUES (1, ?, 0, 0, 11, 0, 0, 0, '{}', '{}', ?, '{}', '{}')",
            (crt, raw_decks_json if raw_decks_json is not None else json.dumps(decks)),
        )
        for note_id, guid, flds in notes:
            conn.execute(
                "INSERT INTO notes VALUES (?, ?, 1, 0, -1, '', ?, '', 0, 0, '')",
                (note_id, guid, flds),
            )
        for index, row in enumerate(cards):
            values = {
                "id": 1000 + index,
                "nid": notes[0][0] if notes else 1,
                "did": 1,
                "ord": 0,
                "type": 0,
                "queue": 0,
                "due": index,
                "ivl": 0,
                "factor": 0,
                "reps": 0,
                "lapses": 0,
            }
            values.update(row)
            conn.execute(
                "INSERT INTO cards (id, nid, did, ord, mod, usn, type, queue, due, ivl, "
                "factor, reps, lapses, left, odue, odid, flags, data) "
                "VALUES (:id, :nid, :did, :ord, 0, -1, :type, :queue, :due, :ivl, "
                ":factor, :reps, :lapses, 0, 0, 0, 0, '')",
                values,
            )
        for table in skip_tables:
            conn.execute(f"DROP TABLE {table}")
        conn.commit()
        conn.close()

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.write(db_path, arcname=collection_name)
            registry = {}
            for index, (filename, data) in enumerate((media or {}).items()):
                zf.writestr(str(index), data)
                registry[str(index)] = filename
            zf.writestr("media", json.dumps(registry))
        return buffer.getvalue()


@pytest.fixture
def apkg_builder() -> Callable[..., bytes]:
    """Expose build_apkg() to tests as a fixture."""
    return build_apkg


def read_collection(data: bytes) -> sqlite3.Connection:
    """Open the collection database of an exported archive for assertions."""
    archive = zipfile.ZipFile(io.BytesIO(data))
    blob = archive.read("collection.anki2")
    path = Path(tempfile.mkdtemp()) / "collection.db"
    path.write_bytes(blob)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn
