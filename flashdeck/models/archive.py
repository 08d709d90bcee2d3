"""
Transient Archive Entities

Rows read from (or written to) an .apkg collection database. They exist
only while an archive is being converted and are never persisted.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

FIELD_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class ArchiveDeck:
    """Entry of the ``col.decks`` registry."""

    id: int
    name: str
    desc: str = ""


@dataclass(frozen=True)
class ArchiveNote:
    """Row of the ``notes`` table with ``flds`` split into fields."""

    id: int
    guid: str
    fields: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(
        cls, note_id: int, guid: str, flds: Optional[Union[str, bytes]]
    ) -> "ArchiveNote":
        """
        Build a note from its row.

        Raises:
            UnicodeDecodeError: If a BLOB ``flds`` is not UTF-8
            TypeError: If ``flds`` is neither text nor a BLOB
        """
        if isinstance(flds, bytes):
            flds = flds.decode("utf-8")
        elif flds is not None and not isinstance(flds, str):
            raise TypeError(f"note fields must be text, got {type(flds).__name__}")
        return cls(id=note_id, guid=guid, fields=tuple((flds or "").split(FIELD_SEPARATOR)))


@dataclass(frozen=True)
class ArchiveCard:
    """Row of the ``cards`` table."""

    id: int
    note_id: int
    deck_id: int
    ordinal: int
    type: int
    queue: int
    due: int
    interval_days: int
    factor: int
    reps: int
    lapses: int
