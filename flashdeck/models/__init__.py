"""Domain entities and API schemas."""

from flashdeck.models.domain import (
    DECK_PATH_SEPARATOR,
    Card,
    Deck,
    DeckNode,
    DeckStats,
    ReviewLogEntry,
    new_id,
    utc_now,
)

__all__ = [
    "DECK_PATH_SEPARATOR",
    "Card",
    "Deck",
    "DeckNode",
    "DeckStats",
    "ReviewLogEntry",
    "new_id",
    "utc_now",
]
