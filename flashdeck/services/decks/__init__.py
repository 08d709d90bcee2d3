"""Deck hierarchy and deck persistence."""

from flashdeck.services.decks.deck_service import DeckService
from flashdeck.services.decks.hierarchy import (
    DeckHierarchy,
    build_tree,
    join_path,
    split_path,
    summarize,
    validate_name,
)

__all__ = [
    "DeckHierarchy",
    "DeckService",
    "build_tree",
    "join_path",
    "split_path",
    "summarize",
    "validate_name",
]
