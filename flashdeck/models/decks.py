"""
Deck API Models (Pydantic)

Request/response schemas for the deck tree, deck CRUD and subtree stats.
"""

from typing import Optional

from pydantic import Field

from flashdeck.models.base import StrictRequest, StrictResponse
from flashdeck.models.domain import Deck, DeckNode, DeckStats


class DeckCreate(StrictRequest):
    """Create a deck, optionally under an existing parent."""

    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[str] = None
    description: Optional[str] = None


class DeckRename(StrictRequest):
    name: str = Field(..., min_length=1, max_length=255)


class DeckMove(StrictRequest):
    """Move a deck; a null parent_id makes it a root."""

    parent_id: Optional[str] = None


class DeckResponse(StrictResponse):
    id: str
    name: str
    deck_path: str
    parent_id: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_domain(cls, deck: Deck) -> "DeckResponse":
        return cls.model_validate(deck)


class DeckStatsResponse(StrictResponse):
    """Card counts over a deck's whole subtree."""

    deck_id: str
    total: int
    new: int
    learning: int
    review: int
    due: int
    progress: int = Field(..., description="Percent of cards neither new nor due")

    @classmethod
    def from_domain(cls, deck_id: str, stats: DeckStats) -> "DeckStatsResponse":
        return cls(
            deck_id=deck_id,
            total=stats.total,
            new=stats.new,
            learning=stats.learning,
            review=stats.review,
            due=stats.due,
            progress=stats.progress,
        )


class DeckTreeNode(StrictResponse):
    """A deck with its children, as rendered in the sidebar."""

    id: str
    name: str
    deck_path: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    children: list["DeckTreeNode"] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: DeckNode) -> "DeckTreeNode":
        deck = node.deck
        return cls(
            id=deck.id,
            name=deck.name,
            deck_path=deck.deck_path,
            parent_id=deck.parent_id,
            description=deck.description,
            children=[cls.from_node(child) for child in node.children],
        )
