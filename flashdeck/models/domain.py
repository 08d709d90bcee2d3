"""
Domain Entities

Plain immutable dataclasses passed between the pure core components
(scheduling engine, deck hierarchy, archive codecs). They carry no session
or ORM state, so every core operation is a function of its arguments.

ARCHITECTURE NOTE:
    SQLAlchemy rows live in flashdeck/db/models.py and API schemas in
    flashdeck/models/learning.py and flashdeck/models/decks.py.

    Data flows: DB row → domain entity → core function → domain entity → DB row

All datetimes are timezone-aware UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid

from flashdeck.enums.learning import CardState, Rating

DECK_PATH_SEPARATOR = "::"


def new_id() -> str:
    """Mint an entity id."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Card:
    """
    A flashcard with its scheduling state.

    Invariant: state is NEW exactly when reps == 0 and last_review is None.

    Attributes:
        id: Card identifier.
        deck_id: Owning deck; the card is deleted with it.
        front: Prompt text, opaque to the scheduler.
        back: Answer text, opaque to the scheduler.
        due: When the card is next eligible. New cards are due immediately.
        stability: Days until recall probability decays to the target.
        difficulty: Intrinsic hardness in [1, 10].
        elapsed_days: Days between the last two reviews (informational).
        scheduled_days: Interval chosen at the last review (informational).
        reps: Number of reviews.
        lapses: Number of times a Review card was forgotten.
        state: Position in the scheduling state machine.
        last_review: Time of the most recent review, None if never reviewed.
    """

    id: str
    deck_id: str
    front: str
    back: str
    due: datetime
    stability: float = 0.0
    difficulty: float = 5.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    last_review: Optional[datetime] = None

    def is_new(self) -> bool:
        """Check if this card has never been reviewed."""
        return self.state == CardState.NEW


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    Immutable record of one graded review.

    Holds the card's state before the review and the key values after it,
    so analytics can replay the scheduling history without the card row.
    ``id`` is assigned by the review log sink when the entry is recorded.
    """

    card_id: str
    rating: Rating
    review_time: datetime
    state_before: CardState
    state_after: CardState
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    due_before: datetime
    due_after: datetime
    scheduled_days: int
    elapsed_days: float
    reps_before: int
    lapses_before: int
    last_review_before: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class Deck:
    """
    A deck in the deck forest.

    Invariant: deck_path == parent.deck_path + "::" + name, or name for roots.
    """

    id: str
    owner: str
    name: str
    deck_path: str
    parent_id: Optional[str] = None
    description: Optional[str] = None


@dataclass
class DeckNode:
    """A deck with its ordered children, as produced by build_tree()."""

    deck: Deck
    children: list["DeckNode"] = field(default_factory=list)

    def walk(self):
        """Yield this node and its descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class DeckStats:
    """
    Card counts aggregated over a deck's full subtree.

    ``due`` counts non-New cards whose due time has passed; ``progress`` is
    the rounded percentage of cards that are neither new nor due.
    """

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    due: int = 0
    progress: int = 0
