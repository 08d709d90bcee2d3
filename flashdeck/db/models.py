"""
SQLAlchemy Database Models

Tables:
- decks: Deck forest, one row per deck with a materialized path
- cards: Flashcards with their scheduling state
- review_logs: Append-only history of graded reviews

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The pure core works on the frozen dataclasses in flashdeck/models/domain.py;
    each record converts to and from its domain entity.

    Data flows: Service Layer → domain entity → SQLAlchemy → Database
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flashdeck.db.base import Base
from flashdeck.db.types import UTCDateTime
from flashdeck.enums.learning import CardState, Rating
from flashdeck.models.domain import Card, Deck, ReviewLogEntry, utc_now


# ===========================================
# Decks
# ===========================================


class DeckRecord(Base):
    """
    A deck in an owner's deck forest.

    Attributes:
        id: Primary key, UUID string.
        owner: Owner identifier. Decks of different owners never share a tree.
        name: Last path segment. Never empty, never contains "::".
        deck_path: Ancestor names joined by "::", ending with name.
        parent_id: Parent deck, null for roots. Deleting a parent cascades.
        description: Free text, carried through archive import/export.
        created_at: Row creation time.
    """

    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    deck_path: Mapped[str] = mapped_column(Text)
    parent_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    cards: Mapped[List["CardRecord"]] = relationship(
        back_populates="deck", passive_deletes=True
    )

    def to_domain(self) -> Deck:
        return Deck(
            id=self.id,
            owner=self.owner,
            name=self.name,
            deck_path=self.deck_path,
            parent_id=self.parent_id,
            description=self.description,
        )

    @classmethod
    def from_domain(cls, deck: Deck) -> "DeckRecord":
        return cls(
            id=deck.id,
            owner=deck.owner,
            name=deck.name,
            deck_path=deck.deck_path,
            parent_id=deck.parent_id,
            description=deck.description,
        )

    def apply(self, deck: Deck) -> None:
        """Copy mutable fields from an updated domain deck."""
        self.name = deck.name
        self.deck_path = deck.deck_path
        self.parent_id = deck.parent_id
        self.description = deck.description


# ===========================================
# Cards
# ===========================================


class CardRecord(Base):
    """
    A flashcard and its scheduling state.

    Attributes:
        id: Primary key, UUID string.
        deck_id: Owning deck. Deleting the deck deletes the card.
        front: Prompt text.
        back: Answer text.

        Scheduling State:
        due: When the card is next eligible for review.
        stability: Days until recall probability decays to the target.
        difficulty: Intrinsic hardness in [1, 10].
        elapsed_days: Days between the last two reviews.
        scheduled_days: Interval chosen at the last review.
        reps: Number of reviews.
        lapses: Times the card was forgotten in Review.
        state: new, learning, review or relearning.
        last_review: Most recent review time, null for new cards.
    """

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    deck_id: Mapped[str] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    front: Mapped[str] = mapped_column(Text)
    back: Mapped[str] = mapped_column(Text, default="")

    # Scheduling state
    due: Mapped[datetime] = mapped_column(UTCDateTime)
    stability: Mapped[float] = mapped_column(Float, default=0.0)
    difficulty: Mapped[float] = mapped_column(Float, default=5.0)
    elapsed_days: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_days: Mapped[int] = mapped_column(Integer, default=0)
    reps: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)
    state: Mapped[str] = mapped_column(String(20), default=CardState.NEW.value)
    last_review: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    deck: Mapped["DeckRecord"] = relationship(back_populates="cards")

    __table_args__ = (Index("ix_cards_deck_due", "deck_id", "due"),)

    def to_domain(self) -> Card:
        return Card(
            id=self.id,
            deck_id=self.deck_id,
            front=self.front,
            back=self.back,
            due=self.due,
            stability=self.stability,
            difficulty=self.difficulty,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.scheduled_days,
            reps=self.reps,
            lapses=self.lapses,
            state=CardState(self.state),
            last_review=self.last_review,
        )

    @classmethod
    def from_domain(cls, card: Card) -> "CardRecord":
        record = cls(id=card.id, deck_id=card.deck_id)
        record.apply(card)
        return record

    def apply(self, card: Card) -> None:
        """Copy content and scheduling state from an updated domain card."""
        self.front = card.front
        self.back = card.back
        self.due = card.due
        self.stability = card.stability
        self.difficulty = card.difficulty
        self.elapsed_days = card.elapsed_days
        self.scheduled_days = card.scheduled_days
        self.reps = card.reps
        self.lapses = card.lapses
        self.state = card.state.value
        self.last_review = card.last_review


# ===========================================
# Review Logs
# ===========================================


class ReviewLogRecord(Base):
    """
    One graded review. Rows are only inserted; they disappear only when
    the card (or its deck) is deleted.
    """

    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"), index=True
    )
    rating: Mapped[int] = mapped_column(Integer)
    review_time: Mapped[datetime] = mapped_column(UTCDateTime)

    # State before the review
    state_before: Mapped[str] = mapped_column(String(20))
    stability_before: Mapped[float] = mapped_column(Float)
    difficulty_before: Mapped[float] = mapped_column(Float)
    due_before: Mapped[datetime] = mapped_column(UTCDateTime)
    elapsed_days: Mapped[float] = mapped_column(Float)
    reps_before: Mapped[int] = mapped_column(Integer)
    lapses_before: Mapped[int] = mapped_column(Integer)
    last_review_before: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    # Result
    state_after: Mapped[str] = mapped_column(String(20))
    stability_after: Mapped[float] = mapped_column(Float)
    difficulty_after: Mapped[float] = mapped_column(Float)
    due_after: Mapped[datetime] = mapped_column(UTCDateTime)
    scheduled_days: Mapped[int] = mapped_column(Integer)

    @classmethod
    def from_domain(cls, entry: ReviewLogEntry) -> "ReviewLogRecord":
        return cls(
            card_id=entry.card_id,
            rating=entry.rating.value,
            review_time=entry.review_time,
            state_before=entry.state_before.value,
            stability_before=entry.stability_before,
            difficulty_before=entry.difficulty_before,
            due_before=entry.due_before,
            elapsed_days=entry.elapsed_days,
            reps_before=entry.reps_before,
            lapses_before=entry.lapses_before,
            last_review_before=entry.last_review_before,
            state_after=entry.state_after.value,
            stability_after=entry.stability_after,
            difficulty_after=entry.difficulty_after,
            due_after=entry.due_after,
            scheduled_days=entry.scheduled_days,
        )

    def to_domain(self) -> ReviewLogEntry:
        return ReviewLogEntry(
            id=self.id,
            card_id=self.card_id,
            rating=Rating(self.rating),
            review_time=self.review_time,
            state_before=CardState(self.state_before),
            state_after=CardState(self.state_after),
            stability_before=self.stability_before,
            stability_after=self.stability_after,
            difficulty_before=self.difficulty_before,
            difficulty_after=self.difficulty_after,
            due_before=self.due_before,
            due_after=self.due_after,
            scheduled_days=self.scheduled_days,
            elapsed_days=self.elapsed_days,
            reps_before=self.reps_before,
            lapses_before=self.lapses_before,
            last_review_before=self.last_review_before,
        )
