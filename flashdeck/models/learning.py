"""
Review API Models (Pydantic)

Request/response schemas for rating cards and previewing the next interval.

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    The scheduling core works on flashdeck.models.domain.Card.

    Data flows: API Request → Pydantic → Service → domain Card → SQLAlchemy
"""

from datetime import datetime
from typing import Optional

from pydantic import AwareDatetime, Field

from flashdeck.enums.learning import CardState
from flashdeck.models.base import StrictRequest, StrictResponse
from flashdeck.models.domain import Card, ReviewLogEntry


class ReviewRequest(StrictRequest):
    """
    Rate one card.

    ``rating`` is validated by the scheduler rather than here, so that an
    out-of-range value surfaces as the invalid_rating error code.
    """

    card_id: str = Field(..., description="Card to rate")
    rating: int = Field(..., description="1=Again, 2=Hard, 3=Good, 4=Easy")
    review_time: Optional[AwareDatetime] = Field(
        None, description="When the review happened (defaults to server time)"
    )


class CardResponse(StrictResponse):
    """Card with its scheduling state."""

    id: str
    deck_id: str
    front: str
    back: str
    state: CardState
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    reps: int
    lapses: int
    last_review: Optional[datetime] = None

    @classmethod
    def from_domain(cls, card: Card) -> "CardResponse":
        return cls.model_validate(card)


class ReviewResponse(StrictResponse):
    """Outcome of a review: the updated card and the recorded log entry id."""

    card: CardResponse
    review_log_id: Optional[int] = None
    state_before: CardState
    scheduled_days: int
    next_review: datetime

    @classmethod
    def from_domain(cls, card: Card, entry: ReviewLogEntry) -> "ReviewResponse":
        return cls(
            card=CardResponse.from_domain(card),
            review_log_id=entry.id,
            state_before=entry.state_before,
            scheduled_days=entry.scheduled_days,
            next_review=card.due,
        )


class IntervalPreview(StrictResponse):
    """Where a card would land for one rating."""

    rating: int
    label: str
    seconds: int = Field(..., description="Time until due if rated this way")


class PreviewResponse(StrictResponse):
    """Next interval for every rating, used to label the rating buttons."""

    card_id: str
    retrievability: float = Field(..., ge=0.0, le=1.0)
    intervals: list[IntervalPreview]
