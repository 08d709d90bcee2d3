"""
Review Service

Service layer that applies the scheduling engine to persisted cards.

The card row is locked (SELECT ... FOR UPDATE) for the duration of the
request transaction so two concurrent ratings of the same card are applied
one after the other instead of overwriting each other.

Cards are scoped to one owner through their deck; a card in another owner's
deck is reported as not found.

Usage:
    from flashdeck.services.scheduling import ReviewService

    service = ReviewService(db_session, owner="local")
    card, log = await service.review_card(card_id, Rating.GOOD)
"""

from datetime import datetime, timedelta
from typing import Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.config.scheduling import SchedulingWeights, load_scheduling_weights
from flashdeck.db.models import CardRecord, DeckRecord
from flashdeck.enums.learning import Rating
from flashdeck.middleware.error_handling import NotFoundError
from flashdeck.models.domain import Card, ReviewLogEntry, utc_now
from flashdeck.services.scheduling import engine
from flashdeck.services.scheduling.review_log import ReviewLogRepository

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Service for rating cards.

    Provides:
    - Review processing with row locking and review logging
    - Interval preview for the rating buttons
    """

    def __init__(
        self,
        db: AsyncSession,
        owner: str,
        weights: Optional[SchedulingWeights] = None,
    ):
        """
        Initialize the review service.

        Args:
            db: Async database session
            owner: Owner whose cards may be read and rated
            weights: Scheduling weights (defaults to config/default.yaml)
        """
        self.db = db
        self.owner = owner
        self.weights = weights or load_scheduling_weights()
        self.review_log = ReviewLogRepository(db)

    async def _load(self, card_id: str, lock: bool = False) -> CardRecord:
        query = (
            select(CardRecord)
            .join(DeckRecord, CardRecord.deck_id == DeckRecord.id)
            .where(CardRecord.id == card_id, DeckRecord.owner == self.owner)
        )
        if lock:
            query = query.with_for_update(of=CardRecord)
        result = await self.db.execute(query)
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(f"Card {card_id} not found")
        return record

    async def get_card(self, card_id: str) -> Card:
        return (await self._load(card_id)).to_domain()

    async def review_card(
        self,
        card_id: str,
        rating: Union[Rating, int],
        review_time: Optional[datetime] = None,
    ) -> tuple[Card, ReviewLogEntry]:
        """
        Rate a card and persist the new scheduling state.

        Args:
            card_id: Card to rate
            rating: 1-4 (Again/Hard/Good/Easy)
            review_time: Review timestamp (defaults to now)

        Returns:
            Tuple of updated card and the recorded log entry

        Raises:
            NotFoundError: If the card doesn't exist or belongs to another owner
            InvalidRating: If rating is outside 1-4
            InvalidState: If the stored card is inconsistent
        """
        review_time = review_time or utc_now()
        record = await self._load(card_id, lock=True)

        updated, entry = engine.schedule(record.to_domain(), rating, review_time, self.weights)

        record.apply(updated)
        entry = await self.review_log.record(entry)

        logger.info(
            f"Reviewed card {card_id}: rating={entry.rating.name}, "
            f"{entry.state_before.value} -> {updated.state.value}, "
            f"next due {updated.due.isoformat()}"
        )
        return updated, entry

    async def preview(
        self, card_id: str, now: Optional[datetime] = None
    ) -> tuple[Card, float, dict[Rating, timedelta]]:
        """
        Show what each rating would do without changing the card.

        Returns:
            Tuple of the card, its current retrievability and the time until
            due for every rating
        """
        now = now or utc_now()
        card = await self.get_card(card_id)
        return (
            card,
            engine.retrievability(card, now, self.weights),
            engine.preview(card, now, self.weights),
        )
