"""
Review API Router

Endpoints for rating cards.

Endpoints:
- POST /api/review/rate - Submit a card review rating
- GET /api/review/preview - Next interval for every rating
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.db.base import get_db
from flashdeck.dependencies import get_owner
from flashdeck.models.learning import (
    IntervalPreview,
    PreviewResponse,
    ReviewRequest,
    ReviewResponse,
)
from flashdeck.services.scheduling import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/review", tags=["review"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_review_service(
    db: AsyncSession = Depends(get_db),
    owner: str = Depends(get_owner),
) -> ReviewService:
    """Get review service for the request owner."""
    return ReviewService(db, owner)


# ===========================================
# Review Endpoints
# ===========================================


@router.post("/rate", response_model=ReviewResponse)
async def rate_card(
    request: ReviewRequest,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Submit a review rating for a card.

    Ratings:
    - 1 (Again): Forgot the answer
    - 2 (Hard): Recalled with difficulty
    - 3 (Good): Recalled correctly
    - 4 (Easy): Recalled instantly
    """
    card, entry = await service.review_card(
        request.card_id, request.rating, request.review_time
    )
    return ReviewResponse.from_domain(card, entry)


@router.get("/preview", response_model=PreviewResponse)
async def preview_card(
    card_id: str = Query(..., description="Card to preview"),
    service: ReviewService = Depends(get_review_service),
) -> PreviewResponse:
    """Show when the card would be due again for each rating."""
    card, recall, intervals = await service.preview(card_id)
    return PreviewResponse(
        card_id=card.id,
        retrievability=recall,
        intervals=[
            IntervalPreview(
                rating=rating.value,
                label=rating.name.lower(),
                seconds=int(delta.total_seconds()),
            )
            for rating, delta in intervals.items()
        ],
    )
