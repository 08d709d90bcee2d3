"""
Scheduling Services

- engine: Pure card scheduler over the fsrs package
- review_log: Append-only review log sinks
- review_service: Rating and previewing persisted cards
"""

from flashdeck.services.scheduling.engine import (
    Scheduler,
    create_scheduler,
    new_card_defaults,
    preview,
    retrievability,
    schedule,
)
from flashdeck.services.scheduling.review_log import (
    InMemoryReviewLog,
    ReviewLog,
    ReviewLogRepository,
)
from flashdeck.services.scheduling.review_service import ReviewService

__all__ = [
    "InMemoryReviewLog",
    "ReviewLog",
    "ReviewLogRepository",
    "ReviewService",
    "Scheduler",
    "create_scheduler",
    "new_card_defaults",
    "preview",
    "retrievability",
    "schedule",
]
