"""
Review Log

Append-only sinks for ReviewLogEntry records produced by the scheduling
engine. Entries are never updated or deleted through these APIs; persisted
rows only disappear when their card is deleted.

Sinks:
- InMemoryReviewLog: Synchronous, process-local. Used by tests and batch jobs.
- ReviewLogRepository: Async, writes review_logs rows through the session.
"""

import logging
from dataclasses import replace
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.db.models import ReviewLogRecord
from flashdeck.models.domain import ReviewLogEntry

logger = logging.getLogger(__name__)


class ReviewLog(Protocol):
    """Anything that accepts review log entries."""

    def record(self, entry: ReviewLogEntry) -> ReviewLogEntry: ...


class InMemoryReviewLog:
    """
    Review log kept in a Python list.

    Ids are assigned sequentially starting at 1 in recording order.
    """

    def __init__(self):
        self._entries: list[ReviewLogEntry] = []

    def record(self, entry: ReviewLogEntry) -> ReviewLogEntry:
        """Append an entry and return it with its assigned id."""
        stored = replace(entry, id=len(self._entries) + 1)
        self._entries.append(stored)
        return stored

    @property
    def entries(self) -> tuple[ReviewLogEntry, ...]:
        return tuple(self._entries)

    def for_card(self, card_id: str) -> tuple[ReviewLogEntry, ...]:
        """All entries for one card, oldest first."""
        return tuple(e for e in self._entries if e.card_id == card_id)

    def __len__(self) -> int:
        return len(self._entries)


class ReviewLogRepository:
    """
    Review log backed by the review_logs table.

    The caller owns the transaction; record() only adds and flushes so the
    row id is available, leaving commit/rollback to the session dependency.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, entry: ReviewLogEntry) -> ReviewLogEntry:
        row = ReviewLogRecord.from_domain(entry)
        self.db.add(row)
        await self.db.flush()
        logger.debug(f"Recorded review log {row.id} for card {entry.card_id}")
        return replace(entry, id=row.id)

    async def for_card(self, card_id: str) -> list[ReviewLogEntry]:
        """All persisted entries for one card, oldest first."""
        result = await self.db.execute(
            select(ReviewLogRecord)
            .where(ReviewLogRecord.card_id == card_id)
            .order_by(ReviewLogRecord.review_time, ReviewLogRecord.id)
        )
        return [row.to_domain() for row in result.scalars().all()]
