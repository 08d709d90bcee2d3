"""
Archive Format Enums

Integer codes used by the .apkg collection database. They only exist at the
import/export boundary; internally cards carry a CardState.
"""

from enum import IntEnum

from flashdeck.enums.learning import CardState


class ArchiveCardType(IntEnum):
    """Value of ``cards.type``."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    def to_state(self) -> CardState:
        return _TYPE_TO_STATE[self]


class ArchiveQueue(IntEnum):
    """
    Value of ``cards.queue``.

    The queue decides how ``cards.due`` is encoded: a display position for
    NEW, epoch seconds for LEARNING, a day offset from collection creation
    for REVIEW and DAY_LEARNING. Negative queues park a card without
    changing the encoding of its type.
    """

    SCHED_BURIED = -3
    USER_BURIED = -2
    SUSPENDED = -1
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    DAY_LEARNING = 3
    PREVIEW = 4


_TYPE_TO_STATE = {
    ArchiveCardType.NEW: CardState.NEW,
    ArchiveCardType.LEARNING: CardState.LEARNING,
    ArchiveCardType.REVIEW: CardState.REVIEW,
    ArchiveCardType.RELEARNING: CardState.RELEARNING,
}
