"""
Learning System Enums

Defines enums for the spaced repetition state machine and review ratings.
"""

from enum import Enum


class CardState(str, Enum):
    """
    Card states in the scheduling state machine.

    State transitions:
    - NEW → LEARNING (Again/Hard/Good) or REVIEW (Easy)
    - LEARNING → REVIEW (Good/Easy) or LEARNING (Again/Hard)
    - REVIEW → REVIEW (Hard/Good/Easy) or RELEARNING (lapse)
    - RELEARNING → REVIEW (Good/Easy) or RELEARNING (Again/Hard)
    """

    NEW = "new"  # Never reviewed, initial state
    LEARNING = "learning"  # Being learned, short intervals
    REVIEW = "review"  # Graduated, normal spaced intervals
    RELEARNING = "relearning"  # Lapsed and being relearned


class Rating(int, Enum):
    """
    Review ratings.

    User self-assessment after reviewing a card.
    """

    AGAIN = 1  # Complete failure, reset learning
    HARD = 2  # Significant difficulty, shorter interval
    GOOD = 3  # Correct with reasonable effort, normal interval
    EASY = 4  # Too easy, longer interval
