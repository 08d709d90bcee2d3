"""
Centralized enum definitions for the application.

All enums are organized by domain:
- learning.py: Card states and review ratings
- archive.py: Integer codes of the .apkg collection database

Usage:
    from flashdeck.enums import CardState, Rating

    # Or import from specific module
    from flashdeck.enums.archive import ArchiveCardType
"""

from flashdeck.enums.archive import ArchiveCardType, ArchiveQueue
from flashdeck.enums.learning import CardState, Rating

__all__ = [
    # Learning
    "CardState",
    "Rating",
    # Archive
    "ArchiveCardType",
    "ArchiveQueue",
]
