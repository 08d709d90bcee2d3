"""Database package: async engine, session dependency and ORM tables."""

from flashdeck.db.base import Base, get_db, get_engine, get_session_maker, init_db
from flashdeck.db.models import CardRecord, DeckRecord, ReviewLogRecord

__all__ = [
    "Base",
    "CardRecord",
    "DeckRecord",
    "ReviewLogRecord",
    "get_db",
    "get_engine",
    "get_session_maker",
    "init_db",
]
