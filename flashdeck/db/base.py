"""
Database Base Configuration

Sets up the async SQLAlchemy engine and session management.

The engine is created on first use rather than at import time, so the pure
core (scheduler, deck hierarchy, archive codecs) can be imported without a
database driver installed.

Usage:
    from flashdeck.db.base import get_session_maker, Base

    # In a script
    async with get_session_maker()() as session:
        result = await session.execute(...)
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from flashdeck.config import settings, yaml_config

logger = logging.getLogger(__name__)

# Get pool configuration from yaml config
db_config: dict[str, Any] = yaml_config.get("database", {})
pool_size: int = db_config.get("pool_size", 5)
max_overflow: int = db_config.get("max_overflow", 10)
pool_timeout: int = db_config.get("pool_timeout", 30)

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def get_engine() -> AsyncEngine:
    """Create the async engine on first call and return it afterwards."""
    global _engine
    if _engine is None:
        url = settings.DATABASE_URL_RESOLVED
        if url.startswith("sqlite"):
            # SQLite uses a static/null pool; pool sizing does not apply
            _engine = create_async_engine(url, echo=settings.DEBUG)
        else:
            _engine = create_async_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                echo=settings.DEBUG,
            )
        logger.info(f"Database engine created ({_engine.url.get_backend_name()})")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the lazily created engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


# Import models AFTER Base is defined to avoid circular imports.
# This ensures all models are registered with Base.metadata.
from flashdeck.db import models  # noqa: F401, E402


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database sessions in FastAPI routes.

    Usage:
        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database tables.

    Called on application startup to create tables that don't exist.
    Production schemas are managed by migrations instead.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
