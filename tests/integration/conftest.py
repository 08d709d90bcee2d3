"""
Integration Test Fixtures

Provides a throwaway SQLite database per test, async sessions for service
tests, and a TestClient whose get_db dependency points at that database.

Tables are created with a synchronous engine to avoid event loop issues;
the async engines use NullPool so connections never outlive the event loop
that opened them (TestClient runs the app on its own loop).
"""

from pathlib import Path
from typing import AsyncGenerator, Callable, Iterable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from flashdeck.db.base import Base, get_db
from flashdeck.db.models import CardRecord, DeckRecord
from flashdeck.models.domain import Card, Deck

pytestmark = pytest.mark.integration


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "flashdeck.db"


@pytest.fixture
def setup_test_database(db_path: Path):
    """Create all tables in a fresh database file."""
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)

    yield sync_engine

    sync_engine.dispose()


@pytest.fixture
def seed(setup_test_database) -> Callable[..., None]:
    """
    Insert decks and cards directly, bypassing the services.

    Usage:
        seed(decks=[deck], cards=[card])
    """

    def _seed(decks: Iterable[Deck] = (), cards: Iterable[Card] = ()) -> None:
        with Session(setup_test_database) as session:
            session.add_all(DeckRecord.from_domain(deck) for deck in decks)
            session.flush()
            session.add_all(CardRecord.from_domain(card) for card in cards)
            session.commit()

    return _seed


def _session_maker(db_path: Path) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_path: Path, setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    """
    Async session on the test database.

    Tests commit explicitly when they need to observe data from a second
    session; anything left uncommitted is rolled back.
    """
    async with _session_maker(db_path)() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
def session_factory(db_path: Path, setup_test_database) -> async_sessionmaker[AsyncSession]:
    """Factory for additional sessions on the test database."""
    return _session_maker(db_path)


# =============================================================================
# HTTP Client
# =============================================================================


@pytest.fixture
def test_client(db_path: Path, setup_test_database):
    """
    FastAPI test client bound to the test database.

    get_db is overridden with the same commit/rollback contract as the
    production dependency.
    """
    from flashdeck.main import create_app

    session_maker = _session_maker(db_path)

    async def get_test_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app(create_tables=False)
    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
