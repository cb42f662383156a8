"""
Pytest configuration and fixtures for the list engagement tests

Each test gets a fresh in-memory SQLite database. All sessions of a test share
the same connection, so a second session sees what the first committed.

Tests that race several sessions use concurrent_session_factory instead: a
file-backed database where every session checks out its own connection.
"""

import os
import sys
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from app.database import Base  # noqa: E402
from app.models import MediaList, Movie, Tv, User  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create a fresh schema for each test function."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def concurrent_engine(tmp_path):
    """File-backed database with one connection per session."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}", echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def concurrent_session_factory(concurrent_engine):
    return async_sessionmaker(concurrent_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def users(test_db: AsyncSession) -> dict[str, User]:
    """Two users: alice and bob"""
    alice = User(id="user-alice", username="alice")
    bob = User(id="user-bob", username="bob")
    test_db.add_all([alice, bob])
    await test_db.commit()
    return {"alice": alice, "bob": bob}


@pytest.fixture
async def catalog(test_db: AsyncSession) -> dict[str, object]:
    """A couple of movies and series to put on lists"""
    matrix = Movie(id=603, title="The Matrix", poster_path="/matrix.jpg", slug="the-matrix")
    heat = Movie(id=949, title="Heat", poster_path="/heat.jpg", slug="heat")
    sopranos = Tv(id=1398, title="The Sopranos", poster_path="/sopranos.jpg", slug="the-sopranos")
    test_db.add_all([matrix, heat, sopranos])
    await test_db.commit()
    return {"matrix": matrix, "heat": heat, "sopranos": sopranos}


@pytest.fixture
async def alice_list(test_db: AsyncSession, users) -> MediaList:
    media_list = MediaList(user_id=users["alice"].id, name="Favourites", slug="favourites")
    test_db.add(media_list)
    await test_db.commit()
    return media_list
