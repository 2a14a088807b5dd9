"""Shared fixtures."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.db.models import Base, Category, Component
from src.db.store import SqlTrackerStore

from tests.fakes import (
    MDCOMPUTERS_HTML,
    MDCOMPUTERS_URL,
    VEDANT_HTML,
    VEDANT_URL,
    FakeFetcher,
    FakeStore,
    make_link,
)


@pytest.fixture
def fake_store():
    return FakeStore(links=[make_link()])


@pytest.fixture
def fake_fetcher():
    return FakeFetcher({MDCOMPUTERS_URL: MDCOMPUTERS_HTML, VEDANT_URL: VEDANT_HTML})


@pytest.fixture
async def session_factory(tmp_path):
    """SQLite-backed session factory with one category and component seeded."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        category = Category(id=1, name="CPU")
        db.add(category)
        db.add(Component(id=1, category_id=1, brand="AMD", model="Ryzen 5 7600"))
        await db.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlTrackerStore(session_factory)
