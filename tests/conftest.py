"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import datetime as dt
import typing as typ

import dramatiq
import pytest
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from almanac.storage import (
    JournalEntry,
    Subscription,
    SubscriptionStatus,
    UserAccount,
    init_storage,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

# Actors bind to the broker installed when ``almanac.reporting.actor`` is
# first imported; install the stub before any test module can import it.
dramatiq.set_broker(StubBroker())


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and initialise every Almanac table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'almanac_test.db'}")
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return a sqlite URL for tests that build their own engine."""
    return f"sqlite+aiosqlite:///{tmp_path / 'almanac_jobs.db'}"


async def seed_user(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: str,
    *,
    premium: bool = False,
    entry_days: typ.Sequence[dt.date] = (),
) -> list[str]:
    """Insert a user with optional premium status and one entry per day.

    Returns the ids of the created journal entries, oldest first.
    """
    entries = [
        JournalEntry(
            user_id=user_id,
            created_at=dt.datetime.combine(day, dt.time(12), tzinfo=dt.UTC),
            text=f"entry on {day.isoformat()}",
        )
        for day in entry_days
    ]
    async with session_factory() as session, session.begin():
        session.add(UserAccount(id=user_id))
        if premium:
            session.add(Subscription(user_id=user_id, status=SubscriptionStatus.ACTIVE))
        session.add_all(entries)
        await session.flush()
        return [entry.id for entry in entries]


@pytest.fixture
def seed() -> typ.Callable[..., typ.Awaitable[list[str]]]:
    """Return the ``seed_user`` helper for tests that populate users."""
    return seed_user
