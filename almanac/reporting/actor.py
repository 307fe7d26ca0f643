"""Dramatiq actors for scheduled report generation and stuck-report reaping.

Each cron trigger enqueues one message; one message owns one cadence sweep
(or one reaper sweep). Actors never retry: a failed report is re-attempted by
the next sweep that targets the same period.

Usage
-----
Queue a weekly sweep:

>>> run_cadence_job.send(
...     database_url="postgresql+asyncpg://...",
...     cadence="weekly",
... )

Queue a stuck-report sweep:

>>> reap_stuck_reports_job.send(database_url="postgresql+asyncpg://...")

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from almanac.reporting._broker import ensure_broker_configured
from almanac.reporting.config import ReportingConfig
from almanac.reporting.factory import build_reaper, build_scheduler

SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]
T = typ.TypeVar("T")

# Module-level caches for reusing engines across actor invocations
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()

# Actors are declared against the broker installed at import time.
ensure_broker_configured()


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Return the cached session factory for *database_url*.

    Thread-safe: uses a lock to prevent races between Dramatiq worker threads.
    """
    with _CACHE_LOCK:
        if database_url not in _SESSION_FACTORY_CACHE:
            engine = _ENGINE_CACHE.get(database_url)
            if engine is None:
                engine = create_async_engine(database_url)
                _ENGINE_CACHE[database_url] = engine
            _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
                engine, expire_on_commit=False
            )
        return _SESSION_FACTORY_CACHE[database_url]


def _parse_aware_iso(name: str, value: str | None) -> dt.datetime | None:
    """Parse an ISO timestamp argument, requiring timezone information.

    Raises
    ------
    ValueError
        If the timestamp lacks timezone information.

    """
    if value is None:
        return None
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        msg = (
            f"{name} must include timezone information, got naive datetime: "
            f"{value!r}. Use ISO format with offset (e.g., '2026-01-05T09:00:00Z' "
            f"or '2026-01-05T09:00:00+00:00')."
        )
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)


def _run_actor_async(
    database_url: str,
    async_fn: typ.Callable[[SessionFactory, ReportingConfig], typ.Awaitable[T]],
) -> T:
    """Run ``async_fn`` on a fresh event loop with cached database access."""
    session_factory = _get_or_create_session_factory(database_url)
    config = ReportingConfig.from_env()

    async def run() -> T:
        try:
            return await async_fn(session_factory, config)
        finally:
            # Pooled connections belong to the loop that opened them.
            await _ENGINE_CACHE[database_url].dispose()

    return asyncio.run(run())


@dramatiq.actor(max_retries=0)
def run_cadence_job(
    database_url: str,
    cadence: str,
    *,
    as_of_iso: str | None = None,
) -> dict[str, typ.Any]:
    """Sweep every user for one cadence.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    cadence
        ``weekly``, ``monthly``, ``quarterly`` or ``annual``.
    as_of_iso
        Optional reference timestamp the period is computed from. Must
        include timezone information. Re-running a past trigger with the
        same value re-attempts failed reports for that period.

    Returns
    -------
    dict[str, Any]
        JSON-safe sweep summary.

    Raises
    ------
    ValueError
        If ``cadence`` is unknown or ``as_of_iso`` is naive.

    """
    as_of = _parse_aware_iso("as_of_iso", as_of_iso)

    async def execute(
        session_factory: SessionFactory,
        config: ReportingConfig,
    ) -> dict[str, typ.Any]:
        scheduler = build_scheduler(session_factory, config)
        summary = await scheduler.run(cadence, as_of=as_of)
        payload = dc.asdict(summary)
        payload["period"] = {
            "start": summary.period.start.isoformat(),
            "end": summary.period.end.isoformat(),
        }
        payload["cadence"] = summary.cadence.value
        return payload

    return _run_actor_async(database_url, execute)


@dramatiq.actor(max_retries=0)
def reap_stuck_reports_job(
    database_url: str,
    *,
    now_iso: str | None = None,
) -> dict[str, int]:
    """Fail every report stuck in ``generating``.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    now_iso
        Optional observation time. Must include timezone information.

    Returns
    -------
    dict[str, int]
        Counts of retry-eligible and permanently failed reports.

    """
    now = _parse_aware_iso("now_iso", now_iso)

    async def execute(
        session_factory: SessionFactory,
        config: ReportingConfig,
    ) -> dict[str, int]:
        reaper = build_reaper(session_factory, config)
        async with asyncio.timeout(config.invocation_timeout.total_seconds()):
            summary = await reaper.sweep(now)
        return {"retried": summary.retried, "failed": summary.failed}

    return _run_actor_async(database_url, execute)


__all__ = ["reap_stuck_reports_job", "run_cadence_job"]
