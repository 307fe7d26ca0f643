"""Behavioural coverage for stuck-report detection and bounded retries."""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import typing as typ

from pytest_bdd import given, parsers, scenario, then, when
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from almanac.adapters import SqlEntitlementService, SqlEntryStore, SqlUserDirectory
from almanac.common.time import utcnow
from almanac.eligibility import EligibilityFilter
from almanac.periods import Cadence, ReportPeriod, compute_period, report_id
from almanac.reporting.config import ReportingConfig
from almanac.reporting.reaper import ReapSummary, StuckJobReaper
from almanac.reporting.scheduler import (
    GenerationScheduler,
    SchedulerDependencies,
    SchedulerRunSummary,
)
from almanac.reporting.service import (
    ReportGenerationDependencies,
    ReportGenerationService,
)
from almanac.reporting.state import ReportStateMachine
from almanac.storage import Report, ReportStatus, init_storage

if typ.TYPE_CHECKING:
    from almanac.models import GeneratedContent

_AS_OF = dt.datetime(2026, 1, 14, 9, 0, tzinfo=dt.UTC)
_PERIOD = compute_period(Cadence.WEEKLY, _AS_OF)
_RID = report_id(Cadence.WEEKLY, _PERIOD.start)
_USER = "user-1"


class RecoveryContext(typ.TypedDict, total=False):
    """Mutable context shared between steps."""

    database_url: str
    now: dt.datetime
    reaps: list[ReapSummary]
    sweeps: list[SchedulerRunSummary]
    generator: StalledGenerator


class StalledGenerator:
    """Content generator whose calls never finish."""

    def __init__(self) -> None:
        self.calls = 0

    async def generate(
        self, user_id: str, cadence: Cadence, period: ReportPeriod
    ) -> GeneratedContent:
        self.calls += 1
        await asyncio.Event().wait()
        raise AssertionError  # pragma: no cover - never resumed


@contextlib.asynccontextmanager
async def _sessions(
    database_url: str,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(database_url)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@scenario(
    "../stuck_report_recovery.feature",
    "A stale first attempt becomes retry-eligible",
)
def test_stale_first_attempt() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../stuck_report_recovery.feature",
    "A stalled retry fails permanently and is never re-attempted",
)
def test_stalled_retry_exhausts() -> None:
    """Wrapper for pytest-bdd scenario."""


@given("an empty report store", target_fixture="recovery_context")
def given_empty_store(
    database_url: str,
    seed: typ.Callable[..., typ.Awaitable[list[str]]],
) -> RecoveryContext:
    """Create the schema and one weekly-eligible user."""
    week = [_PERIOD.first_day + dt.timedelta(days=offset) for offset in range(3)]

    async def _run() -> None:
        engine = create_async_engine(database_url)
        try:
            await init_storage(engine)
            await seed(
                async_sessionmaker(engine, expire_on_commit=False),
                _USER,
                entry_days=week,
            )
        finally:
            await engine.dispose()

    asyncio.run(_run())
    return {
        "database_url": database_url,
        "now": utcnow(),
        "reaps": [],
        "sweeps": [],
        "generator": StalledGenerator(),
    }


@given(
    parsers.parse("a weekly report generating for {minutes:d} minutes with no retries")
)
def given_stale_report(recovery_context: RecoveryContext, minutes: int) -> None:
    """Insert a report whose attempt started ``minutes`` ago."""
    started = recovery_context["now"] - dt.timedelta(minutes=minutes)

    async def _run() -> None:
        async with _sessions(recovery_context["database_url"]) as session_factory:
            machine = ReportStateMachine(session_factory)
            claimed = await machine.begin_attempt(
                _USER, Cadence.WEEKLY, _PERIOD, now=started
            )
            assert claimed is not None

    asyncio.run(_run())


@when("the stuck-report reaper sweeps")
def when_reaper_sweeps(recovery_context: RecoveryContext) -> None:
    """Run one reaper sweep at the context clock."""

    async def _run() -> ReapSummary:
        async with _sessions(recovery_context["database_url"]) as session_factory:
            return await StuckJobReaper(session_factory).sweep(recovery_context["now"])

    recovery_context["reaps"].append(asyncio.run(_run()))


def _run_sweep(recovery_context: RecoveryContext) -> SchedulerRunSummary:
    async def _run() -> SchedulerRunSummary:
        async with _sessions(recovery_context["database_url"]) as session_factory:
            entry_store = SqlEntryStore(session_factory)
            scheduler = GenerationScheduler(
                SchedulerDependencies(
                    users=SqlUserDirectory(session_factory),
                    eligibility=EligibilityFilter(
                        SqlEntitlementService(session_factory), entry_store
                    ),
                    generation=ReportGenerationService(
                        ReportGenerationDependencies(
                            state_machine=ReportStateMachine(session_factory),
                            content_generator=recovery_context["generator"],
                        )
                    ),
                ),
                config=ReportingConfig(invocation_timeout=dt.timedelta(seconds=1)),
            )
            return await scheduler.run(Cadence.WEEKLY, as_of=_AS_OF)

    summary = asyncio.run(_run())
    recovery_context["sweeps"].append(summary)
    return summary


@when("the weekly sweep runs again for the same period")
def when_sweep_retries(recovery_context: RecoveryContext) -> None:
    """Sweep the period; the retry starts and then stalls."""
    summary = _run_sweep(recovery_context)
    assert summary.timed_out is True
    assert recovery_context["generator"].calls == 1


@when(parsers.parse("the retry stalls for {minutes:d} minutes"))
def when_retry_stalls(recovery_context: RecoveryContext, minutes: int) -> None:
    """Advance the context clock past the stuck threshold."""
    recovery_context["now"] = utcnow() + dt.timedelta(minutes=minutes)


def _load(recovery_context: RecoveryContext) -> Report:
    async def _run() -> Report | None:
        async with _sessions(recovery_context["database_url"]) as session_factory:
            async with session_factory() as session:
                return await session.get(Report, (_USER, _RID))

    report = asyncio.run(_run())
    assert report is not None
    return report


@then(parsers.parse("the report is failed with retry count {count:d}"))
def then_report_failed(recovery_context: RecoveryContext, count: int) -> None:
    """The reaper moved the report to failed with the expected counter."""
    report = _load(recovery_context)
    assert report.status is ReportStatus.FAILED
    assert report.retry_count == count


@then("sweeping again changes nothing")
def then_second_sweep_noop(recovery_context: RecoveryContext) -> None:
    """Observing the same state twice is idempotent."""
    when_reaper_sweeps(recovery_context)
    assert recovery_context["reaps"][-1] == ReapSummary()
    report = _load(recovery_context)
    assert (report.status, report.retry_count) == (ReportStatus.FAILED, 1)


@then("another weekly sweep leaves the report failed")
def then_exhausted_not_retried(recovery_context: RecoveryContext) -> None:
    """Exhausted reports are never regenerated automatically."""
    summary = _run_sweep(recovery_context)
    assert summary.already_current == 1
    assert summary.timed_out is False
    assert recovery_context["generator"].calls == 1
    report = _load(recovery_context)
    assert (report.status, report.retry_count) == (ReportStatus.FAILED, 2)
