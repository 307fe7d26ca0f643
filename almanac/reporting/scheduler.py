"""Cadence sweeps over the user population.

One ``GenerationScheduler.run`` call owns one cadence sweep. Users are
processed in fixed-size batches: batches run sequentially, users inside a
batch run concurrently and every one of them is allowed to settle before
results are inspected. A failure for one user is logged with user context and
counted; it never aborts the batch or the batches after it.

The scheduler never retries within an invocation. A report that failed once
is attempted again the next time a sweep targets the same period.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import enum
import time
import typing as typ

from almanac.common.time import ensure_utc, utcnow
from almanac.logging import get_logger, log_warning
from almanac.periods import as_cadence, compute_period, report_id
from almanac.reporting.config import ReportingConfig
from almanac.reporting.observability import ReportingEventLogger
from almanac.reporting.service import GenerationOutcome

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from almanac.collaborators import UserDirectory
    from almanac.eligibility import EligibilityFilter
    from almanac.periods import Cadence, ReportPeriod
    from almanac.reporting.service import ReportGenerationService

logger = get_logger(__name__)


class UserResult(enum.StrEnum):
    """What happened to one user during a sweep."""

    GENERATED = "generated"
    SKIPPED = "skipped"
    ALREADY_CURRENT = "already_current"
    FAILED = "failed"


@dc.dataclass(frozen=True, slots=True)
class SchedulerRunSummary:
    """Counters for one cadence sweep.

    Attributes
    ----------
    cadence
        Cadence that was swept.
    report_id
        Deterministic id targeted for every user.
    period
        Period the reports cover.
    users_seen
        Users whose processing settled before the sweep ended.
    generated
        Reports that reached ``ready`` in this sweep.
    skipped
        Users who failed the premium or data gate.
    already_current
        Users whose report was already ready, in progress, or exhausted.
    failed
        Users whose eligibility check or generation raised.
    timed_out
        Whether the invocation timeout cut the sweep short.

    """

    cadence: Cadence
    report_id: str
    period: ReportPeriod
    users_seen: int = 0
    generated: int = 0
    skipped: int = 0
    already_current: int = 0
    failed: int = 0
    timed_out: bool = False


@dc.dataclass(slots=True)
class _Tally:
    counts: dict[UserResult, int] = dc.field(
        default_factory=lambda: dict.fromkeys(UserResult, 0)
    )

    def add(self, result: UserResult) -> None:
        self.counts[result] += 1

    @property
    def seen(self) -> int:
        return sum(self.counts.values())


@dc.dataclass(frozen=True, slots=True)
class SchedulerDependencies:
    """Collaborators required by ``GenerationScheduler``."""

    users: UserDirectory
    eligibility: EligibilityFilter
    generation: ReportGenerationService


def batched(user_ids: cabc.Sequence[str], size: int) -> list[list[str]]:
    """Split ``user_ids`` into consecutive batches of at most ``size``."""
    if size < 1:
        msg = f"batch size must be positive, got {size}"
        raise ValueError(msg)
    return [list(user_ids[i : i + size]) for i in range(0, len(user_ids), size)]


class GenerationScheduler:
    """Generate one cadence's reports for every eligible user."""

    def __init__(
        self,
        dependencies: SchedulerDependencies,
        config: ReportingConfig | None = None,
        event_logger: ReportingEventLogger | None = None,
    ) -> None:
        """Configure the scheduler.

        Parameters
        ----------
        dependencies
            User enumeration, eligibility and generation collaborators.
        config
            Optional reporting configuration; uses defaults if not provided.
        event_logger
            Structured event logger for sweep events; a default logger is
            used when omitted.

        """
        self._users = dependencies.users
        self._eligibility = dependencies.eligibility
        self._generation = dependencies.generation
        self._config = config or ReportingConfig()
        self._event_logger = event_logger or ReportingEventLogger()

    async def run(
        self,
        cadence: Cadence | str,
        as_of: dt.datetime | None = None,
    ) -> SchedulerRunSummary:
        """Sweep every user for ``cadence``.

        Parameters
        ----------
        cadence
            Cadence to generate. Unknown values raise ``ValueError`` before
            any work starts.
        as_of
            Reference time the period is computed from; defaults to now.

        Returns
        -------
        SchedulerRunSummary
            Counters for the sweep, including partial counts when the
            invocation timeout fired.

        """
        resolved = as_cadence(cadence)
        reference = ensure_utc(as_of) if as_of is not None else utcnow()
        period = compute_period(resolved, reference)
        rid = report_id(resolved, period.start)
        tally = _Tally()
        started = time.monotonic()
        timed_out = False

        try:
            async with asyncio.timeout(self._config.invocation_timeout.total_seconds()):
                await self._sweep(resolved, period, rid, tally)
        except TimeoutError:
            timed_out = True
            log_warning(
                logger,
                "Sweep for %s timed out after %d users; in-flight reports are "
                "left for the stuck-report reaper",
                rid,
                tally.seen,
            )

        summary = SchedulerRunSummary(
            cadence=resolved,
            report_id=rid,
            period=period,
            users_seen=tally.seen,
            generated=tally.counts[UserResult.GENERATED],
            skipped=tally.counts[UserResult.SKIPPED],
            already_current=tally.counts[UserResult.ALREADY_CURRENT],
            failed=tally.counts[UserResult.FAILED],
            timed_out=timed_out,
        )
        self._event_logger.log_scheduler_completed(
            cadence=resolved,
            report_id=rid,
            generated=summary.generated,
            skipped=summary.skipped,
            already_current=summary.already_current,
            failed=summary.failed,
            duration=_elapsed(started),
            timed_out=timed_out,
        )
        return summary

    async def _sweep(
        self,
        cadence: Cadence,
        period: ReportPeriod,
        rid: str,
        tally: _Tally,
    ) -> None:
        user_ids = await self._users.list_user_ids()
        self._event_logger.log_scheduler_started(
            cadence=cadence,
            report_id=rid,
            user_count=len(user_ids),
        )
        for batch in batched(user_ids, self._config.batch_size):
            gathered = await asyncio.gather(
                *(self._process_user(user_id, cadence, period) for user_id in batch),
                return_exceptions=True,
            )
            self._settle(batch, gathered, rid, tally)

    def _settle(
        self,
        batch: list[str],
        gathered: list[UserResult | BaseException],
        rid: str,
        tally: _Tally,
    ) -> None:
        """Count settled results, re-raising system-level exceptions."""
        for user_id, result in zip(batch, gathered, strict=True):
            if isinstance(result, Exception):
                tally.add(UserResult.FAILED)
                self._event_logger.log_generation_failed(
                    user_id=user_id,
                    report_id=rid,
                    error=result,
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                tally.add(result)

    async def _process_user(
        self,
        user_id: str,
        cadence: Cadence,
        period: ReportPeriod,
    ) -> UserResult:
        outcome = await self._eligibility.evaluate(user_id, cadence, period)
        if not outcome.is_eligible:
            return UserResult.SKIPPED
        generated = await self._generation.generate_for_user(user_id, cadence, period)
        if generated is GenerationOutcome.ALREADY_CURRENT:
            return UserResult.ALREADY_CURRENT
        return UserResult.GENERATED


def _elapsed(started: float) -> dt.timedelta:
    return dt.timedelta(seconds=time.monotonic() - started)


__all__ = [
    "GenerationScheduler",
    "SchedulerDependencies",
    "SchedulerRunSummary",
    "UserResult",
    "batched",
]
