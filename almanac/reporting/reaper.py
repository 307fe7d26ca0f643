"""Recovery for reports stuck in ``generating``.

A report is stuck when its status is ``generating`` and its ``generated_at``
is older than ``ReportingConfig.stuck_threshold``. The reaper fails every
stuck report across all users through the same bounded-retry rule as a
direct generation failure, and never restarts generation itself. Re-attempts
happen when the next scheduler sweep targets the same period.

Sweeping twice is safe: a reaped report is no longer ``generating``, so a
second sweep over the same state finds nothing to do.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select

from almanac.common.time import ensure_utc, utcnow
from almanac.logging import get_logger, log_info
from almanac.reporting.config import ReportingConfig
from almanac.reporting.observability import ReportingEventLogger
from almanac.reporting.state import FailureOutcome, apply_failure
from almanac.storage import Report, ReportStatus

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class ReapSummary:
    """Outcome of one sweep.

    Attributes
    ----------
    retried
        Stuck reports failed with a retry still available.
    failed
        Stuck reports failed permanently.

    """

    retried: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        """Return the number of reports the sweep touched."""
        return self.retried + self.failed


class StuckJobReaper:
    """Fail reports whose generation attempt has gone stale."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ReportingConfig | None = None,
        event_logger: ReportingEventLogger | None = None,
    ) -> None:
        """Configure the reaper with storage and an optional threshold."""
        self._session_factory = session_factory
        self._config = config or ReportingConfig()
        self._event_logger = event_logger or ReportingEventLogger()

    def cutoff(self, now: dt.datetime) -> dt.datetime:
        """Return the ``generated_at`` bound below which reports are stuck."""
        return ensure_utc(now) - self._config.stuck_threshold

    async def sweep(self, now: dt.datetime | None = None) -> ReapSummary:
        """Fail every stuck report in one transaction.

        Parameters
        ----------
        now
            Observation time; defaults to the current UTC time.

        Returns
        -------
        ReapSummary
            How many stuck reports were left retry-eligible and how many were
            failed permanently.

        """
        cutoff = self.cutoff(now or utcnow())
        retried = 0
        failed = 0
        async with self._session_factory() as session, session.begin():
            stuck = (
                await session.scalars(
                    select(Report)
                    .where(
                        Report.status == ReportStatus.GENERATING,
                        Report.generated_at < cutoff,
                    )
                    .with_for_update(skip_locked=True)
                )
            ).all()
            for report in stuck:
                outcome = apply_failure(report)
                log_info(
                    logger,
                    "Reaped stuck report %s for user %s (generated_at=%s): %s",
                    report.id,
                    report.user_id,
                    report.generated_at.isoformat(),
                    outcome,
                )
                if outcome is FailureOutcome.RETRY_SCHEDULED:
                    retried += 1
                else:
                    failed += 1

        summary = ReapSummary(retried=retried, failed=failed)
        self._event_logger.log_reaper_completed(
            retried=summary.retried,
            failed=summary.failed,
            cutoff=cutoff,
        )
        return summary


__all__ = ["ReapSummary", "StuckJobReaper"]
