"""Lifecycle of a single report row and its bounded retry policy.

States and edges::

    (absent) ----------------------------> generating
    generating --------------------------> ready        (terminal)
    generating --------------------------> failed       (retry_count 0 -> 1)
    generating --------------------------> failed       (retry_count >=1 -> 2, exhausted)
    failed [retry_count < 2] ------------> generating   (next scheduler attempt)

``retry_count`` is read through ``RetryState``: ``FRESH`` (0),
``RETRIED_ONCE`` (1) and ``EXHAUSTED`` (2 or more). An exhausted report never
re-enters ``generating`` automatically. There is no ``failed -> ready`` edge;
recovery always passes through a new ``generating`` attempt.

The row id is deterministic, so claiming an attempt is an upsert on
``(user_id, id)`` rather than a lock.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import IntegrityError

from almanac.common.time import utcnow
from almanac.logging import get_logger, log_info, log_warning
from almanac.models import ReportSnapshot, section_from_payload, section_to_payload
from almanac.periods import Cadence, ReportPeriod, as_cadence, report_id
from almanac.reporting.errors import InvalidTransitionError, ReportingError
from almanac.storage import Report, ReportStatus

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from almanac.models import GeneratedContent

logger = get_logger(__name__)

EXHAUSTED_RETRY_COUNT = 2

_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.GENERATING: frozenset({ReportStatus.READY, ReportStatus.FAILED}),
    ReportStatus.FAILED: frozenset({ReportStatus.GENERATING}),
    ReportStatus.READY: frozenset(),
}


class RetryState(enum.StrEnum):
    """How many automatic attempts a report has already consumed."""

    FRESH = "fresh"
    RETRIED_ONCE = "retried_once"
    EXHAUSTED = "exhausted"

    @classmethod
    def from_count(cls, retry_count: int) -> RetryState:
        """Classify a stored ``retry_count``."""
        if retry_count <= 0:
            return cls.FRESH
        if retry_count < EXHAUSTED_RETRY_COUNT:
            return cls.RETRIED_ONCE
        return cls.EXHAUSTED


class FailureOutcome(enum.StrEnum):
    """Effect of recording a failed or stuck attempt."""

    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"


def retry_state(report: Report) -> RetryState:
    """Return the ``RetryState`` of ``report``."""
    return RetryState.from_count(report.retry_count)


def can_transition(report: Report, target: ReportStatus) -> bool:
    """Return whether ``report`` may move to ``target``."""
    if target not in _TRANSITIONS[report.status]:
        return False
    if report.status is ReportStatus.FAILED and target is ReportStatus.GENERATING:
        return retry_state(report) is not RetryState.EXHAUSTED
    return True


def _require_transition(report: Report, target: ReportStatus) -> None:
    if not can_transition(report, target):
        raise InvalidTransitionError(report.id, report.status, target)


def apply_failure(report: Report) -> FailureOutcome:
    """Move a ``generating`` report to ``failed`` and bump its retry count.

    The first failure leaves the report retry-eligible (``retry_count`` 1);
    any later failure exhausts it (``retry_count`` 2).

    Raises
    ------
    InvalidTransitionError
        If ``report`` is not ``generating``.

    """
    _require_transition(report, ReportStatus.FAILED)
    report.status = ReportStatus.FAILED
    if retry_state(report) is RetryState.FRESH:
        report.retry_count = 1
        return FailureOutcome.RETRY_SCHEDULED
    report.retry_count = EXHAUSTED_RETRY_COUNT
    return FailureOutcome.EXHAUSTED


def apply_ready(report: Report, content: GeneratedContent) -> None:
    """Store generated content and move ``report`` to ``ready``.

    Raises
    ------
    InvalidTransitionError
        If ``report`` is not ``generating``.

    """
    _require_transition(report, ReportStatus.READY)
    report.status = ReportStatus.READY
    report.sections = [section_to_payload(section) for section in content.sections]
    report.report_metadata = dict(content.metadata)


def to_snapshot(report: Report) -> ReportSnapshot:
    """Return an immutable snapshot of a stored report."""
    return ReportSnapshot(
        id=report.id,
        user_id=report.user_id,
        cadence=report.cadence,
        period_start=report.period_start,
        period_end=report.period_end,
        generated_at=report.generated_at,
        sections=tuple(section_from_payload(payload) for payload in report.sections),
        metadata=dict(report.report_metadata),
    )


def _claim(
    existing: Report | None,
    *,
    user_id: str,
    cadence: Cadence,
    period: ReportPeriod,
    now: dt.datetime,
) -> Report | None:
    """Return the row to write for a new attempt, or ``None`` to skip."""
    if existing is None:
        return Report(
            user_id=user_id,
            id=report_id(cadence, period.start),
            cadence=cadence,
            status=ReportStatus.GENERATING,
            period_start=period.start,
            period_end=period.end,
            generated_at=now,
            retry_count=0,
            sections=[],
            report_metadata={},
            notification_sent=False,
        )
    if not can_transition(existing, ReportStatus.GENERATING):
        return None
    existing.status = ReportStatus.GENERATING
    existing.period_start = period.start
    existing.period_end = period.end
    existing.generated_at = now
    existing.sections = []
    existing.report_metadata = {}
    existing.notification_sent = False
    return existing


class ReportStateMachine:
    """Persisted transitions for report rows.

    Each operation runs in its own short transaction so a slow content
    generator never holds a database connection open.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Configure the state machine with an async session factory."""
        self._session_factory = session_factory

    async def begin_attempt(
        self,
        user_id: str,
        cadence: Cadence | str,
        period: ReportPeriod,
        *,
        now: dt.datetime | None = None,
    ) -> Report | None:
        """Claim the deterministic report id for a new generation attempt.

        Returns ``None`` without writing when the report is already
        ``ready``, is ``generating`` under another attempt, or has exhausted
        its retries. Otherwise the row is created or overwritten as
        ``generating`` with ``generated_at = now`` and its ``retry_count``
        preserved.
        """
        resolved = as_cadence(cadence)
        key = (user_id, report_id(resolved, period.start))
        attempt_at = now or utcnow()
        async with self._session_factory() as session:
            existing = await session.get(Report, key)
            claimed = _claim(
                existing,
                user_id=user_id,
                cadence=resolved,
                period=period,
                now=attempt_at,
            )
            if claimed is None:
                return None
            if existing is None:
                session.add(claimed)
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent attempt inserted the same id first.
                await session.rollback()
                log_info(
                    logger,
                    "Report %s for user %s claimed concurrently; skipping",
                    key[1],
                    user_id,
                )
                return None
            return claimed

    async def mark_ready(
        self,
        user_id: str,
        report_id_value: str,
        content: GeneratedContent,
    ) -> Report:
        """Complete an attempt with generated content.

        Raises
        ------
        InvalidTransitionError
            If the report is no longer ``generating`` (for example the
            reaper already failed it).

        """
        async with self._session_factory() as session, session.begin():
            report = await self._load(session, user_id, report_id_value)
            apply_ready(report, content)
        return report

    async def record_failure(
        self,
        user_id: str,
        report_id_value: str,
    ) -> FailureOutcome | None:
        """Record a failed attempt.

        Returns ``None`` when the report has already left ``generating``,
        which happens when the reaper got to it first.
        """
        async with self._session_factory() as session, session.begin():
            report = await self._load(session, user_id, report_id_value)
            if report.status is not ReportStatus.GENERATING:
                log_warning(
                    logger,
                    "Report %s for user %s already %s; failure not recorded",
                    report_id_value,
                    user_id,
                    report.status.value,
                )
                return None
            return apply_failure(report)

    async def mark_notified(self, user_id: str, report_id_value: str) -> None:
        """Flag that the ready notification for a report was delivered."""
        async with self._session_factory() as session, session.begin():
            report = await self._load(session, user_id, report_id_value)
            report.notification_sent = True

    async def _load(
        self,
        session: AsyncSession,
        user_id: str,
        report_id_value: str,
    ) -> Report:
        report = await session.get(Report, (user_id, report_id_value))
        if report is None:
            msg = f"Report {report_id_value} for user {user_id} does not exist"
            raise ReportingError(msg)
        return report


__all__ = [
    "EXHAUSTED_RETRY_COUNT",
    "FailureOutcome",
    "ReportStateMachine",
    "RetryState",
    "apply_failure",
    "apply_ready",
    "can_transition",
    "retry_state",
    "to_snapshot",
]
