"""Emit structured observability events for the report lifecycle.

This module defines event identifiers and a logger wrapper used by the
scheduler, the generation service, the reaper and the export service.

Usage
-----
>>> event_logger = ReportingEventLogger()
>>> event_logger.log_scheduler_started(
...     cadence=Cadence.WEEKLY,
...     report_id="weekly-2026-01-05",
...     user_count=12,
... )

"""

from __future__ import annotations

import enum
import typing as typ

from almanac.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import datetime as dt

    from almanac.periods import Cadence

logger = get_logger(__name__)


class ReportingEventType(enum.StrEnum):
    """Structured log event types for the report lifecycle."""

    SCHEDULER_STARTED = "scheduler.run.started"
    SCHEDULER_COMPLETED = "scheduler.run.completed"
    GENERATION_FAILED = "report.generation.failed"
    REAPER_COMPLETED = "reaper.sweep.completed"
    REPORT_EXPORTED = "report.exported"


class ReportingEventLogger:
    """Emit structured reporting events through the standard logger."""

    def log_scheduler_started(
        self,
        *,
        cadence: Cadence,
        report_id: str,
        user_count: int,
    ) -> None:
        """Log the start of one cadence sweep.

        Parameters
        ----------
        cadence
            Cadence being generated.
        report_id
            Deterministic id shared by every report in this sweep.
        user_count
            Number of users enumerated for the sweep.

        """
        log_info(
            logger,
            "[%s] cadence=%s report_id=%s user_count=%d",
            ReportingEventType.SCHEDULER_STARTED,
            cadence,
            report_id,
            user_count,
        )

    def log_scheduler_completed(
        self,
        *,
        cadence: Cadence,
        report_id: str,
        generated: int,
        skipped: int,
        already_current: int,
        failed: int,
        duration: dt.timedelta,
        timed_out: bool = False,
    ) -> None:
        """Log the counters of a cadence sweep, including one cut short."""
        log_info(
            logger,
            "[%s] cadence=%s report_id=%s generated=%d skipped=%d "
            "already_current=%d failed=%d timed_out=%s duration_seconds=%.3f",
            ReportingEventType.SCHEDULER_COMPLETED,
            cadence,
            report_id,
            generated,
            skipped,
            already_current,
            failed,
            str(timed_out).lower(),
            duration.total_seconds(),
        )

    def log_generation_failed(
        self,
        *,
        user_id: str,
        report_id: str,
        error: BaseException,
    ) -> None:
        """Log a failed generation attempt with user context.

        Parameters
        ----------
        user_id
            User whose report failed.
        report_id
            Deterministic id of the failed report.
        error
            Exception raised by the generation pipeline.

        """
        log_error(
            logger,
            "[%s] user_id=%s report_id=%s error_type=%s error_message=%s",
            ReportingEventType.GENERATION_FAILED,
            user_id,
            report_id,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_reaper_completed(
        self,
        *,
        retried: int,
        failed: int,
        cutoff: dt.datetime,
    ) -> None:
        """Log the outcome of one stuck-report sweep."""
        log_info(
            logger,
            "[%s] retried=%d failed=%d cutoff=%s",
            ReportingEventType.REAPER_COMPLETED,
            retried,
            failed,
            cutoff.isoformat(),
        )

    def log_report_exported(
        self,
        *,
        user_id: str,
        report_id: str,
        sections: int,
        expires_at: dt.datetime,
    ) -> None:
        """Log a published export."""
        log_info(
            logger,
            "[%s] user_id=%s report_id=%s sections=%d expires_at=%s",
            ReportingEventType.REPORT_EXPORTED,
            user_id,
            report_id,
            sections,
            expires_at.isoformat(),
        )


__all__ = ["ReportingEventLogger", "ReportingEventType"]
