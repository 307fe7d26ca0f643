"""Unit tests for report lifecycle observability events."""

from __future__ import annotations

import datetime as dt
import logging

import pytest

from almanac.periods import Cadence
from almanac.reporting.observability import ReportingEventLogger, ReportingEventType

_LOGGER = "almanac.reporting.observability"


def _records_for(
    caplog: pytest.LogCaptureFixture, event: ReportingEventType
) -> list[logging.LogRecord]:
    return [r for r in caplog.records if f"[{event}]" in r.getMessage()]


class TestReportingEventLogger:
    """Tests for ReportingEventLogger."""

    def test_scheduler_events(self, caplog: pytest.LogCaptureFixture) -> None:
        """Sweep start and completion carry cadence and counters."""
        event_logger = ReportingEventLogger()

        with caplog.at_level(logging.INFO, logger=_LOGGER):
            event_logger.log_scheduler_started(
                cadence=Cadence.WEEKLY, report_id="weekly-2026-01-05", user_count=12
            )
            event_logger.log_scheduler_completed(
                cadence=Cadence.WEEKLY,
                report_id="weekly-2026-01-05",
                generated=9,
                skipped=2,
                already_current=0,
                failed=1,
                duration=dt.timedelta(seconds=1.5),
            )

        started = _records_for(caplog, ReportingEventType.SCHEDULER_STARTED)
        completed = _records_for(caplog, ReportingEventType.SCHEDULER_COMPLETED)
        assert len(started) == 1
        assert "user_count=12" in started[0].getMessage()
        assert len(completed) == 1
        message = completed[0].getMessage()
        assert "generated=9" in message
        assert "failed=1" in message
        assert "timed_out=false" in message
        assert "duration_seconds=1.500" in message

    def test_generation_failed_is_error_with_context(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Failures log at ERROR with user and exception details."""
        event_logger = ReportingEventLogger()
        error = TimeoutError("model timed out")

        with caplog.at_level(logging.INFO, logger=_LOGGER):
            event_logger.log_generation_failed(
                user_id="user-7", report_id="weekly-2026-01-05", error=error
            )

        (record,) = _records_for(caplog, ReportingEventType.GENERATION_FAILED)
        assert record.levelno == logging.ERROR
        assert "user_id=user-7" in record.getMessage()
        assert "error_type=TimeoutError" in record.getMessage()
        assert record.exc_info is not None
        assert record.exc_info[1] is error

    def test_reaper_and_export_events(self, caplog: pytest.LogCaptureFixture) -> None:
        """Reaper and export events log their outcomes."""
        event_logger = ReportingEventLogger()
        cutoff = dt.datetime(2026, 1, 12, 8, 30, tzinfo=dt.UTC)

        with caplog.at_level(logging.INFO, logger=_LOGGER):
            event_logger.log_reaper_completed(retried=2, failed=1, cutoff=cutoff)
            event_logger.log_report_exported(
                user_id="user-1",
                report_id="monthly-2026-01-01",
                sections=3,
                expires_at=cutoff,
            )

        (reaped,) = _records_for(caplog, ReportingEventType.REAPER_COMPLETED)
        assert "retried=2 failed=1" in reaped.getMessage()
        assert "cutoff=2026-01-12T08:30:00+00:00" in reaped.getMessage()
        (exported,) = _records_for(caplog, ReportingEventType.REPORT_EXPORTED)
        assert "sections=3" in exported.getMessage()
