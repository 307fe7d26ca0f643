"""Scheduled life report generation, recovery and export.

Public API
----------
ReportingConfig
    Tunables for batching, stuck detection, timeouts and export URLs.
ReportStateMachine
    Persisted ``generating``/``ready``/``failed`` transitions with bounded
    retries.
ReportGenerationService
    Per-user pipeline: claim, generate, complete or fail, notify.
GenerationScheduler
    Batched cadence sweep over every user.
StuckJobReaper
    Fails reports stuck in ``generating``.
ExportService
    Redacts, renders and publishes a ready report.

The Dramatiq actors live in ``almanac.reporting.actor`` and are imported
only by workers and the job CLI, since importing them binds a broker.

Example:
>>> scheduler = build_scheduler(session_factory, ReportingConfig())
>>> summary = await scheduler.run(Cadence.WEEKLY)

"""

from almanac.reporting.config import ReportingConfig
from almanac.reporting.errors import (
    ExportError,
    ExportErrorCode,
    InvalidReportIdError,
    InvalidTransitionError,
    ReportingError,
    ReportNotFoundError,
    ReportNotReadyError,
)
from almanac.reporting.export import ExportResult, ExportService
from almanac.reporting.factory import (
    build_export_service,
    build_reaper,
    build_scheduler,
)
from almanac.reporting.reaper import ReapSummary, StuckJobReaper
from almanac.reporting.scheduler import GenerationScheduler, SchedulerRunSummary
from almanac.reporting.service import GenerationOutcome, ReportGenerationService
from almanac.reporting.state import ReportStateMachine, RetryState

__all__ = [
    "ExportError",
    "ExportErrorCode",
    "ExportResult",
    "ExportService",
    "GenerationOutcome",
    "GenerationScheduler",
    "InvalidReportIdError",
    "InvalidTransitionError",
    "ReapSummary",
    "ReportGenerationService",
    "ReportNotFoundError",
    "ReportNotReadyError",
    "ReportStateMachine",
    "ReportingConfig",
    "ReportingError",
    "RetryState",
    "SchedulerRunSummary",
    "StuckJobReaper",
    "build_export_service",
    "build_reaper",
    "build_scheduler",
]
