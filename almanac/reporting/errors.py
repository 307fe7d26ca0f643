"""Errors raised by the report lifecycle and export path."""

from __future__ import annotations

import enum
import typing as typ

if typ.TYPE_CHECKING:
    from almanac.storage import ReportStatus


class ReportingError(Exception):
    """Base class for reporting module errors."""


class InvalidTransitionError(ReportingError):
    """Raised when a report is moved along an edge the state machine lacks.

    Attributes
    ----------
    report_id
        Deterministic id of the report.
    current
        Status the report was in.
    target
        Status the caller attempted to reach.

    """

    def __init__(
        self,
        report_id: str,
        current: ReportStatus,
        target: ReportStatus,
    ) -> None:
        """Initialize with the rejected transition."""
        self.report_id = report_id
        self.current = current
        self.target = target
        super().__init__(
            f"Report {report_id} cannot move from {current.value} to {target.value}"
        )


class ExportErrorCode(enum.StrEnum):
    """Caller-facing codes for export failures."""

    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    FAILED_PRECONDITION = "failed-precondition"
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"


class ExportError(ReportingError):
    """Base class for typed export failures surfaced to callers.

    Messages are safe to show to the end user; internal generation detail
    never appears in them.
    """

    code: typ.ClassVar[ExportErrorCode]

    def __init__(self, report_id: str, message: str) -> None:
        """Initialize with the requested report id and a user-safe message."""
        self.report_id = report_id
        super().__init__(message)


class InvalidReportIdError(ExportError):
    """Raised when a report id is not ``{cadence}-{YYYY-MM-DD}``."""

    code = ExportErrorCode.INVALID_ARGUMENT

    def __init__(self, report_id: str) -> None:
        """Initialize with the malformed id."""
        super().__init__(report_id, "reportId format is invalid")


class ReportNotFoundError(ExportError):
    """Raised when the user has no report with the requested id."""

    code = ExportErrorCode.NOT_FOUND

    def __init__(self, report_id: str) -> None:
        """Initialize with the missing id."""
        super().__init__(report_id, f"Report {report_id} not found")


class ReportNotReadyError(ExportError):
    """Raised when the report exists but is not ``ready``.

    Generating and permanently failed reports share this error so end users
    only ever see "not ready yet".
    """

    code = ExportErrorCode.FAILED_PRECONDITION

    def __init__(self, report_id: str) -> None:
        """Initialize with the id of the unfinished report."""
        super().__init__(report_id, f"Report {report_id} is not ready yet")


class UnauthenticatedError(ExportError):
    """Raised when an export request carries no verified caller."""

    code = ExportErrorCode.UNAUTHENTICATED

    def __init__(self, report_id: str) -> None:
        """Initialize with the requested report id."""
        super().__init__(report_id, "Authentication is required to export reports")


class PermissionDeniedError(ExportError):
    """Raised when the caller asks for another user's report."""

    code = ExportErrorCode.PERMISSION_DENIED

    def __init__(self, report_id: str) -> None:
        """Initialize with the requested report id."""
        super().__init__(report_id, "You can only export your own reports")
