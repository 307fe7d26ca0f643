"""API exceptions and Falcon error handlers.

Export failures carry a stable ``code`` (``invalid-argument``, ``not-found``,
``failed-precondition``, ``unauthenticated``, ``permission-denied``) that maps
to an HTTP status here. Response bodies only ever contain the user-safe
exception message.

Usage
-----
Register error handlers on the Falcon app::

    from almanac.api.errors import handle_export_error
    from almanac.reporting.errors import ExportError

    app.add_error_handler(ExportError, handle_export_error)

"""

from __future__ import annotations

import typing as typ

import falcon

from almanac.reporting.errors import ExportErrorCode

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from almanac.reporting.errors import ExportError

__all__ = [
    "ArtifactAccessDeniedError",
    "InvalidInputError",
    "handle_artifact_access_denied",
    "handle_export_error",
    "handle_invalid_input",
]

_EXPORT_STATUS: dict[ExportErrorCode, tuple[str, str]] = {
    ExportErrorCode.INVALID_ARGUMENT: (falcon.HTTP_400, "Invalid report id"),
    ExportErrorCode.NOT_FOUND: (falcon.HTTP_404, "Report not found"),
    ExportErrorCode.FAILED_PRECONDITION: (falcon.HTTP_409, "Report not ready"),
    ExportErrorCode.UNAUTHENTICATED: (falcon.HTTP_401, "Authentication required"),
    ExportErrorCode.PERMISSION_DENIED: (falcon.HTTP_403, "Permission denied"),
}


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


class ArtifactAccessDeniedError(Exception):
    """Raised when an artifact URL is unsigned, tampered with or expired."""

    def __init__(self) -> None:
        """Initialize with a fixed message that reveals nothing."""
        super().__init__("Download link is invalid or has expired.")


async def handle_export_error(
    _req: Request,
    resp: Response,
    ex: ExportError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an ``ExportError`` to its HTTP status and a JSON body.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The typed export failure.
    _params
        URI template parameters (unused).

    """
    status, title = _EXPORT_STATUS[ex.code]
    resp.status = status
    resp.media = {
        "title": title,
        "description": str(ex),
        "code": ex.code.value,
    }


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_artifact_access_denied(
    _req: Request,
    resp: Response,
    ex: ArtifactAccessDeniedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``ArtifactAccessDeniedError`` to an HTTP 403 JSON response."""
    resp.status = falcon.HTTP_403
    resp.media = {
        "title": "Access denied",
        "description": str(ex),
    }
