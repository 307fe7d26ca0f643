"""Report export and artifact download resources.

``ExportResource`` handles ``POST /users/{user_id}/reports/{report_id}/export``
and returns a signed download URL. ``ArtifactResource`` serves
``GET /artifacts/{user_id}/{filename}`` for URLs the artifact store signed.

``ExportResource`` only serves the caller's own reports: the verified principal
that ``PrincipalMiddleware`` attaches must match ``user_id`` in the path.
"""

from __future__ import annotations

import asyncio
import typing as typ

import falcon

from almanac.api.errors import ArtifactAccessDeniedError, InvalidInputError
from almanac.reporting.errors import PermissionDeniedError, UnauthenticatedError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from almanac.reporting.artifacts import FilesystemArtifactStore
    from almanac.reporting.export import ExportService

__all__ = ["ArtifactResource", "ExportResource"]


class ExportResource:
    """Resource for exporting a ready report."""

    def __init__(self, export_service: ExportService) -> None:
        """Configure the resource with the export service."""
        self._export_service = export_service

    async def on_post(
        self,
        req: Request,
        resp: Response,
        *,
        user_id: str,
        report_id: str,
    ) -> None:
        """Handle POST request to export a report.

        Parameters
        ----------
        req
            Falcon request carrying the verified principal.
        resp
            Falcon response populated with the download URL.
        user_id
            Owner of the report from the URL path.
        report_id
            Deterministic report id from the URL path.

        Raises
        ------
        UnauthenticatedError
            If the request carries no verified principal.
        PermissionDeniedError
            If the principal is not ``user_id``.

        """
        principal = getattr(req.context, "principal", None)
        if principal is None:
            raise UnauthenticatedError(report_id)
        if principal != user_id:
            raise PermissionDeniedError(report_id)

        result = await self._export_service.export_report(user_id, report_id)
        resp.media = {
            "download_url": result.download_url,
            "expires_at": result.expires_at.isoformat(),
        }
        resp.status = falcon.HTTP_200


def _parse_expires(raw: str | None) -> int:
    if raw is None or not raw.strip():
        raise InvalidInputError("is required", field="expires")
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError("must be an integer", field="expires") from None


class ArtifactResource:
    """Resource serving published artifacts behind signed URLs."""

    def __init__(self, artifact_store: FilesystemArtifactStore) -> None:
        """Configure the resource with the artifact store."""
        self._artifact_store = artifact_store

    async def on_get(
        self,
        req: Request,
        resp: Response,
        *,
        user_id: str,
        filename: str,
    ) -> None:
        """Handle GET request for a signed artifact URL.

        Raises
        ------
        ArtifactAccessDeniedError
            If the signature does not match or the link has expired.
        falcon.HTTPNotFound
            If the artifact no longer exists.

        """
        expires = _parse_expires(req.get_param("expires"))
        signature = req.get_param("signature") or ""
        if not self._artifact_store.verify(user_id, filename, expires, signature):
            raise ArtifactAccessDeniedError

        stored = await self._artifact_store.open(user_id, filename)
        if stored is None:
            raise falcon.HTTPNotFound

        resp.data = await asyncio.to_thread(stored.path.read_bytes)
        resp.content_type = stored.media_type
        resp.downloadable_as = filename
        resp.status = falcon.HTTP_200
