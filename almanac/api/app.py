"""Application factory for the Almanac Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with export endpoints::

    from almanac.api.app import AppDependencies, create_app

    deps = AppDependencies(
        session_factory=session_factory,
        export_service=export_service,
        artifact_store=artifact_store,
        principal_verifier=PrincipalVerifier(gateway_key),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from almanac.api.auth import PrincipalMiddleware, PrincipalVerifier
from almanac.api.errors import (
    ArtifactAccessDeniedError,
    InvalidInputError,
    handle_artifact_access_denied,
    handle_export_error,
    handle_invalid_input,
)
from almanac.api.health.resources import HealthResource, ReadyResource
from almanac.reporting.errors import ExportError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from almanac.reporting.artifacts import FilesystemArtifactStore
    from almanac.reporting.export import ExportService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    session_factory
        Async session factory; enables the database readiness check.
    export_service
        Enables ``POST /users/{user_id}/reports/{report_id}/export``.
    artifact_store
        Enables ``GET /artifacts/{user_id}/{filename}``.
    principal_verifier
        Verifies the gateway-forwarded caller. Without it no request carries
        a principal and every export is rejected as unauthenticated.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    export_service: ExportService | None = None
    artifact_store: FilesystemArtifactStore | None = None
    principal_verifier: PrincipalVerifier | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered. Export and artifact
    routes are added only when their collaborators are provided.

    Parameters
    ----------
    dependencies
        Optional application dependencies.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    middleware = (
        [PrincipalMiddleware(deps.principal_verifier)]
        if deps.principal_verifier is not None
        else []
    )
    app = falcon.asgi.App(middleware=middleware)

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(deps.session_factory))

    if deps.export_service is not None:
        from almanac.api.resources import ExportResource

        app.add_route(
            "/users/{user_id}/reports/{report_id}/export",
            ExportResource(deps.export_service),
        )

    if deps.artifact_store is not None:
        from almanac.api.resources import ArtifactResource

        app.add_route(
            "/artifacts/{user_id}/{filename}",
            ArtifactResource(deps.artifact_store),
        )

    app.add_error_handler(ExportError, handle_export_error)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(ArtifactAccessDeniedError, handle_artifact_access_denied)

    return app
