"""Almanac HTTP runtime.

``create_app`` is the Granian factory entrypoint. When
``ALMANAC_DATABASE_URL`` is set it wires the export service and the artifact
store, so the app serves export requests and signed downloads. Otherwise it
starts with only ``/health`` and ``/ready``.

Environment:

- ``ALMANAC_HOST``: bind address (default ``0.0.0.0``)
- ``ALMANAC_PORT``: listen port (default ``8080``)
- ``ALMANAC_LOG_LEVEL``: log level (default ``INFO``)
- ``ALMANAC_DATABASE_URL``: database URL (optional)

Reporting tunables (artifact path, signing keys, URL lifetime) are read by
``ReportingConfig.from_env``. Export requests must carry a caller signed
with ``ALMANAC_GATEWAY_SIGNING_KEY``.

Run the service with ``almanac-runtime`` or ``python -m almanac.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from almanac.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If ``port_str`` is not an integer in the range 1-65535.

    """
    try:
        port = int(port_str)
    except ValueError as exc:
        log_error(logger, "Invalid ALMANAC_PORT value: %r", port_str)
        raise SystemExit(1) from exc
    if not (_MIN_PORT <= port <= _MAX_PORT):
        log_error(
            logger,
            "ALMANAC_PORT %d outside valid range %d-%d",
            port,
            _MIN_PORT,
            _MAX_PORT,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment."""
    from almanac.api.app import AppDependencies
    from almanac.api.app import create_app as _create_api_app
    from almanac.api.auth import PrincipalVerifier

    database_url = os.environ.get("ALMANAC_DATABASE_URL")
    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from almanac.reporting.config import ReportingConfig
    from almanac.reporting.factory import build_artifact_store, build_export_service

    config = ReportingConfig.from_env()
    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    artifact_store = build_artifact_store(config)
    principal_verifier = None
    if config.gateway_signing_key is None:
        log_warning(
            logger,
            "ALMANAC_GATEWAY_SIGNING_KEY is not set; export requests will be "
            "rejected as unauthenticated",
        )
    else:
        principal_verifier = PrincipalVerifier(
            config.gateway_signing_key.encode("utf-8")
        )

    return _create_api_app(
        AppDependencies(
            session_factory=session_factory,
            export_service=build_export_service(
                session_factory, config, artifact_store=artifact_store
            ),
            artifact_store=artifact_store,
            principal_verifier=principal_verifier,
        )
    )


def main() -> None:
    """Start the Almanac runtime under Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("ALMANAC_HOST", "0.0.0.0")  # noqa: S104 - container bind
    port = _parse_port(os.environ.get("ALMANAC_PORT", "8080"))
    raw_level = os.environ.get("ALMANAC_LOG_LEVEL", "INFO")

    level, invalid = configure_logging(raw_level)
    if invalid:
        log_warning(
            logger,
            "Invalid ALMANAC_LOG_LEVEL %r, falling back to %s",
            raw_level,
            level,
        )

    log_info(logger, "Starting Almanac runtime on %s:%d (log_level=%s)", host, port, level)

    server = Granian(
        "almanac.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
