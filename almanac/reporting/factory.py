"""Build lifecycle services from a session factory and configuration.

The Dramatiq actors, the job CLI and the HTTP runtime all assemble the same
collaborators: the SQL reference adapters, the configured content generator,
the Markdown renderer and the filesystem artifact store.

Usage
-----
>>> config = ReportingConfig.from_env()
>>> scheduler = build_scheduler(session_factory, config)
>>> summary = await scheduler.run(Cadence.WEEKLY)

"""

from __future__ import annotations

import secrets
import typing as typ

from almanac.adapters import (
    LoggingNotifier,
    SqlEntitlementService,
    SqlEntryStore,
    SqlUserDirectory,
)
from almanac.eligibility import EligibilityFilter
from almanac.generation import create_report_generator
from almanac.logging import get_logger, log_warning
from almanac.reporting.artifacts import FilesystemArtifactStore, UrlSigner
from almanac.reporting.config import ReportingConfig
from almanac.reporting.export import ExportDependencies, ExportService
from almanac.reporting.markdown import MarkdownReportRenderer
from almanac.reporting.observability import ReportingEventLogger
from almanac.reporting.reaper import StuckJobReaper
from almanac.reporting.scheduler import GenerationScheduler, SchedulerDependencies
from almanac.reporting.service import (
    ReportGenerationDependencies,
    ReportGenerationService,
)
from almanac.reporting.state import ReportStateMachine

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


def build_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    config: ReportingConfig | None = None,
) -> GenerationScheduler:
    """Build a ``GenerationScheduler`` wired to the SQL adapters."""
    resolved = config or ReportingConfig.from_env()
    entry_store = SqlEntryStore(session_factory)
    generation = ReportGenerationService(
        ReportGenerationDependencies(
            state_machine=ReportStateMachine(session_factory),
            content_generator=create_report_generator(
                resolved.report_generator, entry_store=entry_store
            ),
            notifier=LoggingNotifier(),
        )
    )
    dependencies = SchedulerDependencies(
        users=SqlUserDirectory(session_factory),
        eligibility=EligibilityFilter(SqlEntitlementService(session_factory), entry_store),
        generation=generation,
    )
    return GenerationScheduler(
        dependencies,
        config=resolved,
        event_logger=ReportingEventLogger(),
    )


def build_reaper(
    session_factory: async_sessionmaker[AsyncSession],
    config: ReportingConfig | None = None,
) -> StuckJobReaper:
    """Build a ``StuckJobReaper`` using the configured threshold."""
    return StuckJobReaper(
        session_factory,
        config=config or ReportingConfig.from_env(),
        event_logger=ReportingEventLogger(),
    )


def build_artifact_store(config: ReportingConfig) -> FilesystemArtifactStore:
    """Build the filesystem artifact store described by ``config``.

    Without ``ALMANAC_ARTIFACT_SIGNING_KEY`` an ephemeral key is generated,
    so download links stop verifying when the process restarts.
    """
    key = config.artifact_signing_key
    if key is None:
        log_warning(
            logger,
            "ALMANAC_ARTIFACT_SIGNING_KEY is not set; using an ephemeral key",
        )
        key = secrets.token_hex(32)
    return FilesystemArtifactStore(
        config.artifact_path,
        base_url=config.artifact_base_url,
        signer=UrlSigner(key.encode("utf-8")),
    )


def build_export_service(
    session_factory: async_sessionmaker[AsyncSession],
    config: ReportingConfig | None = None,
    artifact_store: FilesystemArtifactStore | None = None,
) -> ExportService:
    """Build an ``ExportService`` rendering Markdown to the filesystem store."""
    resolved = config or ReportingConfig.from_env()
    dependencies = ExportDependencies(
        session_factory=session_factory,
        entry_store=SqlEntryStore(session_factory),
        renderer=MarkdownReportRenderer(),
        artifact_store=artifact_store or build_artifact_store(resolved),
    )
    return ExportService(
        dependencies,
        config=resolved,
        event_logger=ReportingEventLogger(),
    )


__all__ = [
    "build_artifact_store",
    "build_export_service",
    "build_reaper",
    "build_scheduler",
]
