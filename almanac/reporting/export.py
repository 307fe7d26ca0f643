"""Export of a ready report as a redacted, downloadable artifact.

``ExportService.export_report`` performs, in order:

1. Validate the report id format (``InvalidReportIdError``).
2. Load the report (``ReportNotFoundError``).
3. Require status ``ready`` (``ReportNotReadyError``). Generating and failed
   reports look the same to the caller.
4. Load the user's privacy preferences for the report, if any.
5. Resolve safety flags for every referenced entry.
6. Apply the export-tier visibility filter and the user's redactions.
7. Render and publish with a time-limited URL.

The stored report is never modified.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from almanac.models import PrivacyPreferences
from almanac.periods import parse_report_id
from almanac.privacy import ExportRedactor, SafetyIndex
from almanac.reporting.config import ReportingConfig
from almanac.reporting.errors import (
    InvalidReportIdError,
    ReportNotFoundError,
    ReportNotReadyError,
)
from almanac.reporting.observability import ReportingEventLogger
from almanac.reporting.state import to_snapshot
from almanac.storage import Report, ReportPreferences, ReportStatus

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from almanac.collaborators import ArtifactStore, EntryStore, ReportRenderer
    from almanac.models import ReportSnapshot


@dc.dataclass(frozen=True, slots=True)
class ExportResult:
    """Where the exported artifact can be downloaded, and until when."""

    download_url: str
    expires_at: dt.datetime


@dc.dataclass(frozen=True, slots=True)
class ExportDependencies:
    """Collaborators required by ``ExportService``.

    Attributes
    ----------
    session_factory
        Async session factory for report and preference access.
    entry_store
        Source of entry safety flags.
    renderer
        Turns a redacted snapshot into an artifact.
    artifact_store
        Publishes artifacts behind signed URLs.

    """

    session_factory: async_sessionmaker[AsyncSession]
    entry_store: EntryStore
    renderer: ReportRenderer
    artifact_store: ArtifactStore


def preferences_from_row(row: ReportPreferences | None) -> PrivacyPreferences | None:
    """Convert a stored preferences row into the value type."""
    if row is None:
        return None
    return PrivacyPreferences(
        hidden_sections=frozenset(row.hidden_sections or ()),
        anonymized_entities=tuple(row.anonymized_entities or ()),
    )


class ExportService:
    """Produce redacted exports of ready reports."""

    def __init__(
        self,
        dependencies: ExportDependencies,
        config: ReportingConfig | None = None,
        redactor: ExportRedactor | None = None,
        event_logger: ReportingEventLogger | None = None,
    ) -> None:
        """Configure the service with its collaborators."""
        self._session_factory = dependencies.session_factory
        self._entry_store = dependencies.entry_store
        self._renderer = dependencies.renderer
        self._artifact_store = dependencies.artifact_store
        self._config = config or ReportingConfig()
        self._redactor = redactor or ExportRedactor()
        self._event_logger = event_logger or ReportingEventLogger()

    async def load_ready_report(
        self,
        user_id: str,
        report_id: str,
    ) -> tuple[ReportSnapshot, PrivacyPreferences | None]:
        """Return the ready report and its preferences.

        Raises
        ------
        InvalidReportIdError
            If ``report_id`` is not ``{cadence}-{YYYY-MM-DD}``.
        ReportNotFoundError
            If the user has no such report.
        ReportNotReadyError
            If the report is generating or failed.

        """
        try:
            parse_report_id(report_id)
        except ValueError:
            raise InvalidReportIdError(report_id) from None

        async with self._session_factory() as session:
            report = await session.get(Report, (user_id, report_id))
            if report is None:
                raise ReportNotFoundError(report_id)
            if report.status is not ReportStatus.READY:
                raise ReportNotReadyError(report_id)
            snapshot = to_snapshot(report)
            row = await session.get(ReportPreferences, (user_id, report_id))
            return snapshot, preferences_from_row(row)

    async def export_report(self, user_id: str, report_id: str) -> ExportResult:
        """Redact, render and publish a ready report.

        Parameters
        ----------
        user_id
            Owner of the report; exports are always scoped to the caller.
        report_id
            Deterministic report id.

        Returns
        -------
        ExportResult
            Signed download URL and its expiry.

        """
        snapshot, preferences = await self.load_ready_report(user_id, report_id)
        safety_index = await SafetyIndex.load(
            self._entry_store, user_id, snapshot.all_entry_refs()
        )
        redacted = self._redactor.redact(snapshot, preferences, safety_index)
        artifact = self._renderer.render(redacted)
        published = await self._artifact_store.publish(
            user_id,
            report_id,
            artifact,
            ttl=self._config.export_url_ttl,
        )
        self._event_logger.log_report_exported(
            user_id=user_id,
            report_id=report_id,
            sections=len(redacted.sections),
            expires_at=published.expires_at,
        )
        return ExportResult(
            download_url=published.url,
            expires_at=published.expires_at,
        )


__all__ = [
    "ExportDependencies",
    "ExportResult",
    "ExportService",
    "preferences_from_row",
]
