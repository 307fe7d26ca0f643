"""Behavioural coverage for redacted report exports."""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import typing as typ
from urllib.parse import parse_qs, urlsplit

from pytest_bdd import given, parsers, scenario, then, when
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from almanac.adapters import SqlEntryStore
from almanac.models import GeneratedContent, ReportSection
from almanac.periods import Cadence, compute_period
from almanac.reporting.artifacts import FilesystemArtifactStore, UrlSigner
from almanac.reporting.errors import ExportErrorCode, ReportNotReadyError
from almanac.reporting.export import ExportDependencies, ExportResult, ExportService
from almanac.reporting.markdown import MarkdownReportRenderer
from almanac.reporting.state import ReportStateMachine
from almanac.storage import (
    JournalEntry,
    Report,
    ReportPreferences,
    ReportStatus,
    init_storage,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

_NOW = dt.datetime(2026, 2, 1, 6, 0, tzinfo=dt.UTC)
_PERIOD = compute_period(Cadence.MONTHLY, _NOW)
_RID = "monthly-2026-01-01"
_USER = "user-1"
_SECTIONS = (
    ReportSection(
        id="narrative_arc",
        title="Month in Review",
        narrative="Long walks with Jordan Lee. Jordan Lee suggested the coast.",
        entry_refs=("clean", "flagged", "ghost"),
    ),
    ReportSection(id="goals", title="Goal Progress", narrative="Ran twice a week."),
    ReportSection(
        id="crisis_resources",
        title="Support",
        narrative="Call 988 any time.",
    ),
)


class ExportContext(typ.TypedDict, total=False):
    """Mutable context shared between steps."""

    database_url: str
    artifact_root: Path
    store: FilesystemArtifactStore
    result: ExportResult
    error: Exception


@contextlib.asynccontextmanager
async def _sessions(
    database_url: str,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(database_url)
    try:
        await init_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


def _context(database_url: str, tmp_path: Path) -> ExportContext:
    artifact_root = tmp_path / "artifacts"
    return {
        "database_url": database_url,
        "artifact_root": artifact_root,
        "store": FilesystemArtifactStore(
            artifact_root,
            base_url="https://reports.example.com",
            signer=UrlSigner(b"feature-key"),
            clock=lambda: _NOW,
        ),
    }


async def _claim(session_factory: async_sessionmaker[AsyncSession]) -> None:
    machine = ReportStateMachine(session_factory)
    claimed = await machine.begin_attempt(_USER, Cadence.MONTHLY, _PERIOD, now=_NOW)
    assert claimed is not None


@scenario(
    "../export_redaction.feature",
    "Exporting a ready report applies every redaction",
)
def test_export_applies_redactions() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../export_redaction.feature",
    "Exporting a report that is still generating",
)
def test_export_refuses_generating_report() -> None:
    """Wrapper for pytest-bdd scenario."""


@given(
    "a ready monthly report mentioning Jordan Lee",
    target_fixture="export_context",
)
def given_ready_report(database_url: str, tmp_path: Path) -> ExportContext:
    """Store a ready monthly report with three sections."""

    async def _run() -> None:
        async with _sessions(database_url) as session_factory:
            await _claim(session_factory)
            await ReportStateMachine(session_factory).mark_ready(
                _USER,
                _RID,
                GeneratedContent(sections=_SECTIONS, metadata={"entry_count": 2}),
            )

    asyncio.run(_run())
    return _context(database_url, tmp_path)


@given(
    "a monthly report that is still generating",
    target_fixture="export_context",
)
def given_generating_report(database_url: str, tmp_path: Path) -> ExportContext:
    """Store a report whose generation attempt is in flight."""

    async def _run() -> None:
        async with _sessions(database_url) as session_factory:
            await _claim(session_factory)

    asyncio.run(_run())
    return _context(database_url, tmp_path)


@given("the report references a flagged entry and an unknown entry")
def given_flagged_refs(export_context: ExportContext) -> None:
    """Persist the referenced entries; ``ghost`` is never stored."""

    async def _run() -> None:
        async with (
            _sessions(export_context["database_url"]) as session_factory,
            session_factory() as session,
            session.begin(),
        ):
            session.add_all(
                [
                    JournalEntry(id="clean", user_id=_USER, created_at=_PERIOD.start),
                    JournalEntry(
                        id="flagged",
                        user_id=_USER,
                        created_at=_PERIOD.start,
                        safety_flagged=True,
                    ),
                ]
            )

    asyncio.run(_run())


@given(
    parsers.parse('the user hid the goals section and anonymized "{name}"'),
)
def given_preferences(export_context: ExportContext, name: str) -> None:
    """Record the user's privacy preferences for the report."""

    async def _run() -> None:
        async with (
            _sessions(export_context["database_url"]) as session_factory,
            session_factory() as session,
            session.begin(),
        ):
            session.add(
                ReportPreferences(
                    user_id=_USER,
                    report_id=_RID,
                    hidden_sections=["goals"],
                    anonymized_entities=[name],
                )
            )

    asyncio.run(_run())


@when("the user exports the report")
def when_user_exports(export_context: ExportContext) -> None:
    """Export through the service, capturing typed failures."""

    async def _run() -> ExportResult:
        async with _sessions(export_context["database_url"]) as session_factory:
            service = ExportService(
                ExportDependencies(
                    session_factory=session_factory,
                    entry_store=SqlEntryStore(session_factory),
                    renderer=MarkdownReportRenderer(),
                    artifact_store=export_context["store"],
                )
            )
            return await service.export_report(_USER, _RID)

    try:
        export_context["result"] = asyncio.run(_run())
    except ReportNotReadyError as exc:
        export_context["error"] = exc


def _rendered(export_context: ExportContext) -> str:
    return (export_context["artifact_root"] / _USER / f"{_RID}.md").read_text()


@then("the download link is signed and expires in 24 hours")
def then_link_signed(export_context: ExportContext) -> None:
    """The URL carries a verifiable signature for the default lifetime."""
    result = export_context["result"]
    assert result.expires_at == _NOW + dt.timedelta(hours=24)

    url = urlsplit(result.download_url)
    assert url.path == f"/artifacts/{_USER}/{_RID}.md"
    query = parse_qs(url.query)
    expires = int(query["expires"][0])
    signature = query["signature"][0]
    store = export_context["store"]
    assert store.verify(_USER, f"{_RID}.md", expires, signature) is True
    assert store.verify(_USER, f"{_RID}.md", expires + 1, signature) is False


@then(parsers.parse('the export mentions "{placeholder}" instead of "{name}"'))
def then_name_anonymized(
    export_context: ExportContext, placeholder: str, name: str
) -> None:
    """Every mention of the name is replaced by its placeholder."""
    rendered = _rendered(export_context)
    assert name not in rendered
    assert rendered.count(placeholder) == 2


@then("the export omits the goals and crisis resources sections")
def then_sections_omitted(export_context: ExportContext) -> None:
    """Hidden and crisis sections never reach the artifact."""
    rendered = _rendered(export_context)
    assert "Month in Review" in rendered
    assert "Goal Progress" not in rendered
    assert "Call 988" not in rendered


@then("the stored report is unchanged")
def then_report_unchanged(export_context: ExportContext) -> None:
    """Redaction works on a copy of the stored sections."""

    async def _run() -> Report | None:
        async with (
            _sessions(export_context["database_url"]) as session_factory,
            session_factory() as session,
        ):
            return await session.get(Report, (_USER, _RID))

    report = asyncio.run(_run())
    assert report is not None
    assert report.status is ReportStatus.READY
    assert [section["id"] for section in report.sections] == [
        "narrative_arc",
        "goals",
        "crisis_resources",
    ]
    assert "Jordan Lee" in report.sections[0]["narrative"]
    assert report.sections[0]["entry_refs"] == ["clean", "flagged", "ghost"]


@then("the export is refused as not ready")
def then_refused(export_context: ExportContext) -> None:
    """Only ready reports can be exported."""
    assert "result" not in export_context
    error = export_context["error"]
    assert isinstance(error, ReportNotReadyError)
    assert error.code is ExportErrorCode.FAILED_PRECONDITION
