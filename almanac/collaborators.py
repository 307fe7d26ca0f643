"""Ports for the services the report lifecycle depends on.

The orchestrator never talks to entitlement storage, the journal, the content
generator, the renderer or object storage directly. Each is reached through
one of the protocols below; reference adapters live in ``almanac.adapters``
and ``almanac.generation``.

All protocols are ``runtime_checkable`` so adapters can be verified with
``isinstance`` in wiring code and tests.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from almanac.models import (
        EntryCount,
        EntrySafetyFlags,
        GeneratedContent,
        ReportSnapshot,
    )
    from almanac.periods import Cadence, ReportPeriod


@typ.runtime_checkable
class EntitlementService(typ.Protocol):
    """Answers whether a user holds an active premium entitlement."""

    async def is_premium(self, user_id: str) -> bool:
        """Return ``True`` when ``user_id`` may receive premium cadences."""
        ...


@typ.runtime_checkable
class EntryStore(typ.Protocol):
    """Read-only access to journal entry timestamps and safety flags."""

    async def count_entries(self, user_id: str, period: ReportPeriod) -> EntryCount:
        """Count entries and distinct UTC days inside ``period``."""
        ...

    async def get_entry_safety_flags(
        self,
        user_id: str,
        entry_ids: cabc.Collection[str],
    ) -> dict[str, EntrySafetyFlags]:
        """Return flags for the ids that resolve; unknown ids are omitted."""
        ...


@typ.runtime_checkable
class UserDirectory(typ.Protocol):
    """Enumerates the user population for a scheduler sweep."""

    async def list_user_ids(self) -> list[str]:
        """Return every user id, metadata only."""
        ...


@typ.runtime_checkable
class ReportContentGenerator(typ.Protocol):
    """Produces the sections and metadata of one report.

    Treated as an opaque, possibly slow, possibly failing black box. Any
    exception raised here is recorded as a generation failure.
    """

    async def generate(
        self,
        user_id: str,
        cadence: Cadence,
        period: ReportPeriod,
    ) -> GeneratedContent:
        """Generate report content for ``user_id`` over ``period``."""
        ...


@dc.dataclass(frozen=True, slots=True)
class RenderedArtifact:
    """Binary output of a renderer.

    Attributes
    ----------
    content
        Encoded artifact bytes.
    media_type
        MIME type served with the artifact.
    extension
        File extension without the dot.

    """

    content: bytes
    media_type: str
    extension: str


@typ.runtime_checkable
class ReportRenderer(typ.Protocol):
    """Turns a redacted report snapshot into a downloadable artifact."""

    def render(self, snapshot: ReportSnapshot) -> RenderedArtifact:
        """Render ``snapshot``."""
        ...


@dc.dataclass(frozen=True, slots=True)
class PublishedArtifact:
    """Location of a published artifact and when access lapses."""

    url: str
    expires_at: dt.datetime


@typ.runtime_checkable
class ArtifactStore(typ.Protocol):
    """Object storage with time-limited signed URLs."""

    async def publish(
        self,
        user_id: str,
        report_id: str,
        artifact: RenderedArtifact,
        *,
        ttl: dt.timedelta,
    ) -> PublishedArtifact:
        """Store ``artifact`` and return a URL valid for ``ttl``."""
        ...


@typ.runtime_checkable
class Notifier(typ.Protocol):
    """Delivers "your report is ready" notifications."""

    async def notify_report_ready(
        self,
        user_id: str,
        report_id: str,
        cadence: Cadence,
    ) -> None:
        """Notify ``user_id`` that ``report_id`` can be viewed."""
        ...


__all__ = [
    "ArtifactStore",
    "EntitlementService",
    "EntryStore",
    "Notifier",
    "PublishedArtifact",
    "RenderedArtifact",
    "ReportContentGenerator",
    "ReportRenderer",
    "UserDirectory",
]
