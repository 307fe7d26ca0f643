"""Deterministic mock implementation of ReportContentGenerator."""

from __future__ import annotations

import typing as typ

from almanac.models import GeneratedContent, ReportSection
from almanac.periods import Cadence

if typ.TYPE_CHECKING:
    from almanac.collaborators import EntryStore
    from almanac.periods import ReportPeriod

_SECTION_TITLES: dict[Cadence, tuple[tuple[str, str], ...]] = {
    Cadence.WEEKLY: (
        ("summary", "This Week"),
        ("insight", "Something You Might Not Have Noticed"),
        ("mood_trend", "Mood Trend"),
    ),
    Cadence.MONTHLY: (
        ("narrative_arc", "Month in Review"),
        ("patterns", "Top Patterns"),
        ("goals", "Goal Progress"),
        ("notable", "Notable Entries"),
    ),
    Cadence.QUARTERLY: (
        ("trajectory", "Life Trajectory"),
        ("pattern_evolution", "Pattern Evolution"),
        ("notable", "Notable Entries"),
    ),
    Cadence.ANNUAL: (
        ("year_narrative", "Your Year in Review"),
        ("milestones", "Growth Milestones"),
        ("notable", "Notable Entries"),
    ),
}

_REFERENCING_SECTIONS = frozenset({"summary", "narrative_arc", "trajectory", "notable"})


@typ.runtime_checkable
class EntryIndex(typ.Protocol):
    """Lists the journal entries written inside a period."""

    async def list_entry_ids(self, user_id: str, period: ReportPeriod) -> list[str]:
        """Return entry ids for ``user_id`` inside ``period``, oldest first."""
        ...


class MockReportGenerator:
    """Template-based content generator that never calls a model.

    Sections follow the per-cadence layout of the production generator;
    narratives are short templates filled from entry counts. When the entry
    store can also list entries, the summary and notable sections reference
    them so redaction has something to work on.

    Examples
    --------
    >>> generator = MockReportGenerator()
    >>> content = asyncio.run(
    ...     generator.generate("user-1", Cadence.WEEKLY, period)
    ... )
    >>> [section.id for section in content.sections]
    ['summary', 'insight', 'mood_trend']

    """

    def __init__(self, entry_store: EntryStore | None = None) -> None:
        """Optionally attach an entry store used for counts and references."""
        self._entry_store = entry_store

    async def generate(
        self,
        user_id: str,
        cadence: Cadence,
        period: ReportPeriod,
    ) -> GeneratedContent:
        """Return deterministic sections for ``cadence``."""
        entry_count, distinct_days = await self._count(user_id, period)
        entry_ids = await self._list(user_id, period)
        noun = "entry" if entry_count == 1 else "entries"
        lead = (
            f"You wrote {entry_count} journal {noun} across {distinct_days} "
            f"days between {period.first_day.isoformat()} and "
            f"{period.last_day.isoformat()}."
        )

        sections = []
        for section_id, title in _SECTION_TITLES[cadence]:
            refs = tuple(entry_ids) if section_id in _REFERENCING_SECTIONS else ()
            sections.append(
                ReportSection(
                    id=section_id,
                    title=title,
                    narrative=lead if refs or section_id == "summary" else "",
                    entry_refs=refs,
                    chart_data=(
                        {"kind": "sparkline", "points": []}
                        if section_id == "mood_trend"
                        else None
                    ),
                )
            )

        return GeneratedContent(
            sections=tuple(sections),
            metadata={
                "entry_count": entry_count,
                "mood_avg": None,
                "top_insights": [],
                "generator": "mock",
            },
        )

    async def _count(self, user_id: str, period: ReportPeriod) -> tuple[int, int]:
        if self._entry_store is None:
            return (0, 0)
        counted = await self._entry_store.count_entries(user_id, period)
        return (counted.count, counted.distinct_days)

    async def _list(self, user_id: str, period: ReportPeriod) -> list[str]:
        if not isinstance(self._entry_store, EntryIndex):
            return []
        return await self._entry_store.list_entry_ids(user_id, period)


__all__ = ["EntryIndex", "MockReportGenerator"]
