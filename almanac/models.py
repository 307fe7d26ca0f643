"""Value types exchanged between the report lifecycle components.

These structures are immutable ``msgspec`` structs. Storage rows are
converted into ``ReportSnapshot`` values before they reach the privacy layer,
so filtering and redaction can never mutate a persisted report.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from almanac.periods import Cadence  # noqa: TC001

CRISIS_RESOURCES_SECTION = "crisis_resources"


class ReportSection(msgspec.Struct, kw_only=True, frozen=True):
    """One narrative section of a life report.

    Attributes
    ----------
    id
        Stable section identifier (``summary``, ``mood_trend``, ...).
    title
        Display heading.
    narrative
        Narrative text produced by the content generator.
    entry_refs
        Journal entry ids the section draws on; the unit of redaction.
    chart_data
        Optional opaque chart payload for the renderer.

    """

    id: str
    title: str
    narrative: str = ""
    entry_refs: tuple[str, ...] = ()
    chart_data: dict[str, typ.Any] | None = None


class ReportSnapshot(msgspec.Struct, kw_only=True, frozen=True):
    """Read-only view of a stored report handed to filters and renderers."""

    id: str
    user_id: str
    cadence: Cadence
    period_start: dt.datetime
    period_end: dt.datetime
    generated_at: dt.datetime
    sections: tuple[ReportSection, ...] = ()
    metadata: dict[str, typ.Any] = msgspec.field(default_factory=dict)

    def all_entry_refs(self) -> frozenset[str]:
        """Return every entry id referenced by any section."""
        return frozenset(ref for section in self.sections for ref in section.entry_refs)


class GeneratedContent(msgspec.Struct, kw_only=True, frozen=True):
    """Output of a report content generator for one user and period."""

    sections: tuple[ReportSection, ...]
    metadata: dict[str, typ.Any] = msgspec.field(default_factory=dict)


class EntryCount(msgspec.Struct, kw_only=True, frozen=True):
    """Journal activity inside a period, counted by timestamp only."""

    count: int
    distinct_days: int


class EntrySafetyFlags(msgspec.Struct, kw_only=True, frozen=True):
    """Safety classification of one journal entry."""

    safety_flagged: bool = False
    has_warning_indicators: bool = False


class JournalEntry(msgspec.Struct, kw_only=True, frozen=True):
    """Journal entry as seen by the entry-level visibility filter."""

    id: str
    created_at: dt.datetime
    text: str = ""
    safety_flagged: bool = False
    has_warning_indicators: bool = False


class PrivacyPreferences(msgspec.Struct, kw_only=True, frozen=True):
    """User-authored export redactions for one report.

    Attributes
    ----------
    hidden_sections
        Section ids to drop from the user's exports.
    anonymized_entities
        Names to replace with ``Person A``, ``Person B``, ... in supplied
        order.

    """

    hidden_sections: frozenset[str] = frozenset()
    anonymized_entities: tuple[str, ...] = ()


def section_to_payload(section: ReportSection) -> dict[str, typ.Any]:
    """Convert a section to the JSON shape stored on the report row."""
    return msgspec.to_builtins(section)


def section_from_payload(payload: dict[str, typ.Any]) -> ReportSection:
    """Rebuild a section from its stored JSON shape."""
    return msgspec.convert(payload, type=ReportSection)


__all__ = [
    "CRISIS_RESOURCES_SECTION",
    "EntryCount",
    "EntrySafetyFlags",
    "GeneratedContent",
    "JournalEntry",
    "PrivacyPreferences",
    "ReportSection",
    "ReportSnapshot",
    "section_from_payload",
    "section_to_payload",
]
