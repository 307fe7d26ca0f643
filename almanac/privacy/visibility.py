"""Three-tier visibility model for journal-derived report content.

Tiers, from least to most restrictive:

``personal``
    The user's own in-app view. Everything is visible, including crisis
    entries.
``shareable``
    Content sent to others. Entries with ``safety_flagged`` are removed.
``export``
    Downloadable artifacts. Entries that are ``safety_flagged`` or carry
    ``has_warning_indicators`` are removed.

Every non-personal tier drops the ``crisis_resources`` section outright.
Section entry references are resolved through a ``SafetyIndex``; an id the
index cannot resolve is an ``UnknownEntry`` and is always excluded.

Nothing here mutates its inputs: entries and sections are frozen structs and
each filter returns new collections.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

import msgspec

from almanac.models import CRISIS_RESOURCES_SECTION, EntrySafetyFlags

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from almanac.collaborators import EntryStore
    from almanac.models import JournalEntry, ReportSection


class VisibilityTier(enum.StrEnum):
    """Audience a view of a report is built for."""

    PERSONAL = "personal"
    SHAREABLE = "shareable"
    EXPORT = "export"

    @property
    def is_shared(self) -> bool:
        """Return whether content leaves the user's personal view."""
        return self is not VisibilityTier.PERSONAL


@dc.dataclass(frozen=True, slots=True)
class KnownSafety:
    """Safety flags resolved for an entry id."""

    entry_id: str
    flags: EntrySafetyFlags


@dc.dataclass(frozen=True, slots=True)
class UnknownEntry:
    """An entry id with no resolvable safety metadata."""

    entry_id: str


SafetyLookup: typ.TypeAlias = KnownSafety | UnknownEntry


class SafetyIndex:
    """Read-only map from entry id to safety flags."""

    def __init__(self, flags: cabc.Mapping[str, EntrySafetyFlags]) -> None:
        """Wrap a mapping of resolved flags."""
        self._flags = dict(flags)

    @classmethod
    async def load(
        cls,
        entry_store: EntryStore,
        user_id: str,
        entry_ids: cabc.Collection[str],
    ) -> SafetyIndex:
        """Resolve ``entry_ids`` for ``user_id`` through ``entry_store``."""
        if not entry_ids:
            return cls({})
        return cls(await entry_store.get_entry_safety_flags(user_id, entry_ids))

    def lookup(self, entry_id: str) -> SafetyLookup:
        """Return the flags for ``entry_id`` or ``UnknownEntry``."""
        flags = self._flags.get(entry_id)
        if flags is None:
            return UnknownEntry(entry_id)
        return KnownSafety(entry_id, flags)

    def __len__(self) -> int:
        """Return the number of resolved entries."""
        return len(self._flags)


def is_visible(flags: EntrySafetyFlags, tier: VisibilityTier) -> bool:
    """Return whether an entry with ``flags`` may appear at ``tier``."""
    match tier:
        case VisibilityTier.PERSONAL:
            return True
        case VisibilityTier.SHAREABLE:
            return not flags.safety_flagged
        case VisibilityTier.EXPORT:
            return not (flags.safety_flagged or flags.has_warning_indicators)


def is_ref_visible(lookup: SafetyLookup, tier: VisibilityTier) -> bool:
    """Return whether a resolved reference may appear at ``tier``.

    Unknown entries are hidden at every shared tier.
    """
    if tier is VisibilityTier.PERSONAL:
        return True
    match lookup:
        case UnknownEntry():
            return False
        case KnownSafety(flags=flags):
            return is_visible(flags, tier)


def filter_entries(
    entries: cabc.Iterable[JournalEntry],
    tier: VisibilityTier,
) -> list[JournalEntry]:
    """Return the entries visible at ``tier`` as a new list."""
    return [
        entry
        for entry in entries
        if is_visible(
            EntrySafetyFlags(
                safety_flagged=entry.safety_flagged,
                has_warning_indicators=entry.has_warning_indicators,
            ),
            tier,
        )
    ]


def strip_crisis_resources(
    sections: cabc.Iterable[ReportSection],
) -> tuple[ReportSection, ...]:
    """Drop the ``crisis_resources`` section."""
    return tuple(
        section for section in sections if section.id != CRISIS_RESOURCES_SECTION
    )


def filter_section_refs(
    section: ReportSection,
    safety_index: SafetyIndex,
    tier: VisibilityTier,
) -> ReportSection:
    """Return ``section`` keeping only references visible at ``tier``."""
    kept = tuple(
        ref
        for ref in section.entry_refs
        if is_ref_visible(safety_index.lookup(ref), tier)
    )
    if kept == section.entry_refs:
        return section
    return msgspec.structs.replace(section, entry_refs=kept)


def filter_sections(
    sections: cabc.Iterable[ReportSection],
    safety_index: SafetyIndex,
    tier: VisibilityTier,
) -> tuple[ReportSection, ...]:
    """Build the section view for ``tier``.

    The personal tier returns every section unchanged. Shared tiers drop
    ``crisis_resources`` first, then filter each section's references.
    """
    if not tier.is_shared:
        return tuple(sections)
    return tuple(
        filter_section_refs(section, safety_index, tier)
        for section in strip_crisis_resources(sections)
    )


__all__ = [
    "KnownSafety",
    "SafetyIndex",
    "SafetyLookup",
    "UnknownEntry",
    "VisibilityTier",
    "filter_entries",
    "filter_section_refs",
    "filter_sections",
    "is_ref_visible",
    "is_visible",
    "strip_crisis_resources",
]
