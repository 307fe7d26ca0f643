"""Unit tests for export redaction."""

from __future__ import annotations

import datetime as dt

import msgspec
import pytest

from almanac.models import (
    EntrySafetyFlags,
    PrivacyPreferences,
    ReportSection,
    ReportSnapshot,
)
from almanac.periods import Cadence
from almanac.privacy import ExportRedactor, SafetyIndex, anonymize_text, placeholder_label

_SNAPSHOT = ReportSnapshot(
    id="monthly-2026-01-01",
    user_id="user-1",
    cadence=Cadence.MONTHLY,
    period_start=dt.datetime(2026, 1, 1, tzinfo=dt.UTC),
    period_end=dt.datetime(2026, 1, 31, 23, 59, 59, 999_000, tzinfo=dt.UTC),
    generated_at=dt.datetime(2026, 2, 1, 6, 5, tzinfo=dt.UTC),
    sections=(
        ReportSection(
            id="narrative_arc",
            title="Month with Jordan Lee",
            narrative="You spent time with Jordan Lee and JORDAN LEE's dog. Sam called.",
            entry_refs=("e1", "e2"),
        ),
        ReportSection(id="goals", title="Goal Progress", narrative="Ran twice."),
        ReportSection(id="crisis_resources", title="Support", narrative="Call 988"),
    ),
)
_INDEX = SafetyIndex(
    {"e1": EntrySafetyFlags(), "e2": EntrySafetyFlags(has_warning_indicators=True)}
)


def test_anonymize_example() -> None:
    """Names are replaced case-insensitively with Person A."""
    assert anonymize_text("jordan lee said hi to Jordan Lee", ["Jordan Lee"]) == (
        "Person A said hi to Person A"
    )


def test_anonymize_treats_names_literally() -> None:
    """Regex metacharacters in names match literally."""
    assert anonymize_text("Met A.J. and AxJx", ["A.J."]) == "Met Person A and AxJx"


@pytest.mark.parametrize(
    ("text", "names", "expected"),
    [
        (
            "Jordan Lee joined the call",
            ("Lee", "Jordan Lee"),
            "Person B joined the call",
        ),
        ("Lee waved at Jordan Lee", ("Lee", "Jordan Lee"), "Person A waved at Person B"),
        ("Jordan met Per", ("Jordan", "Per"), "Person A met Person B"),
        ("Sam and sam", ("Sam", "SAM"), "Person A and Person A"),
        ("Nobody here", ("", "Ghost"), "Nobody here"),
    ],
)
def test_anonymize_matches_each_name_once(
    text: str, names: tuple[str, ...], expected: str
) -> None:
    """Longer names win over contained ones and placeholders are never rescanned."""
    assert anonymize_text(text, names) == expected


def test_redact_anonymizes_overview_insights() -> None:
    """Names in the overview insights are replaced too."""
    snapshot = msgspec.structs.replace(
        _SNAPSHOT,
        metadata={"entry_count": 6, "top_insights": ["Walks with Jordan Lee helped"]},
    )
    preferences = PrivacyPreferences(anonymized_entities=("Jordan Lee",))

    redacted = ExportRedactor().redact(snapshot, preferences, _INDEX)

    assert redacted.metadata["top_insights"] == ["Walks with Person A helped"]
    assert redacted.metadata["entry_count"] == 6
    assert snapshot.metadata["top_insights"] == ["Walks with Jordan Lee helped"]


@pytest.mark.parametrize(
    ("index", "label"),
    [(0, "Person A"), (1, "Person B"), (25, "Person Z"), (26, "Person 27")],
)
def test_placeholder_labels(index: int, label: str) -> None:
    """Placeholders are stable per position."""
    assert placeholder_label(index) == label


def test_redact_without_preferences_still_strips_crisis_content() -> None:
    """Absent preferences only remove what the export tier requires."""
    redacted = ExportRedactor().redact(_SNAPSHOT, None, _INDEX)

    assert [s.id for s in redacted.sections] == ["narrative_arc", "goals"]
    assert redacted.sections[0].entry_refs == ("e1",)
    assert "Jordan Lee" in redacted.sections[0].narrative


def test_redact_applies_preferences() -> None:
    """Hidden sections are dropped and names are anonymized in order."""
    preferences = PrivacyPreferences(
        hidden_sections=frozenset({"goals"}),
        anonymized_entities=("Jordan Lee", "Sam"),
    )

    redacted = ExportRedactor().redact(_SNAPSHOT, preferences, _INDEX)

    assert [s.id for s in redacted.sections] == ["narrative_arc"]
    section = redacted.sections[0]
    assert section.title == "Month with Person A"
    assert section.narrative == (
        "You spent time with Person A and Person A's dog. Person B called."
    )
    # The stored snapshot is untouched.
    assert _SNAPSHOT.sections[0].title == "Month with Jordan Lee"
    assert len(_SNAPSHOT.sections) == 3


def test_hidden_crisis_section_preference_is_harmless() -> None:
    """Hiding a section that export drops anyway has no other effect."""
    preferences = PrivacyPreferences(hidden_sections=frozenset({"crisis_resources"}))

    redacted = ExportRedactor().redact(_SNAPSHOT, preferences, _INDEX)

    assert [s.id for s in redacted.sections] == ["narrative_arc", "goals"]
