"""User-controlled redaction applied to a report right before rendering.

``ExportRedactor.redact`` works on an immutable ``ReportSnapshot`` and
returns a new one:

1. Sections named in ``hidden_sections`` are removed.
2. Crisis stripping is re-applied at the export tier: the
   ``crisis_resources`` section is dropped and every entry reference that is
   flagged, carries warning indicators, or cannot be resolved is removed.
3. Each name in ``anonymized_entities`` is replaced, case-insensitively, by a
   stable placeholder (``Person A``, ``Person B``, ...) in every remaining
   section's title and narrative and in the overview's ``top_insights``.

Examples
--------
>>> anonymize_text("Lunch with jordan lee", ("Jordan Lee",))
'Lunch with Person A'
>>> placeholder_label(26)
'Person 27'

"""

from __future__ import annotations

import re
import string
import typing as typ

import msgspec

from almanac.privacy.visibility import VisibilityTier, filter_sections

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from almanac.models import PrivacyPreferences, ReportSection, ReportSnapshot
    from almanac.privacy.visibility import SafetyIndex

_LETTER_LABELS = tuple(f"Person {letter}" for letter in string.ascii_uppercase)


def placeholder_label(index: int) -> str:
    """Return the placeholder for the ``index``-th anonymized name."""
    if 0 <= index < len(_LETTER_LABELS):
        return _LETTER_LABELS[index]
    return f"Person {index + 1}"


def anonymize_text(text: str, names: cabc.Sequence[str]) -> str:
    """Replace every occurrence of each name with its placeholder.

    Labels follow the order ``names`` were supplied in. All names are matched
    in a single pass, longest first, so a name contained in a longer one
    never splits it and inserted placeholders are never rescanned.

    Examples
    --------
    >>> anonymize_text("Jordan Lee met Lee", ("Lee", "Jordan Lee"))
    'Person B met Person A'

    """
    labels: dict[str, str] = {}
    for index, name in enumerate(names):
        if name:
            labels.setdefault(name.lower(), placeholder_label(index))
    if not labels:
        return text

    pattern = re.compile(
        "|".join(re.escape(name) for name in sorted(labels, key=len, reverse=True)),
        re.IGNORECASE,
    )

    def _label(match: re.Match[str]) -> str:
        matched = match.group(0)
        label = labels.get(matched.lower())
        if label is not None:
            return label
        # Case-folding can map a match to a key with a different spelling.
        return next(
            candidate
            for name, candidate in labels.items()
            if re.fullmatch(re.escape(name), matched, re.IGNORECASE)
        )

    return pattern.sub(_label, text)


def anonymize_section(
    section: ReportSection,
    names: cabc.Sequence[str],
) -> ReportSection:
    """Return ``section`` with names replaced in its title and narrative."""
    if not names:
        return section
    return msgspec.structs.replace(
        section,
        title=anonymize_text(section.title, names),
        narrative=anonymize_text(section.narrative, names),
    )


def anonymize_metadata(
    metadata: cabc.Mapping[str, typ.Any],
    names: cabc.Sequence[str],
) -> dict[str, typ.Any]:
    """Return a copy of ``metadata`` with names replaced in ``top_insights``."""
    result = dict(metadata)
    insights = result.get("top_insights")
    if names and insights:
        result["top_insights"] = [
            anonymize_text(str(insight), names) for insight in insights
        ]
    return result


class ExportRedactor:
    """Apply privacy preferences and crisis stripping to a snapshot."""

    def redact(
        self,
        snapshot: ReportSnapshot,
        preferences: PrivacyPreferences | None,
        safety_index: SafetyIndex,
    ) -> ReportSnapshot:
        """Return a redacted copy of ``snapshot``.

        Parameters
        ----------
        snapshot
            Report as stored; never modified.
        preferences
            User preferences for this report, or ``None`` when none exist.
        safety_index
            Safety flags for the entries the snapshot references.

        """
        hidden = preferences.hidden_sections if preferences else frozenset()
        names = preferences.anonymized_entities if preferences else ()

        sections: cabc.Iterable[ReportSection] = (
            section for section in snapshot.sections if section.id not in hidden
        )
        sections = filter_sections(sections, safety_index, VisibilityTier.EXPORT)
        return msgspec.structs.replace(
            snapshot,
            sections=tuple(anonymize_section(section, names) for section in sections),
            metadata=anonymize_metadata(snapshot.metadata, names),
        )


__all__ = [
    "ExportRedactor",
    "anonymize_metadata",
    "anonymize_section",
    "anonymize_text",
    "placeholder_label",
]
