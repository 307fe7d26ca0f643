"""Markdown renderer for life reports.

Turns a redacted ``ReportSnapshot`` into a Markdown document. The renderer
only ever sees what redaction left behind, so anything it prints is already
safe for the export tier.

Usage
-----
>>> from almanac.reporting.markdown import render_report_markdown
>>> md = render_report_markdown(snapshot)

"""

from __future__ import annotations

import typing as typ

from almanac.collaborators import RenderedArtifact

if typ.TYPE_CHECKING:
    import datetime as dt

    from almanac.models import ReportSection, ReportSnapshot

MARKDOWN_MEDIA_TYPE = "text/markdown; charset=utf-8"


def _format_date(value: dt.datetime) -> str:
    """Format a datetime as a long-form date (``January 5, 2026``)."""
    return f"{value:%B} {value.day}, {value.year}"


def _format_generated_at(value: dt.datetime) -> str:
    """Format a datetime as a human-readable UTC timestamp."""
    return value.strftime("%Y-%m-%d %H:%M UTC")


def _render_title(lines: list[str], snapshot: ReportSnapshot) -> None:
    """Append the level-1 heading and the period line."""
    lines.append(f"# {snapshot.cadence.value.capitalize()} Life Report")
    lines.append("")
    lines.append(
        f"*{_format_date(snapshot.period_start)} to "
        f"{_format_date(snapshot.period_end)}*"
    )
    lines.append("")


def _render_overview(lines: list[str], metadata: dict[str, typ.Any]) -> None:
    """Append the overview block built from report metadata."""
    entry_count = metadata.get("entry_count")
    mood_avg = metadata.get("mood_avg")
    insights = [str(item) for item in metadata.get("top_insights") or []]
    if entry_count is None and mood_avg is None and not insights:
        return
    lines.append("## Overview")
    lines.append("")
    lines.append(f"- **Journal entries:** {entry_count or 0}")
    mood_text = f"{float(mood_avg):.1f}" if mood_avg is not None else "n/a"
    lines.append(f"- **Average mood:** {mood_text}")
    lines.append("")
    if insights:
        lines.append("### Key insights")
        lines.append("")
        lines.extend(f"- {insight}" for insight in insights)
        lines.append("")


def _render_section(lines: list[str], section: ReportSection) -> None:
    """Append one narrative section."""
    lines.append(f"## {section.title}")
    lines.append("")
    if section.narrative:
        lines.append(section.narrative)
        lines.append("")
    if section.chart_data:
        kind = section.chart_data.get("kind", "chart")
        lines.append(f"*[{kind} omitted from text export]*")
        lines.append("")


def _render_footer(lines: list[str], snapshot: ReportSnapshot) -> None:
    """Append the horizontal rule and metadata footer."""
    lines.append("---")
    lines.append("")
    lines.append(
        f"*Generated at {_format_generated_at(snapshot.generated_at)}"
        f" | Report ID: {snapshot.id}*"
    )
    lines.append("")


def render_report_markdown(snapshot: ReportSnapshot) -> str:
    """Render a report snapshot as a Markdown document."""
    lines: list[str] = []
    _render_title(lines, snapshot)
    _render_overview(lines, snapshot.metadata)
    for section in snapshot.sections:
        _render_section(lines, section)
    _render_footer(lines, snapshot)
    return "\n".join(lines)


class MarkdownReportRenderer:
    """``ReportRenderer`` producing UTF-8 Markdown artifacts."""

    def render(self, snapshot: ReportSnapshot) -> RenderedArtifact:
        """Render ``snapshot`` to Markdown bytes."""
        return RenderedArtifact(
            content=render_report_markdown(snapshot).encode("utf-8"),
            media_type=MARKDOWN_MEDIA_TYPE,
            extension="md",
        )


__all__ = ["MARKDOWN_MEDIA_TYPE", "MarkdownReportRenderer", "render_report_markdown"]
