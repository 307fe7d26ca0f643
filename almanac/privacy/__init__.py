"""Visibility tiers and export redaction for report content."""

from __future__ import annotations

from .redaction import (
    ExportRedactor,
    anonymize_metadata,
    anonymize_text,
    placeholder_label,
)
from .visibility import (
    KnownSafety,
    SafetyIndex,
    UnknownEntry,
    VisibilityTier,
    filter_entries,
    filter_sections,
)

__all__ = [
    "ExportRedactor",
    "KnownSafety",
    "SafetyIndex",
    "UnknownEntry",
    "VisibilityTier",
    "anonymize_metadata",
    "anonymize_text",
    "filter_entries",
    "filter_sections",
    "placeholder_label",
]
