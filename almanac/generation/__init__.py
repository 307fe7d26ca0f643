"""Report content generators.

The content generator is an opaque collaborator: Almanac only needs its
``ReportContentGenerator.generate`` contract. ``MockReportGenerator`` is the
deterministic backend used in development and tests.
"""

from __future__ import annotations

from .errors import ReportGeneratorConfigError
from .factory import create_report_generator
from .mock import EntryIndex, MockReportGenerator

__all__ = [
    "EntryIndex",
    "MockReportGenerator",
    "ReportGeneratorConfigError",
    "create_report_generator",
]
