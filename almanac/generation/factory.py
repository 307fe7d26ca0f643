"""Factory for content generators selected by configuration."""

from __future__ import annotations

import typing as typ

from almanac.generation.errors import ReportGeneratorConfigError
from almanac.generation.mock import MockReportGenerator

if typ.TYPE_CHECKING:
    from almanac.collaborators import EntryStore, ReportContentGenerator

_VALID_BACKENDS = frozenset({"mock"})


def create_report_generator(
    backend: str,
    *,
    entry_store: EntryStore | None = None,
) -> ReportContentGenerator:
    """Create the content generator named by ``backend``.

    Parameters
    ----------
    backend
        Backend name, usually ``ReportingConfig.report_generator``.
    entry_store
        Entry store handed to generators that read journal activity.

    Raises
    ------
    ReportGeneratorConfigError
        If ``backend`` is not a known generator.

    Examples
    --------
    >>> isinstance(create_report_generator("mock"), MockReportGenerator)
    True

    """
    normalized = backend.strip().lower()
    if normalized not in _VALID_BACKENDS:
        raise ReportGeneratorConfigError.invalid_backend(backend, _VALID_BACKENDS)
    return MockReportGenerator(entry_store)


__all__ = ["create_report_generator"]
