"""Report cadences, reporting periods, and deterministic report identity.

Every report covers one closed period derived from its cadence and a
reference date. The report id is built from the cadence and the period start,
so two generation attempts for the same period always target the same
document.

Usage
-----
>>> import datetime as dt
>>> period = compute_period(Cadence.MONTHLY, dt.date(2026, 2, 10))
>>> period.start.isoformat()
'2026-01-01T00:00:00+00:00'
>>> period.end.isoformat()
'2026-01-31T23:59:59.999000+00:00'
>>> report_id(Cadence.MONTHLY, period.start)
'monthly-2026-01-01'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import re

from almanac.common.time import end_of_day, ensure_utc, start_of_day


class Cadence(enum.StrEnum):
    """Report frequency classes."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


@dc.dataclass(frozen=True, slots=True)
class DataThreshold:
    """Minimum journaling activity required for a cadence.

    Attributes
    ----------
    min_entries
        Entries that must exist inside the period.
    min_days
        Distinct calendar days those entries must span.

    """

    min_entries: int
    min_days: int


DATA_THRESHOLDS: dict[Cadence, DataThreshold] = {
    Cadence.WEEKLY: DataThreshold(min_entries=2, min_days=2),
    Cadence.MONTHLY: DataThreshold(min_entries=5, min_days=5),
    Cadence.QUARTERLY: DataThreshold(min_entries=15, min_days=15),
    Cadence.ANNUAL: DataThreshold(min_entries=50, min_days=50),
}

PREMIUM_CADENCES: frozenset[Cadence] = frozenset(
    {Cadence.MONTHLY, Cadence.QUARTERLY, Cadence.ANNUAL}
)

_REPORT_ID_PATTERN = re.compile(
    r"^(?P<cadence>weekly|monthly|quarterly|annual)-(?P<date>\d{4}-\d{2}-\d{2})$"
)


@dc.dataclass(frozen=True, slots=True)
class ReportPeriod:
    """Closed UTC interval summarised by one report.

    Attributes
    ----------
    start
        Midnight UTC on the first day of the period.
    end
        23:59:59.999 UTC on the last day of the period.

    """

    start: dt.datetime
    end: dt.datetime

    @property
    def first_day(self) -> dt.date:
        """Return the first calendar day covered."""
        return self.start.date()

    @property
    def last_day(self) -> dt.date:
        """Return the last calendar day covered."""
        return self.end.date()

    def contains(self, moment: dt.datetime) -> bool:
        """Return whether ``moment`` falls inside the closed interval."""
        return self.start <= ensure_utc(moment) <= self.end


def as_cadence(value: Cadence | str) -> Cadence:
    """Coerce ``value`` to a ``Cadence``.

    Raises
    ------
    ValueError
        If ``value`` names no known cadence.

    """
    try:
        return Cadence(value)
    except ValueError:
        msg = f"Unknown cadence: {value!r}"
        raise ValueError(msg) from None


def _reference_day(reference: dt.date | dt.datetime) -> dt.date:
    if isinstance(reference, dt.datetime):
        return ensure_utc(reference).date()
    return reference


def _closed(first: dt.date, last: dt.date) -> ReportPeriod:
    return ReportPeriod(start=start_of_day(first), end=end_of_day(last))


def _previous_week(day: dt.date) -> ReportPeriod:
    # isoweekday: Monday=1 .. Sunday=7, so this lands on the previous Sunday.
    last = day - dt.timedelta(days=day.isoweekday())
    return _closed(last - dt.timedelta(days=6), last)


def _previous_month(day: dt.date) -> ReportPeriod:
    last = day.replace(day=1) - dt.timedelta(days=1)
    return _closed(last.replace(day=1), last)


def _previous_quarter(day: dt.date) -> ReportPeriod:
    quarter_start = dt.date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    last = quarter_start - dt.timedelta(days=1)
    first = dt.date(last.year, last.month - 2, 1)
    return _closed(first, last)


def _previous_year(day: dt.date) -> ReportPeriod:
    year = day.year - 1
    return _closed(dt.date(year, 1, 1), dt.date(year, 12, 31))


_PERIOD_RULES = {
    Cadence.WEEKLY: _previous_week,
    Cadence.MONTHLY: _previous_month,
    Cadence.QUARTERLY: _previous_quarter,
    Cadence.ANNUAL: _previous_year,
}


def compute_period(
    cadence: Cadence | str,
    reference: dt.date | dt.datetime,
) -> ReportPeriod:
    """Return the most recent completed period for ``cadence``.

    Parameters
    ----------
    cadence
        Report cadence. Unknown values fail fast.
    reference
        Date (or aware datetime, read in UTC) the period is computed from.

    Returns
    -------
    ReportPeriod
        weekly: the Monday-Sunday week strictly before ``reference``;
        monthly: the preceding calendar month; quarterly: the preceding
        calendar quarter; annual: the preceding calendar year.

    Raises
    ------
    ValueError
        If ``cadence`` is unknown or ``reference`` is a naive datetime.

    """
    rule = _PERIOD_RULES[as_cadence(cadence)]
    return rule(_reference_day(reference))


def report_id(cadence: Cadence | str, period_start: dt.date | dt.datetime) -> str:
    """Return the deterministic report id ``{cadence}-{YYYY-MM-DD}``."""
    day = _reference_day(period_start)
    return f"{as_cadence(cadence).value}-{day.isoformat()}"


def parse_report_id(value: str) -> tuple[Cadence, dt.date]:
    """Split a report id into its cadence and period start date.

    Raises
    ------
    ValueError
        If ``value`` does not match ``{cadence}-{YYYY-MM-DD}`` or names an
        impossible calendar date.

    """
    match = _REPORT_ID_PATTERN.fullmatch(value)
    if match is None:
        msg = f"report id {value!r} does not match '{{cadence}}-{{YYYY-MM-DD}}'"
        raise ValueError(msg)
    day = dt.date.fromisoformat(match["date"])
    return Cadence(match["cadence"]), day


__all__ = [
    "DATA_THRESHOLDS",
    "PREMIUM_CADENCES",
    "Cadence",
    "DataThreshold",
    "ReportPeriod",
    "as_cadence",
    "compute_period",
    "parse_report_id",
    "report_id",
]
