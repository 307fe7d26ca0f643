"""Per-user eligibility for scheduled report generation.

A user qualifies for a cadence when two gates pass:

1. **Premium gate** - every cadence except weekly needs an active premium
   entitlement.
2. **Data gate** - the period must hold at least ``min_entries`` journal
   entries spread over at least ``min_days`` distinct calendar days, with
   thresholds taken from ``DATA_THRESHOLDS``. Entries are counted by
   timestamp only; content is never read here.

An ineligible user is not an error. ``evaluate`` reports which gate failed
so the scheduler can count skips.

Usage
-----
>>> eligibility = EligibilityFilter(entitlements, entry_store)
>>> await eligibility.is_eligible("user-1", Cadence.MONTHLY, period)
False

"""

from __future__ import annotations

import enum
import typing as typ

from almanac.periods import (
    DATA_THRESHOLDS,
    PREMIUM_CADENCES,
    Cadence,
    DataThreshold,
    as_cadence,
)

if typ.TYPE_CHECKING:
    from almanac.collaborators import EntitlementService, EntryStore
    from almanac.periods import ReportPeriod


class EligibilityOutcome(enum.StrEnum):
    """Result of evaluating one user against one cadence and period."""

    ELIGIBLE = "eligible"
    PREMIUM_REQUIRED = "premium_required"
    INSUFFICIENT_ENTRIES = "insufficient_entries"
    INSUFFICIENT_DAYS = "insufficient_days"

    @property
    def is_eligible(self) -> bool:
        """Return whether generation should proceed."""
        return self is EligibilityOutcome.ELIGIBLE


class EligibilityFilter:
    """Combine entitlement and data-sufficiency checks."""

    def __init__(
        self,
        entitlements: EntitlementService,
        entry_store: EntryStore,
        thresholds: typ.Mapping[Cadence, DataThreshold] | None = None,
    ) -> None:
        """Configure the filter.

        Parameters
        ----------
        entitlements
            Source of premium status.
        entry_store
            Source of per-period entry counts.
        thresholds
            Optional override of ``DATA_THRESHOLDS``, mainly for tests.

        """
        self._entitlements = entitlements
        self._entry_store = entry_store
        self._thresholds = dict(thresholds or DATA_THRESHOLDS)

    def threshold_for(self, cadence: Cadence | str) -> DataThreshold:
        """Return the data threshold applied to ``cadence``."""
        return self._thresholds[as_cadence(cadence)]

    async def evaluate(
        self,
        user_id: str,
        cadence: Cadence | str,
        period: ReportPeriod,
    ) -> EligibilityOutcome:
        """Evaluate both gates and return the first one that fails."""
        resolved = as_cadence(cadence)
        if resolved in PREMIUM_CADENCES and not await self._entitlements.is_premium(
            user_id
        ):
            return EligibilityOutcome.PREMIUM_REQUIRED

        threshold = self.threshold_for(resolved)
        counted = await self._entry_store.count_entries(user_id, period)
        if counted.count < threshold.min_entries:
            return EligibilityOutcome.INSUFFICIENT_ENTRIES
        if counted.distinct_days < threshold.min_days:
            return EligibilityOutcome.INSUFFICIENT_DAYS
        return EligibilityOutcome.ELIGIBLE

    async def is_eligible(
        self,
        user_id: str,
        cadence: Cadence | str,
        period: ReportPeriod,
    ) -> bool:
        """Return ``True`` when a report should be generated for ``user_id``."""
        outcome = await self.evaluate(user_id, cadence, period)
        return outcome.is_eligible


__all__ = ["EligibilityFilter", "EligibilityOutcome"]
