"""Generation pipeline for one user's report.

``ReportGenerationService`` drives a single report through the state
machine:

1. Claim the deterministic report id as ``generating``.
2. Ask the content generator for sections and metadata.
3. Complete the report as ``ready``, or record the failure and re-raise.
4. Send the "report ready" notification; delivery failures are logged and
   never undo the completed report.

Usage
-----
>>> service = ReportGenerationService(
...     ReportGenerationDependencies(
...         state_machine=ReportStateMachine(session_factory),
...         content_generator=MockReportGenerator(),
...     ),
... )
>>> outcome = await service.generate_for_user("user-1", Cadence.WEEKLY, period)

"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from almanac.logging import get_logger, log_info, log_warning
from almanac.periods import as_cadence, report_id

if typ.TYPE_CHECKING:
    import datetime as dt

    from almanac.collaborators import Notifier, ReportContentGenerator
    from almanac.periods import Cadence, ReportPeriod
    from almanac.reporting.state import ReportStateMachine

logger = get_logger(__name__)


class GenerationOutcome(enum.StrEnum):
    """Result of one call to ``generate_for_user``."""

    GENERATED = "generated"
    ALREADY_CURRENT = "already_current"


@dc.dataclass(frozen=True, slots=True)
class ReportGenerationDependencies:
    """Collaborators required by ``ReportGenerationService``.

    Attributes
    ----------
    state_machine
        Persisted report transitions.
    content_generator
        Opaque producer of report sections.
    notifier
        Optional "report ready" notifier.

    """

    state_machine: ReportStateMachine
    content_generator: ReportContentGenerator
    notifier: Notifier | None = None


class ReportGenerationService:
    """Generate, persist and announce one report."""

    def __init__(self, dependencies: ReportGenerationDependencies) -> None:
        """Configure the service with its collaborators."""
        self._state = dependencies.state_machine
        self._generator = dependencies.content_generator
        self._notifier = dependencies.notifier

    async def generate_for_user(
        self,
        user_id: str,
        cadence: Cadence | str,
        period: ReportPeriod,
        *,
        now: dt.datetime | None = None,
    ) -> GenerationOutcome:
        """Run the generation pipeline for ``user_id``.

        Eligibility is the caller's concern; this method assumes the user
        qualifies.

        Returns
        -------
        GenerationOutcome
            ``ALREADY_CURRENT`` when the report is ready, in progress, or has
            exhausted its retries; ``GENERATED`` when a new report reached
            ``ready``.

        Raises
        ------
        Exception
            Whatever the content generator raised, after the failure has been
            recorded against the report.

        """
        resolved = as_cadence(cadence)
        rid = report_id(resolved, period.start)
        claimed = await self._state.begin_attempt(user_id, resolved, period, now=now)
        if claimed is None:
            return GenerationOutcome.ALREADY_CURRENT

        try:
            content = await self._generator.generate(user_id, resolved, period)
        except Exception:
            outcome = await self._state.record_failure(user_id, rid)
            log_info(
                logger,
                "Recorded failed attempt for %s (user %s): %s",
                rid,
                user_id,
                outcome,
            )
            raise

        await self._state.mark_ready(user_id, rid, content)
        await self._notify(user_id, rid, resolved)
        return GenerationOutcome.GENERATED

    async def _notify(self, user_id: str, rid: str, cadence: Cadence) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_report_ready(user_id, rid, cadence)
        except Exception as exc:  # noqa: BLE001
            log_warning(
                logger,
                "Report %s is ready but notifying user %s failed: %s",
                rid,
                user_id,
                exc,
                exc_info=exc,
            )
            return
        await self._state.mark_notified(user_id, rid)


__all__ = [
    "GenerationOutcome",
    "ReportGenerationDependencies",
    "ReportGenerationService",
]
