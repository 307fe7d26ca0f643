"""Notifier that records "report ready" notifications in the log.

Push delivery belongs to the notification service; this adapter stands in for
it in development and in deployments without push support.
"""

from __future__ import annotations

import typing as typ

from almanac.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from almanac.periods import Cadence

logger = get_logger(__name__)


def notification_copy(cadence: Cadence) -> tuple[str, str]:
    """Return the ``(title, body)`` shown to the user."""
    return (
        f"Your {cadence.value} report is ready",
        f"Check out your {cadence.value} life report",
    )


class LoggingNotifier:
    """``Notifier`` that logs instead of pushing."""

    async def notify_report_ready(
        self,
        user_id: str,
        report_id: str,
        cadence: Cadence,
    ) -> None:
        """Log the notification that would be delivered."""
        title, _body = notification_copy(cadence)
        log_info(
            logger,
            "Notify user %s: %s (report_id=%s)",
            user_id,
            title,
            report_id,
        )


__all__ = ["LoggingNotifier", "notification_copy"]
