"""SQLAlchemy adapters for the entitlement, entry and user collaborators.

These back the collaborator protocols with the reference tables in
``almanac.storage`` so the lifecycle runs standalone. Deployments with their
own billing or journal stores provide different adapters.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from almanac.common.time import utcnow
from almanac.logging import get_logger, log_warning
from almanac.models import EntryCount, EntrySafetyFlags
from almanac.storage import JournalEntry, Subscription, SubscriptionStatus, UserAccount

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from almanac.periods import ReportPeriod

logger = get_logger(__name__)

_ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


def subscription_is_premium(
    subscription: Subscription | None,
    *,
    now: dt.datetime,
) -> bool:
    """Return whether ``subscription`` grants premium access at ``now``.

    Active and trialing subscriptions count until they expire. A cancelled
    subscription keeps access until its paid period ends.
    """
    if subscription is None:
        return False
    expires_at = subscription.expires_at
    if subscription.status in _ENTITLED_STATUSES:
        return expires_at is None or expires_at > now
    if subscription.status is SubscriptionStatus.CANCELLED:
        return expires_at is not None and expires_at > now
    return False


class SqlEntitlementService:
    """``EntitlementService`` backed by the ``subscriptions`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Configure the service with an async session factory."""
        self._session_factory = session_factory

    async def is_premium(self, user_id: str) -> bool:
        """Return premium status; lookup failures count as not premium."""
        try:
            async with self._session_factory() as session:
                subscription = await session.get(Subscription, user_id)
        except SQLAlchemyError as exc:
            log_warning(
                logger,
                "Entitlement lookup for user %s failed; treating as not premium: %s",
                user_id,
                exc,
            )
            return False
        return subscription_is_premium(subscription, now=utcnow())


class SqlEntryStore:
    """``EntryStore`` backed by the ``journal_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Configure the store with an async session factory."""
        self._session_factory = session_factory

    async def count_entries(self, user_id: str, period: ReportPeriod) -> EntryCount:
        """Count entries and distinct UTC days inside ``period``.

        Only ``created_at`` is read; entry text never leaves the table here.
        """
        async with self._session_factory() as session:
            timestamps = (
                await session.scalars(
                    select(JournalEntry.created_at).where(
                        JournalEntry.user_id == user_id,
                        JournalEntry.created_at >= period.start,
                        JournalEntry.created_at <= period.end,
                    )
                )
            ).all()
        days = {stamp.date() for stamp in timestamps}
        return EntryCount(count=len(timestamps), distinct_days=len(days))

    async def list_entry_ids(self, user_id: str, period: ReportPeriod) -> list[str]:
        """Return entry ids inside ``period``, oldest first."""
        async with self._session_factory() as session:
            return list(
                (
                    await session.scalars(
                        select(JournalEntry.id)
                        .where(
                            JournalEntry.user_id == user_id,
                            JournalEntry.created_at >= period.start,
                            JournalEntry.created_at <= period.end,
                        )
                        .order_by(JournalEntry.created_at, JournalEntry.id)
                    )
                ).all()
            )

    async def get_entry_safety_flags(
        self,
        user_id: str,
        entry_ids: cabc.Collection[str],
    ) -> dict[str, EntrySafetyFlags]:
        """Return flags for the user's entries among ``entry_ids``.

        Ids that do not exist, or belong to another user, are omitted so the
        caller treats them as unknown.
        """
        if not entry_ids:
            return {}
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(
                        JournalEntry.id,
                        JournalEntry.safety_flagged,
                        JournalEntry.has_warning_indicators,
                    ).where(
                        JournalEntry.user_id == user_id,
                        JournalEntry.id.in_(list(entry_ids)),
                    )
                )
            ).all()
        return {
            entry_id: EntrySafetyFlags(
                safety_flagged=flagged,
                has_warning_indicators=warnings,
            )
            for entry_id, flagged, warnings in rows
        }


class SqlUserDirectory:
    """``UserDirectory`` backed by the ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Configure the directory with an async session factory."""
        self._session_factory = session_factory

    async def list_user_ids(self) -> list[str]:
        """Return every registered user id in a stable order."""
        async with self._session_factory() as session:
            return list(
                (await session.scalars(select(UserAccount.id).order_by(UserAccount.id)))
                .all()
            )


__all__ = [
    "SqlEntitlementService",
    "SqlEntryStore",
    "SqlUserDirectory",
    "subscription_is_premium",
]
