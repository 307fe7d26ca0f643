"""Persistence for life reports and the reference collaborator adapters."""

from __future__ import annotations

from .tables import (
    Base,
    JournalEntry,
    Report,
    ReportPreferences,
    ReportStatus,
    Subscription,
    SubscriptionStatus,
    UserAccount,
    init_storage,
)

__all__ = [
    "Base",
    "JournalEntry",
    "Report",
    "ReportPreferences",
    "ReportStatus",
    "Subscription",
    "SubscriptionStatus",
    "UserAccount",
    "init_storage",
]
