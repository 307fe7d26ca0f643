"""Reference adapters for the collaborator protocols."""

from __future__ import annotations

from .notify import LoggingNotifier
from .sql import SqlEntitlementService, SqlEntryStore, SqlUserDirectory

__all__ = [
    "LoggingNotifier",
    "SqlEntitlementService",
    "SqlEntryStore",
    "SqlUserDirectory",
]
