"""SQLAlchemy tables for reports, privacy preferences and reference adapters."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from almanac.common.time import utcnow
from almanac.periods import Cadence

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class ReportStatus(enum.StrEnum):
    """Lifecycle states stored on a report row."""

    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class SubscriptionStatus(enum.StrEnum):
    """Subscription states recorded by the billing integration."""

    ACTIVE = "active"
    TRIALING = "trialing"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Base(DeclarativeBase):
    """Declarative base shared by every Almanac table."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and store everything in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            msg = f"naive datetime {value.isoformat()} cannot be stored"
            raise ValueError(msg)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return aware UTC datetimes regardless of backend."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


def _str_enum(enum_cls: type[enum.StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Report(Base):
    """One life report per user, cadence and period.

    The primary key is ``(user_id, id)`` where ``id`` is the deterministic
    ``{cadence}-{YYYY-MM-DD}`` identity, so repeated generation attempts for
    a period always land on the same row.
    """

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_status_generated_at", "status", "generated_at"),
    )

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    cadence: Mapped[Cadence] = mapped_column(_str_enum(Cadence), nullable=False)
    status: Mapped[ReportStatus] = mapped_column(
        _str_enum(ReportStatus), default=ReportStatus.GENERATING, nullable=False
    )
    period_start: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_end: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    generated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sections: Mapped[list[dict[str, typ.Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    report_metadata: Mapped[dict[str, typ.Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )
    notification_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )


class ReportPreferences(Base):
    """User-authored privacy preferences for one report's exports."""

    __tablename__ = "report_preferences"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    report_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    hidden_sections: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    anonymized_entities: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class JournalEntry(Base):
    """Journal entry timestamps and safety flags used by the entry store."""

    __tablename__ = "journal_entries"
    __table_args__ = (Index("ix_journal_entries_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    text: Mapped[str] = mapped_column(Text(), default="", nullable=False)
    safety_flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_warning_indicators: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )


class Subscription(Base):
    """Latest subscription state per user."""

    __tablename__ = "subscriptions"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[SubscriptionStatus] = mapped_column(
        _str_enum(SubscriptionStatus), nullable=False
    )
    expires_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)


class UserAccount(Base):
    """Registered users enumerated by scheduler sweeps."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )


async def init_storage(engine: AsyncEngine) -> None:
    """Create every Almanac table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
