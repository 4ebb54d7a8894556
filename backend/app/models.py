from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db import Base
from backend.app.domain.contracts import as_utc


# -------------------------
# Helpers
# -------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_str() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    SQLite keeps no offset, so values are converted to UTC before they are bound
    and stamped as UTC when read back.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return as_utc(value) if value is not None else None


# -------------------------
# Core models
# -------------------------

class App(Base):
    __tablename__ = "apps"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    transactions = relationship(
        "Transaction",
        back_populates="app",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    subscriptions = relationship(
        "Subscription",
        back_populates="app",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    snapshots = relationship(
        "DailyMetricsSnapshot",
        back_populates="app",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Transaction(Base):
    """
    Externally supplied billing history. Append-only from the engine's point of view.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("app_id", "external_id", name="uq_transactions_app_external"),
        Index("ix_transactions_app_date", "app_id", "transaction_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
    )
    external_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    charge_type: Mapped[str] = mapped_column(String(20), nullable=False)

    gross_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    net_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    transaction_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    subscription_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subscription_gid: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    app = relationship("App", back_populates="transactions")


class Subscription(Base):
    """
    Derived from transactions on every rebuild; (app_id, domain) is the only stable key.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("app_id", "domain", name="uq_subscriptions_app_domain"),
        Index("ix_subscriptions_app_risk", "app_id", "risk_state"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
    )
    subscription_gid: Mapped[str] = mapped_column(String(200), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    base_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    billing_interval: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    last_charge_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    expected_next_charge_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    risk_state: Mapped[str] = mapped_column(String(32), nullable=False, default="SAFE")

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    app = relationship("App", back_populates="subscriptions")


class DailyMetricsSnapshot(Base):
    """
    One row per app per calendar day. Rewritten in place for its own day only, never deleted.
    """
    __tablename__ = "daily_metrics_snapshots"
    __table_args__ = (
        UniqueConstraint("app_id", "snapshot_date", name="uq_daily_metrics_snapshots_app_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)

    active_mrr_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    revenue_at_risk_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    usage_revenue_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_revenue_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    renewal_success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    safe_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    one_cycle_missed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    two_cycles_missed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    churned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_subscriptions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    app = relationship("App", back_populates="snapshots")
