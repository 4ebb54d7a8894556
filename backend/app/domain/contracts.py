from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Literal, Optional, Tuple

ChargeType = Literal["RECURRING", "USAGE", "ONE_TIME", "REFUND"]
BillingInterval = Literal["MONTHLY", "ANNUAL"]
SubscriptionStatus = Literal["ACTIVE", "CANCELLED", "FROZEN", "EXPIRED", "PENDING"]
RiskState = Literal["SAFE", "ONE_CYCLE_MISSED", "TWO_CYCLES_MISSED", "CHURNED"]
TimeRangePreset = Literal["THIS_MONTH", "LAST_MONTH", "LAST_30_DAYS", "LAST_90_DAYS", "CUSTOM"]

CHARGE_TYPES: Tuple[str, ...] = ("RECURRING", "USAGE", "ONE_TIME", "REFUND")
BILLING_INTERVALS: Tuple[str, ...] = ("MONTHLY", "ANNUAL")
SUBSCRIPTION_STATUSES: Tuple[str, ...] = ("ACTIVE", "CANCELLED", "FROZEN", "EXPIRED", "PENDING")
TERMINAL_STATUSES: Tuple[str, ...] = ("CANCELLED", "EXPIRED")

# Ordered by severity; reactivation can move a subscription back down.
RISK_STATES: Tuple[str, ...] = ("SAFE", "ONE_CYCLE_MISSED", "TWO_CYCLES_MISSED", "CHURNED")
AT_RISK_STATES: Tuple[str, ...] = ("ONE_CYCLE_MISSED", "TWO_CYCLES_MISSED")
RISK_RANK: Dict[str, int] = {state: idx for idx, state in enumerate(RISK_STATES)}

TIME_RANGE_PRESETS: Tuple[str, ...] = ("THIS_MONTH", "LAST_MONTH", "LAST_30_DAYS", "LAST_90_DAYS", "CUSTOM")


class LedgerInputError(ValueError):
    """Raised when a stored row cannot be turned into a ledger transaction."""


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def parse_subscription_status(raw: Optional[str]) -> str:
    normalized = (raw or "").strip().upper()
    if normalized in SUBSCRIPTION_STATUSES:
        return normalized
    return "ACTIVE"


def risk_rank(state: str) -> int:
    return RISK_RANK[state]


def is_at_risk(state: str) -> bool:
    return state in AT_RISK_STATES


def next_charge_date(last_charge_date: datetime, interval: str) -> datetime:
    if interval == "ANNUAL":
        return add_months(last_charge_date, 12)
    return add_months(last_charge_date, 1)


@dataclass(frozen=True)
class Transaction:
    domain: str
    charge_type: ChargeType
    gross_amount_cents: int
    net_amount_cents: int
    currency: str
    transaction_date: datetime
    external_id: Optional[str] = None
    shop_name: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_gid: Optional[str] = None

    @property
    def amount_cents(self) -> int:
        return self.net_amount_cents


@dataclass(frozen=True)
class Subscription:
    app_id: str
    domain: str
    subscription_gid: str
    base_price_cents: int
    currency: str
    billing_interval: BillingInterval
    status: SubscriptionStatus = "ACTIVE"
    shop_name: Optional[str] = None
    last_charge_date: Optional[datetime] = None
    expected_next_charge_date: Optional[datetime] = None
    risk_state: RiskState = "SAFE"

    @property
    def mrr_cents(self) -> int:
        if self.billing_interval == "ANNUAL":
            return self.base_price_cents // 12
        return self.base_price_cents

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    def with_risk_state(self, risk_state: RiskState) -> "Subscription":
        return replace(self, risk_state=risk_state)


@dataclass(frozen=True)
class RiskSummary:
    safe: int = 0
    one_cycle_missed: int = 0
    two_cycles_missed: int = 0
    churned: int = 0

    @property
    def total(self) -> int:
        return self.safe + self.one_cycle_missed + self.two_cycles_missed + self.churned


@dataclass(frozen=True)
class DailyMetricsSnapshot:
    app_id: str
    snapshot_date: date
    active_mrr_cents: int = 0
    revenue_at_risk_cents: int = 0
    usage_revenue_cents: int = 0
    total_revenue_cents: int = 0
    renewal_success_rate: float = 0.0
    safe_count: int = 0
    one_cycle_missed_count: int = 0
    two_cycles_missed_count: int = 0
    churned_count: int = 0

    @property
    def total_subscriptions(self) -> int:
        return self.safe_count + self.one_cycle_missed_count + self.two_cycles_missed_count + self.churned_count


@dataclass(frozen=True)
class RebuildResult:
    app_id: str
    subscriptions_updated: int
    total_mrr_cents: int
    total_usage_cents: int
    risk_summary: RiskSummary
    rebuilt_at: datetime
    snapshot: Optional[DailyMetricsSnapshot] = None


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @classmethod
    def between(cls, start: date, end: date) -> "DateRange":
        if start > end:
            start, end = end, start
        return cls(start=start, end=end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous_period(self) -> "DateRange":
        prev_end = self.start - timedelta(days=1)
        prev_start = prev_end - timedelta(days=self.days - 1)
        return DateRange(start=prev_start, end=prev_end)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class MetricsSummary:
    period_start: date
    period_end: date
    active_mrr_cents: int
    revenue_at_risk_cents: int
    usage_revenue_cents: int
    total_revenue_cents: int
    renewal_success_rate: float
    safe_count: int
    one_cycle_missed_count: int
    two_cycles_missed_count: int
    churned_count: int


# field name -> True when a higher value is good
DELTA_POLARITY: Dict[str, bool] = {
    "active_mrr": True,
    "revenue_at_risk": False,
    "usage_revenue": True,
    "total_revenue": True,
    "renewal_success": True,
    "churn_count": False,
}


@dataclass(frozen=True)
class MetricsDelta:
    active_mrr_percent: Optional[float] = None
    revenue_at_risk_percent: Optional[float] = None
    usage_revenue_percent: Optional[float] = None
    total_revenue_percent: Optional[float] = None
    renewal_success_percent: Optional[float] = None
    churn_count_percent: Optional[float] = None

    def percent(self, name: str) -> Optional[float]:
        if name not in DELTA_POLARITY:
            return None
        return getattr(self, f"{name}_percent")

    def is_positive(self, name: str) -> Optional[bool]:
        value = self.percent(name)
        if value is None:
            return None
        return value > 0

    def is_good(self, name: str) -> Optional[bool]:
        value = self.percent(name)
        if value is None:
            return None
        if DELTA_POLARITY[name]:
            return value >= 0
        return value <= 0


@dataclass(frozen=True)
class PeriodMetrics:
    period: DateRange
    current: Optional[MetricsSummary] = None
    previous: Optional[MetricsSummary] = None
    delta: Optional[MetricsDelta] = None
    previous_period: Optional[DateRange] = field(default=None)
