from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Sequence

from backend.app.analytics.risk import revenue_at_risk, risk_summary
from backend.app.domain.contracts import (
    DailyMetricsSnapshot,
    Subscription,
    Transaction,
    as_utc,
)

REVENUE_CHARGE_TYPES = ("RECURRING", "USAGE", "ONE_TIME")


def active_mrr(subscriptions: Iterable[Subscription]) -> int:
    return sum(sub.mrr_cents for sub in subscriptions if sub.risk_state == "SAFE")


def usage_revenue(transactions: Iterable[Transaction]) -> int:
    return sum(txn.amount_cents for txn in transactions if txn.charge_type == "USAGE")


def total_revenue(transactions: Iterable[Transaction]) -> int:
    total = 0
    for txn in transactions:
        if txn.charge_type in REVENUE_CHARGE_TYPES:
            total += txn.amount_cents
        elif txn.charge_type == "REFUND":
            total -= txn.amount_cents
    return total


def renewal_success_rate(subscriptions: Sequence[Subscription]) -> float:
    if not subscriptions:
        return 0.0
    safe = sum(1 for sub in subscriptions if sub.risk_state == "SAFE")
    return safe / len(subscriptions)


def snapshot_day(now: datetime) -> date:
    return as_utc(now).date()


def compute_snapshot(
    app_id: str,
    subscriptions: Iterable[Subscription],
    transactions: Iterable[Transaction],
    now: datetime,
) -> DailyMetricsSnapshot:
    subs: List[Subscription] = list(subscriptions)
    txns: List[Transaction] = list(transactions)
    counts = risk_summary(subs)

    return DailyMetricsSnapshot(
        app_id=app_id,
        snapshot_date=snapshot_day(now),
        active_mrr_cents=active_mrr(subs),
        revenue_at_risk_cents=revenue_at_risk(subs),
        usage_revenue_cents=usage_revenue(txns),
        total_revenue_cents=total_revenue(txns),
        renewal_success_rate=renewal_success_rate(subs),
        safe_count=counts.safe,
        one_cycle_missed_count=counts.one_cycle_missed,
        two_cycles_missed_count=counts.two_cycles_missed,
        churned_count=counts.churned,
    )
