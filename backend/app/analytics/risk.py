from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from backend.app.domain.contracts import (
    RiskSummary,
    Subscription,
    TERMINAL_STATUSES,
    as_utc,
    is_at_risk,
    parse_subscription_status,
)

GRACE_PERIOD_DAYS = 30
ONE_CYCLE_LIMIT_DAYS = 60
TWO_CYCLES_LIMIT_DAYS = 90


def days_past_due(expected_next_charge_date: Optional[datetime], now: datetime) -> int:
    if expected_next_charge_date is None:
        return 0
    seconds = (as_utc(now) - as_utc(expected_next_charge_date)).total_seconds()
    if seconds < 0:
        return 0
    return int(seconds // 86400)


def risk_state_from_days_past_due(days: int) -> str:
    if days <= GRACE_PERIOD_DAYS:
        return "SAFE"
    if days <= ONE_CYCLE_LIMIT_DAYS:
        return "ONE_CYCLE_MISSED"
    if days <= TWO_CYCLES_LIMIT_DAYS:
        return "TWO_CYCLES_MISSED"
    return "CHURNED"


def classify(
    status: Optional[str],
    last_charge_date: Optional[datetime],
    expected_next_charge_date: Optional[datetime],
    now: datetime,
) -> str:
    """
    Risk state for one billing relationship. First matching rule wins:

      1. CANCELLED / EXPIRED          -> CHURNED
      2. FROZEN                       -> ONE_CYCLE_MISSED
      3. PENDING                      -> SAFE
      4. ACTIVE and now <= expected   -> SAFE
      5. no expected charge date      -> SAFE
      6. days past due: 0-30 SAFE, 31-60 ONE_CYCLE_MISSED,
         61-90 TWO_CYCLES_MISSED, >90 CHURNED

    Unrecognized statuses are treated as ACTIVE. last_charge_date is accepted
    for callers that classify straight from stored columns; the rules key off
    the expected date only.
    """
    parsed = parse_subscription_status(status)

    if parsed in TERMINAL_STATUSES:
        return "CHURNED"
    if parsed == "FROZEN":
        return "ONE_CYCLE_MISSED"
    if parsed == "PENDING":
        return "SAFE"

    if expected_next_charge_date is None:
        return "SAFE"
    if as_utc(now) <= as_utc(expected_next_charge_date):
        return "SAFE"

    return risk_state_from_days_past_due(days_past_due(expected_next_charge_date, now))


def classify_subscription(subscription: Subscription, now: datetime) -> str:
    return classify(
        subscription.status,
        subscription.last_charge_date,
        subscription.expected_next_charge_date,
        now,
    )


def classify_all(subscriptions: Iterable[Subscription], now: datetime) -> List[Subscription]:
    return [sub.with_risk_state(classify_subscription(sub, now)) for sub in subscriptions]


def risk_summary(subscriptions: Iterable[Subscription]) -> RiskSummary:
    counts = {"SAFE": 0, "ONE_CYCLE_MISSED": 0, "TWO_CYCLES_MISSED": 0, "CHURNED": 0}
    for sub in subscriptions:
        if sub.risk_state in counts:
            counts[sub.risk_state] += 1
    return RiskSummary(
        safe=counts["SAFE"],
        one_cycle_missed=counts["ONE_CYCLE_MISSED"],
        two_cycles_missed=counts["TWO_CYCLES_MISSED"],
        churned=counts["CHURNED"],
    )


def revenue_at_risk(subscriptions: Iterable[Subscription]) -> int:
    return sum(sub.mrr_cents for sub in subscriptions if is_at_risk(sub.risk_state))
