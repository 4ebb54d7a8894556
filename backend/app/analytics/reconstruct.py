from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from backend.app.analytics.risk import classify_subscription
from backend.app.domain.contracts import (
    Subscription,
    Transaction,
    as_utc,
    next_charge_date,
    parse_subscription_status,
)

# Mean gap above this many days means ANNUAL. Single cutoff, no smoothing.
ANNUAL_GAP_THRESHOLD_DAYS = 180.0

SYNTHETIC_GID_PREFIX = "lg_sub_"


def group_by_domain(transactions: Iterable[Transaction]) -> Dict[str, List[Transaction]]:
    grouped: Dict[str, List[Transaction]] = {}
    for txn in transactions:
        grouped.setdefault(txn.domain, []).append(txn)
    return grouped


def separate_revenue(transactions: Iterable[Transaction]) -> Tuple[List[Transaction], List[Transaction]]:
    recurring: List[Transaction] = []
    usage: List[Transaction] = []
    for txn in transactions:
        if txn.charge_type == "RECURRING":
            recurring.append(txn)
        elif txn.charge_type == "USAGE":
            usage.append(txn)
    return recurring, usage


def detect_billing_interval(recurring: Sequence[Transaction]) -> str:
    """MONTHLY unless the mean gap between sorted recurring charges exceeds 180 days."""
    if len(recurring) < 2:
        return "MONTHLY"

    total_days = 0.0
    for prev, curr in zip(recurring, recurring[1:]):
        gap = as_utc(curr.transaction_date) - as_utc(prev.transaction_date)
        total_days += gap.total_seconds() / 86400.0
    mean_gap = total_days / (len(recurring) - 1)

    if mean_gap > ANNUAL_GAP_THRESHOLD_DAYS:
        return "ANNUAL"
    return "MONTHLY"


def synthetic_subscription_gid(domain: str) -> str:
    return SYNTHETIC_GID_PREFIX + str(uuid.uuid5(uuid.NAMESPACE_DNS, domain))


def build_subscription(
    app_id: str,
    domain: str,
    transactions: Iterable[Transaction],
    now: datetime,
) -> Optional[Subscription]:
    recurring = _sorted_recurring(transactions)
    if not recurring:
        return None

    last = recurring[-1]
    interval = detect_billing_interval(recurring)
    base_price = last.gross_amount_cents or last.net_amount_cents
    last_charge = as_utc(last.transaction_date)

    sub = Subscription(
        app_id=app_id,
        domain=domain,
        subscription_gid=last.subscription_gid or synthetic_subscription_gid(domain),
        base_price_cents=base_price,
        currency=last.currency,
        billing_interval=interval,
        status=parse_subscription_status(last.subscription_status),
        shop_name=last.shop_name,
        last_charge_date=last_charge,
        expected_next_charge_date=next_charge_date(last_charge, interval),
    )
    return sub.with_risk_state(classify_subscription(sub, now))


def rebuild_subscriptions(
    app_id: str,
    transactions: Iterable[Transaction],
    now: datetime,
) -> List[Subscription]:
    subscriptions: List[Subscription] = []
    for domain, txns in group_by_domain(transactions).items():
        sub = build_subscription(app_id, domain, txns, now)
        if sub is not None:
            subscriptions.append(sub)

    subscriptions.sort(key=lambda sub: sub.domain)
    return subscriptions


def filter_up_to(transactions: Iterable[Transaction], cutoff: datetime) -> List[Transaction]:
    limit = as_utc(cutoff)
    return [txn for txn in transactions if as_utc(txn.transaction_date) <= limit]


def filter_in_range(transactions: Iterable[Transaction], start: datetime, end: datetime) -> List[Transaction]:
    lower = as_utc(start)
    upper = as_utc(end)
    return [txn for txn in transactions if lower <= as_utc(txn.transaction_date) <= upper]


def _sorted_recurring(transactions: Iterable[Transaction]) -> List[Transaction]:
    recurring = [txn for txn in transactions if txn.charge_type == "RECURRING"]
    recurring.sort(
        key=lambda txn: (as_utc(txn.transaction_date), txn.external_id or "", txn.net_amount_cents)
    )
    return recurring
