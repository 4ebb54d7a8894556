from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.analytics.metrics import (
    active_mrr,
    compute_snapshot,
    renewal_success_rate,
    total_revenue,
    usage_revenue,
)
from backend.app.domain.contracts import Subscription, Transaction


NOW = datetime(2024, 2, 15, 23, 30, tzinfo=timezone.utc)


def _txn(charge_type: str, net: int, gross=None) -> Transaction:
    return Transaction(
        domain="shop.myshopify.com",
        charge_type=charge_type,
        gross_amount_cents=gross if gross is not None else net,
        net_amount_cents=net,
        currency="USD",
        transaction_date=NOW - timedelta(days=1),
    )


def _sub(domain: str, risk_state: str, price: int, interval: str = "MONTHLY", status: str = "ACTIVE") -> Subscription:
    return Subscription(
        app_id="app-1",
        domain=domain,
        subscription_gid=f"gid-{domain}",
        base_price_cents=price,
        currency="USD",
        billing_interval=interval,
        status=status,
        risk_state=risk_state,
    )


def test_usage_revenue_sums_only_usage_net_amounts():
    txns = [_txn("RECURRING", 2999), _txn("USAGE", 500, gross=600), _txn("USAGE", 300, gross=350)]
    assert usage_revenue(txns) == 800


def test_total_revenue_subtracts_refunds():
    txns = [
        _txn("RECURRING", 2999),
        _txn("USAGE", 500),
        _txn("ONE_TIME", 1000),
        _txn("REFUND", 999),
    ]
    assert total_revenue(txns) == 2999 + 500 + 1000 - 999


def test_active_mrr_counts_only_safe_subscriptions():
    subs = [
        _sub("a", "SAFE", 2999),
        _sub("b", "SAFE", 29900, interval="ANNUAL"),
        _sub("c", "ONE_CYCLE_MISSED", 4900),
        _sub("d", "CHURNED", 1900),
    ]
    assert active_mrr(subs) == 2999 + 2491


def test_renewal_success_rate():
    assert renewal_success_rate([]) == 0.0
    subs = [_sub("a", "SAFE", 1), _sub("b", "SAFE", 1), _sub("c", "TWO_CYCLES_MISSED", 1), _sub("d", "CHURNED", 1)]
    assert renewal_success_rate(subs) == 0.5


def test_compute_snapshot_combines_subscriptions_and_transactions():
    subs = [
        _sub("a", "SAFE", 2999),
        _sub("b", "ONE_CYCLE_MISSED", 4900),
        _sub("c", "TWO_CYCLES_MISSED", 12000, interval="ANNUAL"),
        _sub("d", "CHURNED", 1900, status="CANCELLED"),
    ]
    txns = [_txn("RECURRING", 2999), _txn("USAGE", 500), _txn("USAGE", 300), _txn("REFUND", 100)]

    snap = compute_snapshot("app-1", subs, txns, NOW)

    assert snap.app_id == "app-1"
    assert snap.snapshot_date == date(2024, 2, 15)
    assert snap.active_mrr_cents == 2999
    assert snap.revenue_at_risk_cents == 4900 + 1000
    assert snap.usage_revenue_cents == 800
    assert snap.total_revenue_cents == 2999 + 800 - 100
    assert snap.renewal_success_rate == 0.25
    assert (snap.safe_count, snap.one_cycle_missed_count, snap.two_cycles_missed_count, snap.churned_count) == (
        1,
        1,
        1,
        1,
    )
    assert snap.total_subscriptions == 4


def test_snapshot_day_is_utc_date():
    late_evening_elsewhere = datetime(2024, 2, 15, 20, 0, tzinfo=timezone(timedelta(hours=-8)))
    snap = compute_snapshot("app-1", [], [], late_evening_elsewhere)
    assert snap.snapshot_date == date(2024, 2, 16)


def test_empty_inputs_give_zero_snapshot():
    snap = compute_snapshot("app-1", [], [], NOW)
    assert snap.active_mrr_cents == 0
    assert snap.revenue_at_risk_cents == 0
    assert snap.usage_revenue_cents == 0
    assert snap.total_revenue_cents == 0
    assert snap.renewal_success_rate == 0.0
    assert snap.total_subscriptions == 0
