from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.analytics.risk import (
    classify,
    classify_all,
    days_past_due,
    revenue_at_risk,
    risk_summary,
)
from backend.app.domain.contracts import Subscription, is_at_risk, risk_rank


EXPECTED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _late_by(days: int) -> datetime:
    return EXPECTED + timedelta(days=days)


def _sub(domain: str, *, status: str = "ACTIVE", risk_state: str = "SAFE", price: int = 1000, interval: str = "MONTHLY"):
    return Subscription(
        app_id="app-1",
        domain=domain,
        subscription_gid=f"gid-{domain}",
        base_price_cents=price,
        currency="USD",
        billing_interval=interval,
        status=status,
        last_charge_date=EXPECTED - timedelta(days=30),
        expected_next_charge_date=EXPECTED,
        risk_state=risk_state,
    )


def test_active_subscription_boundaries():
    cases = [
        (0, "SAFE"),
        (30, "SAFE"),
        (31, "ONE_CYCLE_MISSED"),
        (60, "ONE_CYCLE_MISSED"),
        (61, "TWO_CYCLES_MISSED"),
        (90, "TWO_CYCLES_MISSED"),
        (91, "CHURNED"),
        (400, "CHURNED"),
    ]
    for days, expected in cases:
        assert classify("ACTIVE", None, EXPECTED, _late_by(days)) == expected, days


def test_partial_days_are_floored():
    now = EXPECTED + timedelta(days=30, hours=23)
    assert days_past_due(EXPECTED, now) == 30
    assert classify("ACTIVE", None, EXPECTED, now) == "SAFE"


def test_before_expected_date_is_safe():
    assert classify("ACTIVE", None, EXPECTED, EXPECTED - timedelta(days=5)) == "SAFE"
    assert days_past_due(EXPECTED, EXPECTED - timedelta(days=5)) == 0


def test_terminal_status_overrides_dates():
    now = _late_by(5)
    assert classify("CANCELLED", None, EXPECTED, now) == "CHURNED"
    assert classify("EXPIRED", None, EXPECTED, now) == "CHURNED"
    # Even ahead of schedule.
    assert classify("CANCELLED", None, EXPECTED, EXPECTED - timedelta(days=10)) == "CHURNED"


def test_frozen_is_one_cycle_missed_regardless_of_dates():
    assert classify("FROZEN", None, EXPECTED, EXPECTED - timedelta(days=10)) == "ONE_CYCLE_MISSED"
    assert classify("FROZEN", None, EXPECTED, _late_by(200)) == "ONE_CYCLE_MISSED"


def test_pending_is_safe():
    assert classify("PENDING", None, EXPECTED, _late_by(120)) == "SAFE"


def test_missing_expected_date_is_safe():
    assert classify("ACTIVE", EXPECTED, None, _late_by(365)) == "SAFE"


def test_unknown_status_treated_as_active():
    assert classify("SOMETHING_NEW", None, EXPECTED, _late_by(45)) == "ONE_CYCLE_MISSED"
    assert classify(None, None, EXPECTED, _late_by(10)) == "SAFE"
    assert classify(" cancelled ", None, EXPECTED, _late_by(10)) == "CHURNED"


def test_naive_datetimes_read_as_utc():
    naive_expected = EXPECTED.replace(tzinfo=None)
    assert classify("ACTIVE", None, naive_expected, _late_by(61)) == "TWO_CYCLES_MISSED"


def test_classify_all_and_summary():
    subs = [
        _sub("a.myshopify.com"),
        _sub("b.myshopify.com", status="FROZEN"),
        _sub("c.myshopify.com", status="CANCELLED"),
        _sub("d.myshopify.com"),
    ]
    now = _late_by(75)
    classified = classify_all(subs, now)

    assert [sub.risk_state for sub in classified] == [
        "TWO_CYCLES_MISSED",
        "ONE_CYCLE_MISSED",
        "CHURNED",
        "TWO_CYCLES_MISSED",
    ]
    # Inputs are untouched.
    assert all(sub.risk_state == "SAFE" for sub in subs)

    summary = risk_summary(classified)
    assert summary.safe == 0
    assert summary.one_cycle_missed == 1
    assert summary.two_cycles_missed == 2
    assert summary.churned == 1
    assert summary.total == 4


def test_revenue_at_risk_uses_mrr_of_at_risk_states():
    subs = [
        _sub("a", risk_state="SAFE", price=5000),
        _sub("b", risk_state="ONE_CYCLE_MISSED", price=2000),
        _sub("c", risk_state="TWO_CYCLES_MISSED", price=12000, interval="ANNUAL"),
        _sub("d", risk_state="CHURNED", price=9999),
    ]
    assert revenue_at_risk(subs) == 2000 + 1000


def test_risk_states_are_ordered_by_severity():
    ranks = [risk_rank(s) for s in ("SAFE", "ONE_CYCLE_MISSED", "TWO_CYCLES_MISSED", "CHURNED")]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4
    assert is_at_risk("ONE_CYCLE_MISSED") and is_at_risk("TWO_CYCLES_MISSED")
    assert not is_at_risk("SAFE")
    assert not is_at_risk("CHURNED")
