from datetime import date
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.analytics.periods import (
    build_period_metrics,
    compute_delta,
    date_range_for_preset,
    percent_change,
    summarize_snapshots,
)
from backend.app.domain.contracts import DailyMetricsSnapshot, DateRange, MetricsDelta
from backend.app.services.metrics_aggregation_service import aggregate_period


FEB = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))


def _snap(day: date, *, mrr: int = 0, usage: int = 0, total: int = 0, at_risk: int = 0, rate: float = 1.0, churned: int = 0):
    return DailyMetricsSnapshot(
        app_id="app-1",
        snapshot_date=day,
        active_mrr_cents=mrr,
        revenue_at_risk_cents=at_risk,
        usage_revenue_cents=usage,
        total_revenue_cents=total,
        renewal_success_rate=rate,
        safe_count=3,
        one_cycle_missed_count=1,
        two_cycles_missed_count=0,
        churned_count=churned,
    )


class _MemorySnapshots:
    def __init__(self, snapshots):
        self.snapshots = list(snapshots)

    def upsert_daily_snapshot(self, snapshot):
        self.snapshots.append(snapshot)
        return snapshot

    def find_snapshots_in_range(self, app_id, start, end):
        return [s for s in self.snapshots if s.app_id == app_id and start <= s.snapshot_date <= end]

    def find_latest_snapshot(self, app_id):
        rows = [s for s in self.snapshots if s.app_id == app_id]
        return max(rows, key=lambda s: s.snapshot_date) if rows else None


def test_point_in_time_from_latest_and_cumulative_summed():
    snaps = [
        _snap(date(2024, 2, 1), mrr=100000, usage=1000, total=101000, churned=0),
        _snap(date(2024, 2, 15), mrr=125000, usage=3000, total=128000, churned=2, rate=0.8),
        _snap(date(2024, 2, 10), mrr=110000, usage=2000, total=112000, churned=1),
    ]
    summary = summarize_snapshots(snaps, FEB)

    assert summary.period_start == date(2024, 2, 1)
    assert summary.period_end == date(2024, 2, 29)
    assert summary.active_mrr_cents == 125000
    assert summary.usage_revenue_cents == 6000
    assert summary.total_revenue_cents == 341000
    assert summary.renewal_success_rate == 0.8
    assert summary.churned_count == 2


def test_snapshots_outside_period_are_ignored():
    snaps = [_snap(date(2024, 1, 31), mrr=1, usage=999), _snap(date(2024, 2, 29), mrr=5, usage=1)]
    summary = summarize_snapshots(snaps, FEB)
    assert summary.active_mrr_cents == 5
    assert summary.usage_revenue_cents == 1


def test_empty_period_has_no_summary():
    assert summarize_snapshots([], FEB) is None


def test_percent_change_zero_baseline():
    assert percent_change(0, 0) == 0.0
    assert percent_change(0, 500) is None
    assert percent_change(100000, 125000) == pytest.approx(25.0)
    assert percent_change(200, 100) == pytest.approx(-50.0)


def test_delta_and_goodness_polarity():
    previous = summarize_snapshots([_snap(date(2024, 1, 20), mrr=100000, at_risk=1000, usage=0, churned=2)], FEB.previous_period())
    current = summarize_snapshots([_snap(date(2024, 2, 20), mrr=125000, at_risk=2000, usage=0, churned=1)], FEB)
    delta = compute_delta(current, previous)

    assert delta.active_mrr_percent == pytest.approx(25.0)
    assert delta.revenue_at_risk_percent == pytest.approx(100.0)
    assert delta.usage_revenue_percent == 0.0
    assert delta.churn_count_percent == pytest.approx(-50.0)

    assert delta.is_good("active_mrr") is True
    assert delta.is_good("revenue_at_risk") is False
    assert delta.is_good("churn_count") is True
    assert delta.is_good("usage_revenue") is True
    assert delta.is_positive("revenue_at_risk") is True
    assert delta.is_positive("usage_revenue") is False


def test_goodness_is_none_without_baseline():
    delta = MetricsDelta(active_mrr_percent=None, churn_count_percent=0.0)
    assert delta.is_good("active_mrr") is None
    assert delta.is_positive("active_mrr") is None
    assert delta.is_good("churn_count") is True
    assert delta.is_good("not_a_metric") is None


def test_previous_period_has_same_length_and_ends_day_before():
    prev = FEB.previous_period()
    assert prev.end == date(2024, 1, 31)
    assert prev.days == FEB.days == 29
    assert prev.start == date(2024, 1, 3)

    single = DateRange(start=date(2024, 3, 1), end=date(2024, 3, 1)).previous_period()
    assert (single.start, single.end) == (date(2024, 2, 29), date(2024, 2, 29))


def test_reversed_bounds_are_swapped():
    period = DateRange.between(date(2024, 2, 29), date(2024, 2, 1))
    assert period == FEB


def test_presets():
    today = date(2024, 3, 10)
    assert date_range_for_preset("THIS_MONTH", today) == DateRange(date(2024, 3, 1), today)
    assert date_range_for_preset("LAST_MONTH", today) == FEB
    assert date_range_for_preset("LAST_30_DAYS", today) == DateRange(date(2024, 2, 10), today)
    assert date_range_for_preset("LAST_90_DAYS", today) == DateRange(date(2023, 12, 12), today)
    assert date_range_for_preset("LAST_MONTH", date(2024, 1, 5)) == DateRange(date(2023, 12, 1), date(2023, 12, 31))

    with pytest.raises(ValueError):
        date_range_for_preset("NEXT_YEAR", today)


def test_build_period_metrics_without_previous_has_no_delta():
    metrics = build_period_metrics(FEB, [_snap(date(2024, 2, 3), mrr=10)], [])
    assert metrics.current.active_mrr_cents == 10
    assert metrics.previous is None
    assert metrics.delta is None
    assert metrics.previous_period == FEB.previous_period()


def test_aggregate_period_reads_both_windows_from_store():
    store = _MemorySnapshots(
        [
            _snap(date(2024, 1, 10), mrr=100000, usage=400),
            _snap(date(2024, 1, 31), mrr=100000, usage=600),
            _snap(date(2024, 2, 1), mrr=110000, usage=500),
            _snap(date(2024, 2, 15), mrr=125000, usage=700),
        ]
    )
    metrics = aggregate_period(store, "app-1", FEB)

    assert metrics.current.active_mrr_cents == 125000
    assert metrics.current.usage_revenue_cents == 1200
    assert metrics.previous.usage_revenue_cents == 1000
    assert metrics.delta.active_mrr_percent == pytest.approx(25.0)
    assert metrics.delta.usage_revenue_percent == pytest.approx(20.0)

    assert aggregate_period(store, "other-app", FEB).current is None
