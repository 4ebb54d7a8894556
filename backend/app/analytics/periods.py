from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, List, Optional

from backend.app.domain.contracts import (
    DailyMetricsSnapshot,
    DateRange,
    MetricsDelta,
    MetricsSummary,
    PeriodMetrics,
    TIME_RANGE_PRESETS,
    TimeRangePreset,
)


def date_range_for_preset(preset: TimeRangePreset, today: date) -> DateRange:
    if preset not in TIME_RANGE_PRESETS:
        raise ValueError(f"unknown time range preset: {preset}")

    if preset == "LAST_MONTH":
        end = today.replace(day=1) - timedelta(days=1)
        return DateRange(start=end.replace(day=1), end=end)
    if preset == "LAST_90_DAYS":
        return DateRange(start=today - timedelta(days=89), end=today)
    if preset in ("LAST_30_DAYS", "CUSTOM"):
        return DateRange(start=today - timedelta(days=29), end=today)
    return DateRange(start=today.replace(day=1), end=today)


def summarize_snapshots(
    snapshots: Iterable[DailyMetricsSnapshot],
    period: DateRange,
) -> Optional[MetricsSummary]:
    """
    Point-in-time fields come from the latest snapshot in the period,
    cumulative revenue fields are summed over every snapshot.
    """
    in_range: List[DailyMetricsSnapshot] = [
        snap for snap in snapshots if period.contains(snap.snapshot_date)
    ]
    if not in_range:
        return None

    latest = max(in_range, key=lambda snap: snap.snapshot_date)

    return MetricsSummary(
        period_start=period.start,
        period_end=period.end,
        active_mrr_cents=latest.active_mrr_cents,
        revenue_at_risk_cents=latest.revenue_at_risk_cents,
        usage_revenue_cents=sum(snap.usage_revenue_cents for snap in in_range),
        total_revenue_cents=sum(snap.total_revenue_cents for snap in in_range),
        renewal_success_rate=latest.renewal_success_rate,
        safe_count=latest.safe_count,
        one_cycle_missed_count=latest.one_cycle_missed_count,
        two_cycles_missed_count=latest.two_cycles_missed_count,
        churned_count=latest.churned_count,
    )


def percent_change(previous: float, current: float) -> Optional[float]:
    # None means there is no meaningful baseline to compare against.
    if previous == 0:
        if current != 0:
            return None
        return 0.0
    return ((current - previous) / previous) * 100


def compute_delta(current: MetricsSummary, previous: MetricsSummary) -> MetricsDelta:
    return MetricsDelta(
        active_mrr_percent=percent_change(previous.active_mrr_cents, current.active_mrr_cents),
        revenue_at_risk_percent=percent_change(previous.revenue_at_risk_cents, current.revenue_at_risk_cents),
        usage_revenue_percent=percent_change(previous.usage_revenue_cents, current.usage_revenue_cents),
        total_revenue_percent=percent_change(previous.total_revenue_cents, current.total_revenue_cents),
        renewal_success_percent=percent_change(previous.renewal_success_rate, current.renewal_success_rate),
        churn_count_percent=percent_change(previous.churned_count, current.churned_count),
    )


def build_period_metrics(
    period: DateRange,
    current_snapshots: Iterable[DailyMetricsSnapshot],
    previous_snapshots: Iterable[DailyMetricsSnapshot],
) -> PeriodMetrics:
    previous_period = period.previous_period()
    current = summarize_snapshots(current_snapshots, period)
    previous = summarize_snapshots(previous_snapshots, previous_period)

    delta = None
    if current is not None and previous is not None:
        delta = compute_delta(current, previous)

    return PeriodMetrics(
        period=period,
        current=current,
        previous=previous,
        delta=delta,
        previous_period=previous_period,
    )
