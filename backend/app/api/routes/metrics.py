from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.routes.ledger import DailySnapshotOut, snapshot_out
from backend.app.db import get_db
from backend.app.domain.contracts import DELTA_POLARITY, MetricsDelta, PeriodMetrics
from backend.app.services import metrics_aggregation_service

router = APIRouter(prefix="/api/apps/{app_id}/metrics", tags=["metrics"])


class PeriodOut(BaseModel):
    start: date
    end: date


class MetricsSummaryOut(BaseModel):
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


class MetricsDeltaOut(BaseModel):
    active_mrr_percent: Optional[float] = None
    revenue_at_risk_percent: Optional[float] = None
    usage_revenue_percent: Optional[float] = None
    total_revenue_percent: Optional[float] = None
    renewal_success_percent: Optional[float] = None
    churn_count_percent: Optional[float] = None
    is_good: Dict[str, Optional[bool]]


class PeriodMetricsOut(BaseModel):
    period: PeriodOut
    previous_period: PeriodOut
    current: Optional[MetricsSummaryOut] = None
    previous: Optional[MetricsSummaryOut] = None
    delta: Optional[MetricsDeltaOut] = None


def _delta_out(delta: MetricsDelta) -> MetricsDeltaOut:
    return MetricsDeltaOut(
        **asdict(delta),
        is_good={name: delta.is_good(name) for name in DELTA_POLARITY},
    )


def period_metrics_out(metrics: PeriodMetrics) -> PeriodMetricsOut:
    previous_period = metrics.previous_period or metrics.period.previous_period()
    return PeriodMetricsOut(
        period=PeriodOut(start=metrics.period.start, end=metrics.period.end),
        previous_period=PeriodOut(start=previous_period.start, end=previous_period.end),
        current=MetricsSummaryOut(**asdict(metrics.current)) if metrics.current else None,
        previous=MetricsSummaryOut(**asdict(metrics.previous)) if metrics.previous else None,
        delta=_delta_out(metrics.delta) if metrics.delta else None,
    )


@router.get("", response_model=PeriodMetricsOut)
def get_period_metrics(
    app_id: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    preset: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    period = metrics_aggregation_service.resolve_period(start, end, preset)
    metrics = metrics_aggregation_service.get_period_metrics(db, app_id, period)
    return period_metrics_out(metrics)


@router.get("/latest", response_model=DailySnapshotOut)
def get_latest_snapshot(app_id: str, db: Session = Depends(get_db)):
    snapshot = metrics_aggregation_service.get_latest_snapshot(db, app_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="no snapshots for app")
    return snapshot_out(snapshot)
