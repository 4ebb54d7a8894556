from __future__ import annotations

from datetime import date
import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.analytics.periods import build_period_metrics, date_range_for_preset
from backend.app.domain.contracts import DailyMetricsSnapshot, DateRange, PeriodMetrics, TIME_RANGE_PRESETS
from backend.app.domain.ports import SnapshotStore
from backend.app.models import utcnow
from backend.app.services.ledger_service import require_app
from backend.app.services.ledger_store import SqlSnapshotStore

logger = logging.getLogger(__name__)

def aggregate_period(snapshots: SnapshotStore, app_id: str, period: DateRange) -> PeriodMetrics:
    previous = period.previous_period()
    current_rows = snapshots.find_snapshots_in_range(app_id, period.start, period.end)
    previous_rows = snapshots.find_snapshots_in_range(app_id, previous.start, previous.end)
    return build_period_metrics(period, current_rows, previous_rows)

def resolve_period(
    start: Optional[date],
    end: Optional[date],
    preset: Optional[str],
    today: Optional[date] = None,
) -> DateRange:
    reference = today or utcnow().date()
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(status_code=422, detail="start and end must be provided together")
        return DateRange.between(start, end)

    effective = (preset or "THIS_MONTH").strip().upper()
    if effective not in TIME_RANGE_PRESETS:
        raise HTTPException(status_code=422, detail=f"unknown preset: {preset}")
    return date_range_for_preset(effective, reference)

def get_period_metrics(db: Session, app_id: str, period: DateRange) -> PeriodMetrics:
    require_app(db, app_id)
    metrics = aggregate_period(SqlSnapshotStore(db), app_id, period)
    if metrics.current is None and metrics.previous is None:
        logger.info(
            "No snapshots for app_id=%s between %s and %s",
            app_id,
            metrics.period.start,
            metrics.period.end,
        )
    return metrics

def get_latest_snapshot(db: Session, app_id: str) -> Optional[DailyMetricsSnapshot]:
    require_app(db, app_id)
    return SqlSnapshotStore(db).find_latest_snapshot(app_id)
