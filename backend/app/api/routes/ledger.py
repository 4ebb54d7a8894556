# backend/app/api/routes/ledger.py
from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import resolve_now
from backend.app.db import get_db
from backend.app.domain.contracts import DailyMetricsSnapshot, RiskSummary
from backend.app.services import ledger_service

router = APIRouter(prefix="/api/apps/{app_id}/ledger", tags=["ledger"])


# -------------------------
# Schemas
# -------------------------

class RiskSummaryOut(BaseModel):
    safe: int
    one_cycle_missed: int
    two_cycles_missed: int
    churned: int
    total: int


class DailySnapshotOut(BaseModel):
    app_id: str
    snapshot_date: date
    active_mrr_cents: int
    revenue_at_risk_cents: int
    usage_revenue_cents: int
    total_revenue_cents: int
    renewal_success_rate: float
    safe_count: int
    one_cycle_missed_count: int
    two_cycles_missed_count: int
    churned_count: int
    total_subscriptions: int


class RebuildResultOut(BaseModel):
    app_id: str
    subscriptions_updated: int
    total_mrr_cents: int
    total_usage_cents: int
    risk_summary: RiskSummaryOut
    rebuilt_at: datetime
    snapshot: Optional[DailySnapshotOut] = None


class BackfillOut(BaseModel):
    app_id: str
    snapshots_written: int


def risk_summary_out(summary: RiskSummary) -> RiskSummaryOut:
    return RiskSummaryOut(**asdict(summary), total=summary.total)


def snapshot_out(snapshot: DailyMetricsSnapshot) -> DailySnapshotOut:
    return DailySnapshotOut(**asdict(snapshot), total_subscriptions=snapshot.total_subscriptions)


# -------------------------
# Routes
# -------------------------

@router.post("/rebuild", response_model=RebuildResultOut)
def rebuild_ledger(app_id: str, now: Optional[datetime] = None, db: Session = Depends(get_db)):
    result = ledger_service.rebuild_from_transactions(db, app_id, resolve_now(now))
    return RebuildResultOut(
        app_id=result.app_id,
        subscriptions_updated=result.subscriptions_updated,
        total_mrr_cents=result.total_mrr_cents,
        total_usage_cents=result.total_usage_cents,
        risk_summary=risk_summary_out(result.risk_summary),
        rebuilt_at=result.rebuilt_at,
        snapshot=snapshot_out(result.snapshot) if result.snapshot else None,
    )


@router.post("/backfill", response_model=BackfillOut)
def backfill_snapshots(app_id: str, now: Optional[datetime] = None, db: Session = Depends(get_db)):
    written = ledger_service.backfill_historical_snapshots(db, app_id, resolve_now(now))
    return BackfillOut(app_id=app_id, snapshots_written=written)


@router.post("/reclassify", response_model=RiskSummaryOut)
def reclassify_subscriptions(app_id: str, now: Optional[datetime] = None, db: Session = Depends(get_db)):
    summary = ledger_service.reclassify_subscriptions(db, app_id, resolve_now(now))
    return risk_summary_out(summary)
