from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.analytics.metrics import compute_snapshot, usage_revenue
from backend.app.analytics.reconstruct import filter_in_range, filter_up_to, rebuild_subscriptions
from backend.app.analytics.risk import classify_all, risk_summary
from backend.app.api.config import rebuild_window_months, snapshots_enabled
from backend.app.domain.contracts import (
    RebuildResult,
    RiskSummary,
    Subscription,
    Transaction,
    add_months,
    as_utc,
)
from backend.app.domain.ports import SnapshotStore, SubscriptionStore, TransactionSource
from backend.app.models import App, utcnow
from backend.app.services.ledger_store import SqlSnapshotStore, SqlSubscriptionStore, SqlTransactionSource

logger = logging.getLogger(__name__)

HISTORY_START = datetime(1970, 1, 1, tzinfo=timezone.utc)


def require_app(db: Session, app_id: str) -> App:
    app = db.get(App, app_id)
    if not app:
        logger.warning("Ledger requested for missing app_id=%s", app_id)
        raise HTTPException(status_code=404, detail="app not found")
    return app


def total_active_mrr(subscriptions: List[Subscription]) -> int:
    return sum(sub.mrr_cents for sub in subscriptions if sub.is_active)


def rebuild_ledger(
    transactions: TransactionSource,
    subscriptions: SubscriptionStore,
    snapshots: Optional[SnapshotStore],
    app_id: str,
    now: datetime,
    *,
    window_months: int = 12,
) -> RebuildResult:
    """
    Deterministic rebuild: same transactions and `now` give the same subscriptions.

    Reads the trailing window, replaces every subscription for the app and, when a
    snapshot store is given, upserts today's metrics snapshot. Storage errors are
    not caught here; nothing from a failed call should be treated as valid.
    """
    now = as_utc(now)
    window_start = add_months(now, -window_months)
    txns = transactions.fetch_transactions(app_id, window_start, now)

    rebuilt = rebuild_subscriptions(app_id, txns, now)
    subscriptions.replace_subscriptions(app_id, rebuilt)

    snapshot = None
    if snapshots is not None:
        snapshot = snapshots.upsert_daily_snapshot(compute_snapshot(app_id, rebuilt, txns, now))

    return RebuildResult(
        app_id=app_id,
        subscriptions_updated=len(rebuilt),
        total_mrr_cents=total_active_mrr(rebuilt),
        total_usage_cents=usage_revenue(txns),
        risk_summary=risk_summary(rebuilt),
        rebuilt_at=now,
        snapshot=snapshot,
    )


def backfill_snapshots(
    transactions: List[Transaction],
    snapshots: SnapshotStore,
    app_id: str,
    now: datetime,
) -> int:
    """
    One snapshot per month end, from the earliest to the latest transaction.

    Subscriptions are rebuilt from everything up to the month end; revenue only
    counts that month's transactions. Snapshot dates never pass `now`.
    """
    if not transactions:
        return 0

    now = as_utc(now)
    dates = [as_utc(txn.transaction_date) for txn in transactions]
    earliest, latest = min(dates), max(dates)

    written = 0
    month_start = datetime(earliest.year, earliest.month, 1, tzinfo=timezone.utc)
    while month_start <= latest:
        next_month = add_months(month_start, 1)
        month_end = next_month - timedelta(seconds=1)
        snapshot_at = min(month_end, now)

        history = filter_up_to(transactions, snapshot_at)
        if history:
            subs = rebuild_subscriptions(app_id, history, snapshot_at)
            month_txns = filter_in_range(transactions, month_start, month_end)
            snapshots.upsert_daily_snapshot(compute_snapshot(app_id, subs, month_txns, snapshot_at))
            written += 1

        month_start = next_month

    return written


def reclassify(subscriptions: SubscriptionStore, app_id: str, now: datetime) -> List[Subscription]:
    return classify_all(subscriptions.find_subscriptions(app_id), as_utc(now))


# -------------------------
# Session-bound entry points
# -------------------------

def rebuild_from_transactions(db: Session, app_id: str, now: Optional[datetime] = None) -> RebuildResult:
    require_app(db, app_id)
    effective_now = as_utc(now) if now else utcnow()
    snapshots = SqlSnapshotStore(db) if snapshots_enabled() else None

    try:
        result = rebuild_ledger(
            SqlTransactionSource(db),
            SqlSubscriptionStore(db),
            snapshots,
            app_id,
            effective_now,
            window_months=rebuild_window_months(),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Ledger rebuild failed for app_id=%s; changes rolled back", app_id)
        raise

    logger.info(
        "Rebuilt ledger app_id=%s subscriptions=%s mrr_cents=%s",
        app_id,
        result.subscriptions_updated,
        result.total_mrr_cents,
    )
    return result


def backfill_historical_snapshots(db: Session, app_id: str, now: Optional[datetime] = None) -> int:
    require_app(db, app_id)
    effective_now = as_utc(now) if now else utcnow()

    try:
        txns = SqlTransactionSource(db).fetch_transactions(app_id, HISTORY_START, effective_now)
        written = backfill_snapshots(txns, SqlSnapshotStore(db), app_id, effective_now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Snapshot backfill failed for app_id=%s; changes rolled back", app_id)
        raise

    logger.info("Backfilled %s snapshots for app_id=%s", written, app_id)
    return written


def reclassify_subscriptions(db: Session, app_id: str, now: Optional[datetime] = None) -> RiskSummary:
    require_app(db, app_id)
    effective_now = as_utc(now) if now else utcnow()
    store = SqlSubscriptionStore(db)

    try:
        updated = reclassify(store, app_id, effective_now)
        store.update_risk_states(app_id, updated)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Risk re-classification failed for app_id=%s", app_id)
        raise

    return risk_summary(updated)
