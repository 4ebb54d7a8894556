from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from backend.app.domain.contracts import (
    CHARGE_TYPES,
    DailyMetricsSnapshot,
    LedgerInputError,
    Subscription,
    Transaction,
    as_utc,
)
from backend.app import models

logger = logging.getLogger(__name__)


def _opt_utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def transaction_from_row(row: models.Transaction) -> Transaction:
    charge_type = (row.charge_type or "").strip().upper()
    if charge_type not in CHARGE_TYPES:
        raise LedgerInputError(f"transaction {row.id} has unknown charge type {row.charge_type!r}")
    return Transaction(
        domain=row.domain,
        charge_type=charge_type,
        gross_amount_cents=int(row.gross_amount_cents or 0),
        net_amount_cents=int(row.net_amount_cents or 0),
        currency=row.currency,
        transaction_date=as_utc(row.transaction_date),
        external_id=row.external_id,
        shop_name=row.shop_name,
        subscription_status=row.subscription_status,
        subscription_gid=row.subscription_gid,
    )


def subscription_from_row(row: models.Subscription) -> Subscription:
    return Subscription(
        app_id=row.app_id,
        domain=row.domain,
        subscription_gid=row.subscription_gid,
        base_price_cents=int(row.base_price_cents),
        currency=row.currency,
        billing_interval=row.billing_interval,
        status=row.status,
        shop_name=row.shop_name,
        last_charge_date=_opt_utc(row.last_charge_date),
        expected_next_charge_date=_opt_utc(row.expected_next_charge_date),
        risk_state=row.risk_state,
    )


def subscription_to_row(sub: Subscription) -> models.Subscription:
    return models.Subscription(
        app_id=sub.app_id,
        subscription_gid=sub.subscription_gid,
        domain=sub.domain,
        shop_name=sub.shop_name,
        base_price_cents=sub.base_price_cents,
        currency=sub.currency,
        billing_interval=sub.billing_interval,
        status=sub.status,
        last_charge_date=sub.last_charge_date,
        expected_next_charge_date=sub.expected_next_charge_date,
        risk_state=sub.risk_state,
    )


def snapshot_from_row(row: models.DailyMetricsSnapshot) -> DailyMetricsSnapshot:
    return DailyMetricsSnapshot(
        app_id=row.app_id,
        snapshot_date=row.snapshot_date,
        active_mrr_cents=int(row.active_mrr_cents),
        revenue_at_risk_cents=int(row.revenue_at_risk_cents),
        usage_revenue_cents=int(row.usage_revenue_cents),
        total_revenue_cents=int(row.total_revenue_cents),
        renewal_success_rate=float(row.renewal_success_rate),
        safe_count=row.safe_count,
        one_cycle_missed_count=row.one_cycle_missed_count,
        two_cycles_missed_count=row.two_cycles_missed_count,
        churned_count=row.churned_count,
    )


def _snapshot_values(snapshot: DailyMetricsSnapshot) -> Dict[str, object]:
    return {
        "active_mrr_cents": snapshot.active_mrr_cents,
        "revenue_at_risk_cents": snapshot.revenue_at_risk_cents,
        "usage_revenue_cents": snapshot.usage_revenue_cents,
        "total_revenue_cents": snapshot.total_revenue_cents,
        "renewal_success_rate": snapshot.renewal_success_rate,
        "safe_count": snapshot.safe_count,
        "one_cycle_missed_count": snapshot.one_cycle_missed_count,
        "two_cycles_missed_count": snapshot.two_cycles_missed_count,
        "churned_count": snapshot.churned_count,
        "total_subscriptions": snapshot.total_subscriptions,
    }


# (app_id, snapshot_date) upserts go through INSERT ... ON CONFLICT where the dialect has it.
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlTransactionSource:
    def __init__(self, db: Session):
        self.db = db

    def fetch_transactions(self, app_id: str, start: datetime, end: datetime) -> List[Transaction]:
        rows = (
            self.db.execute(
                select(models.Transaction)
                .where(
                    models.Transaction.app_id == app_id,
                    models.Transaction.transaction_date >= start,
                    models.Transaction.transaction_date <= end,
                )
                .order_by(models.Transaction.transaction_date.asc(), models.Transaction.id.asc())
            )
            .scalars()
            .all()
        )

        out: List[Transaction] = []
        for row in rows:
            try:
                out.append(transaction_from_row(row))
            except LedgerInputError as exc:
                logger.warning("Skipping transaction for app_id=%s: %s", app_id, exc)
        return out


class SqlSubscriptionStore:
    """
    replace_subscriptions only flushes; the caller commits, so the delete and the
    inserts land in one database transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def replace_subscriptions(self, app_id: str, subscriptions: Sequence[Subscription]) -> None:
        self.db.execute(delete(models.Subscription).where(models.Subscription.app_id == app_id))
        self.db.add_all([subscription_to_row(sub) for sub in subscriptions])
        self.db.flush()

    def update_risk_states(self, app_id: str, subscriptions: Sequence[Subscription]) -> None:
        by_domain = {sub.domain: sub.risk_state for sub in subscriptions}
        rows = self._rows(app_id)
        for row in rows:
            if row.domain in by_domain:
                row.risk_state = by_domain[row.domain]
        self.db.flush()

    def find_subscriptions(self, app_id: str) -> List[Subscription]:
        return [subscription_from_row(row) for row in self._rows(app_id)]

    def find_by_risk_state(self, app_id: str, risk_state: str) -> List[Subscription]:
        rows = (
            self.db.execute(
                select(models.Subscription)
                .where(
                    models.Subscription.app_id == app_id,
                    models.Subscription.risk_state == risk_state,
                )
                .order_by(models.Subscription.domain.asc())
            )
            .scalars()
            .all()
        )
        return [subscription_from_row(row) for row in rows]

    def find_by_domain(self, app_id: str, domain: str) -> Optional[Subscription]:
        row = (
            self.db.execute(
                select(models.Subscription).where(
                    models.Subscription.app_id == app_id,
                    models.Subscription.domain == domain,
                )
            )
            .scalars()
            .first()
        )
        return subscription_from_row(row) if row else None

    def _rows(self, app_id: str) -> List[models.Subscription]:
        return (
            self.db.execute(
                select(models.Subscription)
                .where(models.Subscription.app_id == app_id)
                .order_by(models.Subscription.domain.asc())
            )
            .scalars()
            .all()
        )


class SqlSnapshotStore:
    def __init__(self, db: Session):
        self.db = db

    def upsert_daily_snapshot(self, snapshot: DailyMetricsSnapshot) -> DailyMetricsSnapshot:
        """
        Writes inside the caller's transaction; nothing here commits, so a failed
        rebuild or backfill rolls back every snapshot it wrote.
        """
        values = _snapshot_values(snapshot)
        insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)

        if insert is not None:
            now = models.utcnow()
            stmt = insert(models.DailyMetricsSnapshot.__table__).values(
                id=models.uuid_str(),
                app_id=snapshot.app_id,
                snapshot_date=snapshot.snapshot_date,
                created_at=now,
                updated_at=now,
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["app_id", "snapshot_date"],
                set_={**values, "updated_at": now},
            )
            self.db.execute(stmt)
        else:
            row = self._row_for(snapshot.app_id, snapshot.snapshot_date)
            if row is None:
                row = models.DailyMetricsSnapshot(app_id=snapshot.app_id, snapshot_date=snapshot.snapshot_date)
                self.db.add(row)
            for key, value in values.items():
                setattr(row, key, value)
            self.db.flush()

        logger.info("Upserted daily snapshot app_id=%s date=%s", snapshot.app_id, snapshot.snapshot_date)
        return snapshot_from_row(self._row_for(snapshot.app_id, snapshot.snapshot_date))

    def find_snapshots_in_range(self, app_id: str, start: date, end: date) -> List[DailyMetricsSnapshot]:
        rows = (
            self.db.execute(
                select(models.DailyMetricsSnapshot)
                .where(
                    models.DailyMetricsSnapshot.app_id == app_id,
                    models.DailyMetricsSnapshot.snapshot_date >= start,
                    models.DailyMetricsSnapshot.snapshot_date <= end,
                )
                .order_by(models.DailyMetricsSnapshot.snapshot_date.asc())
            )
            .scalars()
            .all()
        )
        return [snapshot_from_row(row) for row in rows]

    def find_latest_snapshot(self, app_id: str) -> Optional[DailyMetricsSnapshot]:
        row = (
            self.db.execute(
                select(models.DailyMetricsSnapshot)
                .where(models.DailyMetricsSnapshot.app_id == app_id)
                .order_by(models.DailyMetricsSnapshot.snapshot_date.desc())
                .limit(1)
            )
            .scalars()
            .first()
        )
        return snapshot_from_row(row) if row else None

    def _row_for(self, app_id: str, snapshot_date: date) -> Optional[models.DailyMetricsSnapshot]:
        return (
            self.db.execute(
                select(models.DailyMetricsSnapshot)
                .where(
                    models.DailyMetricsSnapshot.app_id == app_id,
                    models.DailyMetricsSnapshot.snapshot_date == snapshot_date,
                )
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )
