"""Storage capabilities the ledger engine depends on.

The engine only reads and writes through these protocols; the SQLAlchemy
implementations live in backend.app.services.ledger_store.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Protocol, Sequence

from backend.app.domain.contracts import DailyMetricsSnapshot, Subscription, Transaction


class TransactionSource(Protocol):
    def fetch_transactions(self, app_id: str, start: datetime, end: datetime) -> List[Transaction]:
        ...


class SubscriptionStore(Protocol):
    def replace_subscriptions(self, app_id: str, subscriptions: Sequence[Subscription]) -> None:
        ...

    def find_subscriptions(self, app_id: str) -> List[Subscription]:
        ...

    def find_by_risk_state(self, app_id: str, risk_state: str) -> List[Subscription]:
        ...

    def find_by_domain(self, app_id: str, domain: str) -> Optional[Subscription]:
        ...


class SnapshotStore(Protocol):
    def upsert_daily_snapshot(self, snapshot: DailyMetricsSnapshot) -> DailyMetricsSnapshot:
        ...

    def find_snapshots_in_range(self, app_id: str, start: date, end: date) -> List[DailyMetricsSnapshot]:
        ...

    def find_latest_snapshot(self, app_id: str) -> Optional[DailyMetricsSnapshot]:
        ...
