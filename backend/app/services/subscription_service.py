from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.domain.contracts import BILLING_INTERVALS, RISK_STATES, Subscription, is_at_risk
from backend.app.services.ledger_service import require_app
from backend.app.services.ledger_store import SqlSubscriptionStore


def _validate(values: Iterable[str], allowed: Iterable[str], label: str) -> List[str]:
    allowed_set = set(allowed)
    out: List[str] = []
    for value in values:
        normalized = value.strip().upper()
        if normalized not in allowed_set:
            raise HTTPException(status_code=422, detail=f"unknown {label}: {value}")
        out.append(normalized)
    return out


def list_subscriptions(
    db: Session,
    app_id: str,
    risk_states: Optional[List[str]] = None,
    billing_interval: Optional[str] = None,
) -> List[Subscription]:
    require_app(db, app_id)
    store = SqlSubscriptionStore(db)

    states = _validate(risk_states or [], RISK_STATES, "risk state")
    interval = _validate([billing_interval], BILLING_INTERVALS, "billing interval")[0] if billing_interval else None

    if len(states) == 1:
        subs = store.find_by_risk_state(app_id, states[0])
    else:
        subs = store.find_subscriptions(app_id)
        if states:
            subs = [sub for sub in subs if sub.risk_state in states]

    if interval:
        subs = [sub for sub in subs if sub.billing_interval == interval]
    return subs


def get_subscription(db: Session, app_id: str, domain: str) -> Subscription:
    require_app(db, app_id)
    sub = SqlSubscriptionStore(db).find_by_domain(app_id, domain)
    if sub is None:
        raise HTTPException(status_code=404, detail="subscription not found")
    return sub


def subscription_summary(db: Session, app_id: str) -> Dict[str, Any]:
    require_app(db, app_id)
    subs = SqlSubscriptionStore(db).find_subscriptions(app_id)

    total = len(subs)
    avg_price = sum(sub.base_price_cents for sub in subs) // total if total else 0
    return {
        "app_id": app_id,
        "active_count": sum(1 for sub in subs if sub.risk_state == "SAFE"),
        "at_risk_count": sum(1 for sub in subs if is_at_risk(sub.risk_state)),
        "churned_count": sum(1 for sub in subs if sub.risk_state == "CHURNED"),
        "avg_price_cents": avg_price,
        "total_count": total,
    }
