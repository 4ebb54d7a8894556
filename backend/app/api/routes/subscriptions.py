from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.domain.contracts import Subscription
from backend.app.services import subscription_service

router = APIRouter(prefix="/api/apps/{app_id}/subscriptions", tags=["subscriptions"])


class SubscriptionOut(BaseModel):
    app_id: str
    domain: str
    subscription_gid: str
    shop_name: Optional[str] = None
    base_price_cents: int
    mrr_cents: int
    currency: str
    billing_interval: str
    status: str
    last_charge_date: Optional[datetime] = None
    expected_next_charge_date: Optional[datetime] = None
    risk_state: str


class SubscriptionSummaryOut(BaseModel):
    app_id: str
    active_count: int
    at_risk_count: int
    churned_count: int
    avg_price_cents: int
    total_count: int


def subscription_out(sub: Subscription) -> SubscriptionOut:
    return SubscriptionOut(**asdict(sub), mrr_cents=sub.mrr_cents)


@router.get("", response_model=List[SubscriptionOut])
def list_subscriptions(
    app_id: str,
    risk_state: Optional[List[str]] = Query(None),
    billing_interval: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    subs = subscription_service.list_subscriptions(
        db,
        app_id,
        risk_states=risk_state,
        billing_interval=billing_interval,
    )
    return [subscription_out(sub) for sub in subs]


@router.get("/summary", response_model=SubscriptionSummaryOut)
def get_subscription_summary(app_id: str, db: Session = Depends(get_db)):
    return subscription_service.subscription_summary(db, app_id)


@router.get("/{domain}", response_model=SubscriptionOut)
def get_subscription(app_id: str, domain: str, db: Session = Depends(get_db)):
    return subscription_out(subscription_service.get_subscription(db, app_id, domain))
