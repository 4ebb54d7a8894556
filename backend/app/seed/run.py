from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.domain.contracts import add_months, as_utc
from backend.app.models import App, Transaction

DEMO_APP_NAME = "LedgerGuard Demo App"
DEMO_PREFIX = "demo"


@dataclass(frozen=True)
class DemoChargeSpec:
    key: str
    domain: str
    charge_type: str
    months_ago: int
    day_offset: int
    gross_cents: int
    net_cents: int
    status: Optional[str] = None


def _monthly(key: str, domain: str, months: range, gross: int, net: int, day_offset: int = 0) -> List[DemoChargeSpec]:
    return [
        DemoChargeSpec(f"{key}_{m:02d}", domain, "RECURRING", m, day_offset, gross, net)
        for m in months
    ]


def demo_charge_specs() -> List[DemoChargeSpec]:
    specs: List[DemoChargeSpec] = []
    # Paying on schedule.
    specs += _monthly("healthy", "healthy-goods.myshopify.com", range(5, -1, -1), 2999, 2549)
    # Last paid ~2.5 months ago: expected date ~1.5 months back, one cycle missed.
    specs += _monthly("late", "late-payer.myshopify.com", range(5, 1, -1), 4900, 4165, day_offset=-15)
    # Stopped four months ago: two cycles missed / churned depending on the day.
    specs += _monthly("stalled", "stalled-shop.myshopify.com", range(9, 3, -1), 1900, 1615)
    # Annual plan, renewed ten days ago.
    specs += [
        DemoChargeSpec("annual_00", "annual-outfitters.myshopify.com", "RECURRING", 11, -20, 29900, 25415),
        DemoChargeSpec("annual_01", "annual-outfitters.myshopify.com", "RECURRING", 0, -10, 29900, 25415),
    ]
    # Merchant cancelled after the last charge.
    specs += [
        DemoChargeSpec("cancel_00", "cancelled-co.myshopify.com", "RECURRING", 2, 0, 999, 849),
        DemoChargeSpec("cancel_01", "cancelled-co.myshopify.com", "RECURRING", 1, 0, 999, 849, status="CANCELLED"),
    ]
    # Billing frozen by the platform.
    specs += [
        DemoChargeSpec("frozen_00", "frozen-store.myshopify.com", "RECURRING", 0, -5, 1499, 1274, status="FROZEN"),
    ]
    # Usage and one-time activity only: never becomes a subscription.
    specs += [
        DemoChargeSpec("usage_only_00", "usage-only.myshopify.com", "USAGE", 1, 0, 500, 425),
        DemoChargeSpec("usage_only_01", "usage-only.myshopify.com", "ONE_TIME", 0, -3, 2000, 1700),
    ]
    # Usage on top of a subscription, plus a refund.
    specs += [
        DemoChargeSpec("usage_00", "healthy-goods.myshopify.com", "USAGE", 0, -10, 500, 425),
        DemoChargeSpec("usage_01", "healthy-goods.myshopify.com", "USAGE", 0, -2, 300, 255),
        DemoChargeSpec("refund_00", "late-payer.myshopify.com", "REFUND", 3, -10, 4900, 4165),
    ]
    return specs


def _charged_at(now: datetime, spec: DemoChargeSpec) -> datetime:
    anchor = add_months(as_utc(now), -spec.months_ago) + timedelta(days=spec.day_offset)
    return datetime.combine(anchor.date(), time(hour=12), tzinfo=timezone.utc)


def get_or_create_demo_app(db: Session) -> App:
    app = db.execute(select(App).where(App.name == DEMO_APP_NAME)).scalars().first()
    if app is None:
        app = App(name=DEMO_APP_NAME)
        db.add(app)
        db.flush()
    return app


def seed_demo_transactions(db: Session, app_id: str, now: datetime) -> int:
    """
    Insert the demo billing history relative to `now`. Re-running only adds
    charges whose demo key is not already present for the app.
    """
    existing = set(
        db.execute(
            select(Transaction.external_id).where(
                Transaction.app_id == app_id,
                Transaction.external_id.like(f"{DEMO_PREFIX}_%"),
            )
        ).scalars()
    )

    created = 0
    for spec in demo_charge_specs():
        external_id = f"{DEMO_PREFIX}_{spec.key}"
        if external_id in existing:
            continue
        db.add(
            Transaction(
                app_id=app_id,
                external_id=external_id,
                domain=spec.domain,
                shop_name=spec.domain.split(".")[0].replace("-", " ").title(),
                charge_type=spec.charge_type,
                gross_amount_cents=spec.gross_cents,
                net_amount_cents=spec.net_cents,
                currency="USD",
                transaction_date=_charged_at(now, spec),
                subscription_status=spec.status,
            )
        )
        created += 1

    db.commit()
    return created
