from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.config import allow_demo_reset
from backend.app.api.deps import require_app_dep, resolve_now
from backend.app.db import get_db
from backend.app.models import App
from backend.app.seed.run import seed_demo_transactions

router = APIRouter(prefix="/api/apps", tags=["apps"])


class AppCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class AppOut(BaseModel):
    id: str
    name: str
    created_at: datetime


class DemoSeedOut(BaseModel):
    app_id: str
    transactions_created: int


@router.post("", response_model=AppOut, status_code=201)
def create_app(req: AppCreateIn, db: Session = Depends(get_db)):
    app = App(name=req.name.strip())
    db.add(app)
    db.commit()
    db.refresh(app)
    return AppOut(id=app.id, name=app.name, created_at=app.created_at)


@router.post("/{app_id}/demo/seed", response_model=DemoSeedOut, dependencies=[Depends(require_app_dep())])
def seed_demo(app_id: str, now: Optional[datetime] = None, db: Session = Depends(get_db)):
    if not allow_demo_reset():
        raise HTTPException(status_code=403, detail="demo seeding is disabled")
    created = seed_demo_transactions(db, app_id, resolve_now(now))
    return DemoSeedOut(app_id=app_id, transactions_created=created)
