# backend/app/api/deps.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.domain.contracts import as_utc
from backend.app.models import App, utcnow
from backend.app.services.ledger_service import require_app


def resolve_now(now: Optional[datetime]) -> datetime:
    """Query-supplied reference time, or the wall clock. Naive values are read as UTC."""
    return as_utc(now) if now is not None else utcnow()


def require_app_dep() -> Callable[..., App]:
    """
    FastAPI dependency factory that 404s on unknown apps.

    Usage:
      @router.get("/api/apps/{app_id}/something", dependencies=[Depends(require_app_dep())])
    """
    def _dep(app_id: str, db: Session = Depends(get_db)) -> App:
        return require_app(db, app_id)

    return _dep
