from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.app.db import session_scope
from backend.app.domain.contracts import as_utc
from backend.app.models import App
from backend.app.seed.run import get_or_create_demo_app, seed_demo_transactions
from backend.app.services import ledger_service


def _parse_now(raw: Optional[str]) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    return as_utc(datetime.fromisoformat(raw))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def run(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    parser = argparse.ArgumentParser(description="Rebuild subscriptions and metrics snapshots for an app.")
    parser.add_argument("--app-id", help="App to rebuild.")
    parser.add_argument("--create-app", metavar="NAME", help="Create a new app and use it.")
    parser.add_argument("--seed-demo", action="store_true", help="Seed demo transactions (demo app if no app given).")
    parser.add_argument("--now", help="Reference time, ISO 8601. Defaults to the current UTC time.")
    parser.add_argument("--backfill", action="store_true", help="Also write month-end historical snapshots.")
    args = parser.parse_args(argv)

    now = _parse_now(args.now)
    output: Dict[str, Any] = {"now": now.isoformat()}

    with session_scope() as db:
        app_id = args.app_id
        if args.create_app:
            app = App(name=args.create_app)
            db.add(app)
            db.commit()
            app_id = app.id
        elif args.seed_demo and not app_id:
            app_id = get_or_create_demo_app(db).id
            db.commit()

        if not app_id:
            parser.error("one of --app-id, --create-app or --seed-demo is required")

        output["app_id"] = app_id
        if args.seed_demo:
            output["transactions_seeded"] = seed_demo_transactions(db, app_id, now)

        result = ledger_service.rebuild_from_transactions(db, app_id, now)
        output["rebuild"] = _jsonable(asdict(result))

        if args.backfill:
            output["snapshots_backfilled"] = ledger_service.backfill_historical_snapshots(db, app_id, now)

    return output


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print(json.dumps(run(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
