from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.scripts import rebuild_ledger


def test_script_seeds_rebuilds_and_backfills(db_session):
    output = rebuild_ledger.run(
        ["--create-app", "Script App", "--seed-demo", "--now", "2024-06-15T18:00:00+00:00", "--backfill"]
    )

    assert output["transactions_seeded"] == 26
    assert output["rebuild"]["subscriptions_updated"] == 6
    assert output["rebuild"]["rebuilt_at"] == "2024-06-15T18:00:00+00:00"
    assert output["rebuild"]["snapshot"]["snapshot_date"] == "2024-06-15"
    assert output["snapshots_backfilled"] == 13


def test_script_reuses_demo_app(db_session):
    first = rebuild_ledger.run(["--seed-demo", "--now", "2024-06-15T18:00:00+00:00"])
    second = rebuild_ledger.run(["--seed-demo", "--now", "2024-06-15T18:00:00+00:00"])

    assert first["app_id"] == second["app_id"]
    assert second["transactions_seeded"] == 0
    assert second["rebuild"]["subscriptions_updated"] == 6
