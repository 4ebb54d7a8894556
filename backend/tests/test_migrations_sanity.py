from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

from backend.app.db import Base


ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"
LEDGER_TABLES = {"apps", "transactions", "subscriptions", "daily_metrics_snapshots"}


def _load_script() -> ScriptDirectory:
    config = Config(str(ALEMBIC_INI))
    return ScriptDirectory.from_config(config)


def _config_for(database_url: str) -> Config:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def test_alembic_single_head():
    script = _load_script()
    heads = script.get_heads()
    assert len(heads) == 1


def test_alembic_db_revision_known(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'alembic.db'}"
    command.stamp(_config_for(database_url), "head")

    engine = create_engine(database_url, future=True)
    with engine.connect() as conn:
        revision = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    engine.dispose()

    script = _load_script()
    assert revision is not None
    assert script.get_revision(revision) is not None


def test_upgrade_head_matches_models(tmp_path):
    migrated_url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(_config_for(migrated_url), "head")

    bootstrap = create_engine(f"sqlite:///{tmp_path / 'bootstrap.db'}", future=True)
    Base.metadata.create_all(bind=bootstrap)

    migrated = create_engine(migrated_url, future=True)
    migrated_inspector = inspect(migrated)
    bootstrap_inspector = inspect(bootstrap)

    assert LEDGER_TABLES <= set(migrated_inspector.get_table_names())
    for table in LEDGER_TABLES:
        migrated_cols = {col["name"] for col in migrated_inspector.get_columns(table)}
        model_cols = {col["name"] for col in bootstrap_inspector.get_columns(table)}
        assert migrated_cols == model_cols, table

    migrated.dispose()
    bootstrap.dispose()
