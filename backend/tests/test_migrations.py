"""Alembic migrations build the same tables the models declare."""
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def _config(db_path: Path) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return cfg


def test_upgrade_creates_tables(tmp_path):
    db_path = tmp_path / "migrated.db"

    command.upgrade(_config(db_path), "head")

    inspector = inspect(create_engine(f"sqlite:///{db_path}"))
    assert {"tournament", "team", "teamregistration", "match", "standing"} <= set(inspector.get_table_names())
    match_columns = {c["name"] for c in inspector.get_columns("match")}
    assert {"next_match_id", "scheduled_time", "court", "is_rescheduled", "walkover_reason"} <= match_columns
    tournament_columns = {c["name"] for c in inspector.get_columns("tournament")}
    assert {"registered_teams", "groups", "version"} <= tournament_columns


def test_downgrade_drops_tables(tmp_path):
    db_path = tmp_path / "migrated.db"
    cfg = _config(db_path)
    command.upgrade(cfg, "head")

    command.downgrade(cfg, "base")

    inspector = inspect(create_engine(f"sqlite:///{db_path}"))
    assert set(inspector.get_table_names()) <= {"alembic_version"}
