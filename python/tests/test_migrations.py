"""Alembic migration tests against a throwaway SQLite file.

The config is built without alembic.ini so fileConfig does not reset the
logging setup shared with the rest of the suite.
"""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from clipshare.config import clear_settings_cache

REPO_ROOT = Path(__file__).resolve().parents[2]

CLIP_TABLES = {
    "clip_users",
    "clip_user_sessions",
    "clip_contents",
    "clip_access_logs",
    "clip_tags",
}


@pytest.fixture
def migration_db(tmp_path: Path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    clear_settings_cache()
    yield url
    clear_settings_cache()


def _alembic_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(REPO_ROOT / "migrations" / "alembic"))
    return config


def _table_names(url: str) -> set[str]:
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


class TestMigrations:
    def test_upgrade_creates_clip_tables(self, migration_db: str):
        command.upgrade(_alembic_config(), "head")

        tables = _table_names(migration_db)
        assert CLIP_TABLES <= tables
        assert "alembic_version" in tables

    def test_upgrade_creates_unique_short_url(self, migration_db: str):
        command.upgrade(_alembic_config(), "head")

        engine = create_engine(migration_db)
        try:
            uniques = inspect(engine).get_unique_constraints("clip_contents")
        finally:
            engine.dispose()
        assert {"name": "uk_short_url", "column_names": ["short_url"]} in [
            {"name": u["name"], "column_names": u["column_names"]} for u in uniques
        ]

    def test_downgrade_drops_clip_tables(self, migration_db: str):
        config = _alembic_config()
        command.upgrade(config, "head")
        command.downgrade(config, "base")

        assert not CLIP_TABLES & _table_names(migration_db)
