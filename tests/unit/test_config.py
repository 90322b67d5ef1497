"""Unit tests for DbSettings."""

from __future__ import annotations

import pytest
from psycopg.conninfo import conninfo_to_dict

from hotel_etl.config import DSN_ENV_VAR, DbSettings

ENV_VARS = [
    "DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD",
    "DB_POOL_MIN", "DB_POOL_MAX", "DB_POOL_ACQUIRE_TIMEOUT", "DB_POOL_IDLE_TIMEOUT",
    DSN_ENV_VAR,
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestDbSettings:
    def test_defaults(self, clean_env):
        s = DbSettings.from_env(load_env_file=False)
        assert s.host == "localhost"
        assert s.port == 5432
        assert s.dbname == "hotel_db"
        assert s.pool_min == 1
        assert s.pool_max == 5
        assert s.acquire_timeout == 30.0
        assert s.idle_timeout == 10.0
        assert s.password == ""

    def test_env_overrides(self, clean_env):
        clean_env.setenv("DB_HOST", "db.internal")
        clean_env.setenv("DB_PORT", "6543")
        clean_env.setenv("DB_POOL_MAX", "12")
        clean_env.setenv("DB_POOL_ACQUIRE_TIMEOUT", "2.5")
        s = DbSettings.from_env(load_env_file=False)
        assert s.host == "db.internal"
        assert s.port == 6543
        assert s.pool_max == 12
        assert s.acquire_timeout == 2.5

    def test_dsn_from_parts(self, clean_env):
        clean_env.setenv("DB_NAME", "hotels_test")
        dsn = DbSettings.from_env(load_env_file=False).dsn
        assert "dbname=hotels_test" in dsn
        assert "host=localhost" in dsn

    def test_dsn_override(self, clean_env):
        clean_env.setenv(DSN_ENV_VAR, "postgresql://u:p@h/db")
        s = DbSettings.from_env(load_env_file=False)
        assert s.dsn == "postgresql://u:p@h/db"

    def test_env_file_loaded(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DB_NAME=from_dotenv\nDB_PORT=7777\n", encoding="utf-8")
        # register both so load_dotenv's writes are undone afterwards
        for var in ("DB_NAME", "DB_PORT"):
            clean_env.setenv(var, "")
            clean_env.delenv(var)
        s = DbSettings.from_env(env_file=env_file)
        assert s.dbname == "from_dotenv"
        assert s.port == 7777

    def test_environment_wins_over_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DB_HOST=from_dotenv\n", encoding="utf-8")
        clean_env.setenv("DB_HOST", "from_env")
        s = DbSettings.from_env(env_file=env_file)
        assert s.host == "from_env"

    def test_password_with_special_characters(self, clean_env):
        clean_env.setenv("DB_PASSWORD", "s3cret pass'word")
        clean_env.setenv("DB_USER", "etl user")
        parsed = conninfo_to_dict(DbSettings.from_env(load_env_file=False).dsn)
        assert parsed["password"] == "s3cret pass'word"
        assert parsed["user"] == "etl user"
        assert parsed["dbname"] == "hotel_db"

    def test_empty_password_left_out_of_dsn(self, clean_env):
        parsed = conninfo_to_dict(DbSettings.from_env(load_env_file=False).dsn)
        assert "password" not in parsed
        assert parsed["port"] == "5432"
