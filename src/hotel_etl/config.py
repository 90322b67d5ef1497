"""hotel_etl.config

Database settings read from the environment (a local .env file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from psycopg.conninfo import make_conninfo

DSN_ENV_VAR = "HOTEL_ETL_DB_DSN"


@dataclass(frozen=True)
class DbSettings:
    host: str = "localhost"
    port: int = 5432
    dbname: str = "hotel_db"
    user: str = "postgres"
    password: str = ""
    # Connection pool bounds
    pool_min: int = 1
    pool_max: int = 5
    acquire_timeout: float = 30.0
    idle_timeout: float = 10.0
    dsn_override: str | None = None

    @classmethod
    def from_env(
        cls,
        load_env_file: bool = True,
        env_file: Path | None = None,
    ) -> DbSettings:
        """Read DB_* variables; values already in the environment win over .env."""
        if load_env_file:
            load_dotenv(env_file)
        env = os.environ
        return cls(
            host=env.get("DB_HOST", cls.host),
            port=int(env.get("DB_PORT", cls.port)),
            dbname=env.get("DB_NAME", cls.dbname),
            user=env.get("DB_USER", cls.user),
            password=env.get("DB_PASSWORD", cls.password),
            pool_min=int(env.get("DB_POOL_MIN", cls.pool_min)),
            pool_max=int(env.get("DB_POOL_MAX", cls.pool_max)),
            acquire_timeout=float(env.get("DB_POOL_ACQUIRE_TIMEOUT", cls.acquire_timeout)),
            idle_timeout=float(env.get("DB_POOL_IDLE_TIMEOUT", cls.idle_timeout)),
            dsn_override=env.get(DSN_ENV_VAR) or None,
        )

    @property
    def dsn(self) -> str:
        if self.dsn_override:
            return self.dsn_override
        # make_conninfo quotes values; an empty password is left to libpq (.pgpass)
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.dbname,
            user=self.user,
            password=self.password or None,
        )
