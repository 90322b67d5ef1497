"""hotel_etl.datastore

The importers' only view of the relational store: transactions, bulk
insert, and a plain column read. PostgresDatastore implements it on top of
psycopg 3 and a psycopg_pool connection pool.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Iterator, Protocol, Sequence

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from hotel_etl.config import DbSettings
from hotel_etl.shared import create_batches

log = logging.getLogger(__name__)

# Bind parameters allowed in one statement (16-bit count in the Bind message)
MAX_BIND_PARAMS = 65535


class Datastore(Protocol):
    def transaction(self) -> ContextManager[Any]:
        """Begin on enter, commit on clean exit, roll back and re-raise on error."""

    def bulk_insert(
        self,
        tx: Any,
        table: str,
        rows: Sequence[dict[str, Any]],
        *,
        ignore_duplicates: bool = False,
        returning: Sequence[str] = (),
        upsert_on: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        ...

    def fetch_rows(
        self,
        tx: Any,
        table: str,
        columns: Sequence[str],
        order_by: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        ...


# ---------------------------------------------------------------------------
# SQL composition
# ---------------------------------------------------------------------------

def rows_per_statement(column_count: int) -> int:
    """Largest row count whose VALUES list stays within MAX_BIND_PARAMS."""
    if column_count < 1:
        raise ValueError(f"column_count must be positive, got {column_count}")
    return max(1, MAX_BIND_PARAMS // column_count)


def build_insert(
    table: str,
    columns: Sequence[str],
    row_count: int,
    *,
    ignore_duplicates: bool = False,
    returning: Sequence[str] = (),
    upsert_on: Sequence[str] | None = None,
) -> sql.Composed:
    """Compose a multi-row INSERT.

    ignore_duplicates → ON CONFLICT DO NOTHING (RETURNING yields only new rows).
    upsert_on → ON CONFLICT (cols) DO UPDATE with a no-op assignment so that
    RETURNING also yields rows that already existed.
    """
    if ignore_duplicates and upsert_on:
        raise ValueError("ignore_duplicates and upsert_on are mutually exclusive")

    row_tpl = sql.SQL("({})").format(
        sql.SQL(", ").join([sql.Placeholder()] * len(columns))
    )
    query = sql.SQL("INSERT INTO {table} ({cols}) VALUES {values}").format(
        table=sql.Identifier(table),
        cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
        values=sql.SQL(", ").join([row_tpl] * row_count),
    )
    if ignore_duplicates:
        query += sql.SQL(" ON CONFLICT DO NOTHING")
    elif upsert_on:
        first = sql.Identifier(upsert_on[0])
        query += sql.SQL(" ON CONFLICT ({keys}) DO UPDATE SET {col} = EXCLUDED.{col}").format(
            keys=sql.SQL(", ").join(map(sql.Identifier, upsert_on)),
            col=first,
        )
    if returning:
        query += sql.SQL(" RETURNING {}").format(
            sql.SQL(", ").join(map(sql.Identifier, returning))
        )
    return query


# ---------------------------------------------------------------------------
# PostgresDatastore
# ---------------------------------------------------------------------------

class PostgresDatastore:
    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def open(cls, settings: DbSettings, dsn: str | None = None) -> PostgresDatastore:
        pool = ConnectionPool(
            dsn or settings.dsn,
            min_size=settings.pool_min,
            max_size=settings.pool_max,
            timeout=settings.acquire_timeout,
            max_idle=settings.idle_timeout,
            open=True,
        )
        return cls(pool)

    def close(self) -> None:
        self._pool.close()

    def __enter__(self) -> PostgresDatastore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[psycopg.Connection]:
        with self._pool.connection() as conn:
            with conn.transaction():
                yield conn

    def bulk_insert(
        self,
        tx: psycopg.Connection,
        table: str,
        rows: Sequence[dict[str, Any]],
        *,
        ignore_duplicates: bool = False,
        returning: Sequence[str] = (),
        upsert_on: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        if not rows:
            return []
        columns = list(rows[0].keys())
        inserted: list[dict[str, Any]] = []
        with tx.cursor(row_factory=dict_row) as cur:
            # Large batches become several statements in the same transaction
            for chunk in create_batches(rows, rows_per_statement(len(columns))):
                query = build_insert(
                    table, columns, len(chunk),
                    ignore_duplicates=ignore_duplicates,
                    returning=returning,
                    upsert_on=upsert_on,
                )
                cur.execute(query, [row[c] for row in chunk for c in columns])
                if returning:
                    inserted.extend(cur.fetchall())
        return inserted

    def fetch_rows(
        self,
        tx: psycopg.Connection,
        table: str,
        columns: Sequence[str],
        order_by: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT {cols} FROM {table}").format(
            cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
            table=sql.Identifier(table),
        )
        if order_by:
            query += sql.SQL(" ORDER BY {}").format(
                sql.SQL(", ").join(map(sql.Identifier, order_by))
            )
        with tx.cursor(row_factory=dict_row) as cur:
            cur.execute(query)
            return cur.fetchall()


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def apply_migrations(dsn: str, directory: Path) -> list[Path]:
    """Run every *.sql file in directory, in name order, in autocommit mode."""
    migrations = sorted(directory.glob("*.sql"))
    with psycopg.connect(dsn, autocommit=True) as conn:
        for migration in migrations:
            log.info("Applying migration %s", migration.name)
            conn.execute(migration.read_text(encoding="utf-8"))
    return migrations
