"""Unit test fixtures.

FakeDatastore implements the Datastore protocol in memory: staged rows
become visible only when their transaction commits, unique keys are
enforced per table, and every bulk_insert call is recorded.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Sequence

import pytest

# table → (id column, unique key columns)
TABLES = {
    "cities": ("city_id", ("city_name", "country")),
    "regions": ("region_id", ("region_name",)),
    "hotels": ("global_property_id", ("global_property_id",)),
    "reviews": ("review_id", ("global_property_id", "reviewer_name", "review_title")),
}


class FakeUniqueViolation(Exception):
    pass


class FakeTransaction:
    def __init__(self, number: int) -> None:
        self.number = number
        self.state = "open"
        self.staged: list[tuple[str, dict[str, Any]]] = []
        self.tables_touched: list[str] = []


class FakeDatastore:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {t: [] for t in TABLES}
        self.transactions: list[FakeTransaction] = []
        self.submissions: list[tuple[str, int]] = []
        self.fail_when: Callable[[str, Sequence[dict[str, Any]]], bool] | None = None
        self._next_id = {t: 1 for t in TABLES}
        self._lock = threading.RLock()

    def __enter__(self) -> FakeDatastore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        pass

    def submissions_for(self, table: str) -> list[int]:
        return [size for t, size in self.submissions if t == table]

    @contextmanager
    def transaction(self):
        with self._lock:
            tx = FakeTransaction(len(self.transactions) + 1)
            self.transactions.append(tx)
        try:
            yield tx
        except BaseException:
            tx.state = "rolled_back"
            raise
        with self._lock:
            for table, row in tx.staged:
                self.tables[table].append(row)
            tx.state = "committed"

    def bulk_insert(
        self,
        tx: FakeTransaction,
        table: str,
        rows: Sequence[dict[str, Any]],
        *,
        ignore_duplicates: bool = False,
        returning: Sequence[str] = (),
        upsert_on: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            self.submissions.append((table, len(rows)))
            tx.tables_touched.append(table)
            if self.fail_when is not None and self.fail_when(table, rows):
                raise RuntimeError(f"simulated failure inserting into {table}")
            id_col, key_cols = TABLES[table]
            result = []
            for row in rows:
                key = tuple(row[c] for c in key_cols)
                existing = self._find(tx, table, key_cols, key)
                if existing is not None:
                    if ignore_duplicates:
                        continue
                    if upsert_on:
                        result.append({c: existing[c] for c in returning})
                        continue
                    raise FakeUniqueViolation(f"{table} {key!r}")
                new = dict(row)
                if id_col not in new:
                    new[id_col] = self._next_id[table]
                    self._next_id[table] += 1
                tx.staged.append((table, new))
                result.append({c: new[c] for c in returning})
            return result if returning else []

    def fetch_rows(self, tx, table, columns, order_by=()):
        with self._lock:
            rows = list(self.tables[table])
        if order_by:
            rows.sort(key=lambda r: tuple(r[c] for c in order_by))
        return [{c: r[c] for c in columns} for r in rows]

    def _find(self, tx, table, key_cols, key):
        candidates = self.tables[table] + [r for t, r in tx.staged if t == table]
        for r in candidates:
            if tuple(r[c] for c in key_cols) == key:
                return r
        return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> FakeDatastore:
    return FakeDatastore()
