"""hotel_etl.shared

Shared utilities used by both the hotel and review importers.
Includes the exception hierarchy, SkipLedger, RejectWriter, ImportCounters,
CSV streaming helpers, and report-writing support.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence, TypeVar

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class HotelEtlError(Exception):
    """Base class for errors that abort an import run."""


class MissingHeadersError(HotelEtlError):
    """Raised when the input file lacks required columns."""

    def __init__(self, path: Path, missing: Iterable[str]) -> None:
        self.path = path
        self.missing = sorted(missing)
        super().__init__(f"{path}: missing headers {self.missing}")


class ReferenceMaterializationError(HotelEtlError):
    """Raised when parent entities could not be given surrogate ids."""


class BatchLoadError(HotelEtlError):
    """Raised when a dependent-row batch failed to persist."""


class ImportStateError(HotelEtlError):
    """Raised when an importer context is reused or driven out of order."""


# ---------------------------------------------------------------------------
# SkipLedger
# ---------------------------------------------------------------------------

class SkipLedger:
    """Running tally of skipped rows keyed by reason."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._total = 0

    def record(self, reason: str) -> None:
        self._counts[reason] = self._counts.get(reason, 0) + 1
        self._total += 1

    @property
    def total(self) -> int:
        return self._total

    def count(self, reason: str) -> int:
        return self._counts.get(reason, 0)

    def reasons(self) -> dict[str, int]:
        return dict(self._counts)

    def items(self) -> list[tuple[str, int]]:
        return sorted(self._counts.items(), key=lambda kv: (-kv[1], kv[0]))

    def __len__(self) -> int:
        return len(self._counts)


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None

    def write(self, row: dict[str, str], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None


# ---------------------------------------------------------------------------
# ImportCounters
# ---------------------------------------------------------------------------

@dataclass
class ImportCounters:
    rows_read: int = 0
    rows_valid: int = 0
    rows_skipped: int = 0
    # Hotel-import parent entities
    cities_materialized: int = 0
    regions_materialized: int = 0
    # Review-import lookups
    hotel_mappings_loaded: int = 0
    # Batch loader
    batches_submitted: int = 0
    rows_inserted: int = 0
    duplicates_ignored: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# CSV streaming
# ---------------------------------------------------------------------------

def normalize_headers(raw: dict[str | None, Any]) -> dict[str, str]:
    """Return a new dict with header keys whitespace-stripped.

    Overflow values (key None) are dropped.
    """
    return {k.strip(): v for k, v in raw.items() if k is not None}


def read_headers(path: Path, delimiter: str) -> list[str]:
    with path.open(encoding="utf-8-sig", newline="") as fh:
        reader = csv.reader(fh, delimiter=delimiter)
        header = next(reader, [])
    return [h.strip() for h in header]


def check_headers(path: Path, delimiter: str, required: Iterable[str]) -> None:
    missing = set(required) - set(read_headers(path, delimiter))
    if missing:
        raise MissingHeadersError(path, missing)


def iter_records(path: Path, delimiter: str) -> Iterator[dict[str, str]]:
    """Stream rows as header → value dicts. Each call re-opens the file."""
    with path.open(encoding="utf-8-sig", newline="") as fh:
        reader = csv.DictReader(fh, delimiter=delimiter)
        for raw_row in reader:
            yield normalize_headers(raw_row)


def create_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    source_path: str,
    counters: ImportCounters,
    ledger: SkipLedger,
    report_dir: Path,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "source_path": source_path,
        "counters": counters.to_dict(),
        "skipped_total": ledger.total,
        "skipped_reasons": ledger.reasons(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
