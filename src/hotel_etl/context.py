"""hotel_etl.context

Per-run importer state. A context is created for exactly one run, owns the
skip ledger, counters and entity mappings, and moves forward through its
phases once; a failed or finished context cannot be reused.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from hotel_etl.records import CityKey, RawRecord
from hotel_etl.shared import ImportCounters, ImportStateError, RejectWriter, SkipLedger

log = logging.getLogger(__name__)


class ImportPhase(str, Enum):
    START = "start"
    COLLECT_ENTITIES = "collect_entities"
    MATERIALIZE_REFERENCES = "materialize_references"
    LOAD_HOTEL_MAPPINGS = "load_hotel_mappings"
    LOAD_BATCHES = "load_batches"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ImportContext:
    csv_path: Path
    delimiter: str = ","
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    batch_size: int = 1000
    max_in_flight: int = 1
    progress_every: int = 1000
    rejects: RejectWriter | None = None
    ledger: SkipLedger = field(default_factory=SkipLedger)
    counters: ImportCounters = field(default_factory=ImportCounters)
    phase: ImportPhase = ImportPhase.START

    @contextmanager
    def running(self, phase: ImportPhase, after: ImportPhase) -> Iterator[None]:
        """Enter phase from after; any exception marks the run FAILED."""
        if self.phase is not after:
            raise ImportStateError(
                f"cannot enter {phase.value} from {self.phase.value} "
                f"(expected {after.value})"
            )
        self.phase = phase
        log.info("[%s] Phase %s", self.run_id, phase.value)
        try:
            yield
        except BaseException:
            self.phase = ImportPhase.FAILED
            raise

    def finish(self, after: ImportPhase) -> None:
        if self.phase is not after:
            raise ImportStateError(f"cannot finish from {self.phase.value}")
        self.phase = ImportPhase.DONE

    def fail(self) -> None:
        self.phase = ImportPhase.FAILED

    def skip(self, row: RawRecord, reason: str) -> None:
        self.ledger.record(reason)
        self.counters.rows_skipped += 1
        if self.rejects is not None:
            self.rejects.write(row, reason)

    def log_progress(self) -> None:
        c = self.counters
        if self.progress_every and c.rows_read % self.progress_every == 0:
            log.info(
                "[%s] Processed %d rows, %d valid, %d skipped...",
                self.run_id, c.rows_read, c.rows_valid, c.rows_skipped,
            )


@dataclass
class HotelImportContext(ImportContext):
    delimiter: str = "\t"
    reference_batch_size: int = 1000
    # EntityMapping: natural key → surrogate id (0 until materialized)
    cities: dict[CityKey, int] = field(default_factory=dict)
    regions: dict[str, int] = field(default_factory=dict)


@dataclass
class ReviewImportContext(ImportContext):
    delimiter: str = ","
    # trimmed hotel name → global_property_id
    hotels: dict[str, int] = field(default_factory=dict)
