"""hotel_etl.batch_loader

Fixed-size batching with a bounded number of in-flight submissions.

Rows are buffered until batch_size is reached, then handed to a worker
thread. When max_in_flight submissions are outstanding, add() blocks until
one finishes, so a slow datastore throttles the CSV reader instead of
letting unpersisted batches pile up in memory. finish() flushes the final
partial batch and waits for everything outstanding.

Every submission outcome is collected. After the first failure no further
batch is accepted: outstanding submissions are drained and BatchLoadError
is raised to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import (
    ALL_COMPLETED,
    FIRST_COMPLETED,
    Future,
    ThreadPoolExecutor,
    wait,
)
from typing import Any, Callable, Generic, TypeVar

from hotel_etl.shared import BatchLoadError, ImportStateError

log = logging.getLogger(__name__)

T = TypeVar("T")


class BatchLoader(Generic[T]):
    def __init__(
        self,
        submit: Callable[[list[T]], int],
        batch_size: int = 1000,
        max_in_flight: int = 1,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")
        self._submit = submit
        self.batch_size = batch_size
        self.max_in_flight = max_in_flight
        self._executor = ThreadPoolExecutor(
            max_workers=max_in_flight, thread_name_prefix="batch-loader"
        )
        self._buffer: list[T] = []
        self._pending: dict[Future, tuple[int, int]] = {}
        self._failure: tuple[int, BaseException] | None = None
        self._closed = False
        # Outcome tallies, updated on the caller's thread only
        self.batches_submitted = 0
        self.batches_committed = 0
        self.rows_submitted = 0
        self.rows_committed = 0
        self.rows_inserted = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, item: T) -> None:
        if self._closed:
            raise ImportStateError("BatchLoader.add() called after finish()")
        self._buffer.append(item)
        if len(self._buffer) >= self.batch_size:
            self._flush_buffer()

    def finish(self) -> None:
        """Submit the partial final batch and wait for every submission."""
        if self._closed:
            raise ImportStateError("BatchLoader.finish() called twice")
        try:
            if self._buffer:
                self._flush_buffer()
            self._collect(ALL_COMPLETED)
            self._raise_if_failed()
        finally:
            self._closed = True
            self._executor.shutdown(wait=True)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def __enter__(self) -> BatchLoader[T]:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._closed:
            return
        # Abandoned mid-stream: let outstanding work finish and report it.
        self._closed = True
        self._collect(ALL_COMPLETED)
        self._executor.shutdown(wait=True)
        if self._failure is not None:
            batch_no, err = self._failure
            log.error("Batch %d failed while loader was abandoned: %s", batch_no, err)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _flush_buffer(self) -> None:
        batch, self._buffer = self._buffer, []
        while len(self._pending) >= self.max_in_flight:
            self._collect(FIRST_COMPLETED)
            self._raise_if_failed()
        self._raise_if_failed()
        self.batches_submitted += 1
        self.rows_submitted += len(batch)
        future = self._executor.submit(self._submit, batch)
        self._pending[future] = (self.batches_submitted, len(batch))
        log.debug(
            "Submitted batch %d (%d rows, %d in flight)",
            self.batches_submitted, len(batch), len(self._pending),
        )

    def _collect(self, return_when: str) -> None:
        if not self._pending:
            return
        done, _ = wait(list(self._pending), return_when=return_when)
        for future in done:
            batch_no, size = self._pending.pop(future)
            err = future.exception()
            if err is not None:
                log.error("Batch %d (%d rows) failed: %s", batch_no, size, err)
                if self._failure is None:
                    self._failure = (batch_no, err)
                continue
            self.batches_committed += 1
            self.rows_committed += size
            self.rows_inserted += future.result()

    def _raise_if_failed(self) -> None:
        if self._failure is None:
            return
        self._buffer = []
        self._collect(ALL_COMPLETED)
        batch_no, err = self._failure
        raise BatchLoadError(f"batch {batch_no} failed: {err}") from err
