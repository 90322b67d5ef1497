"""hotel_etl.import_reviews

Hotel review import (comma-separated). Reviews reference hotels by name;
the name → id mapping is read from the hotels table before the single
streaming pass over the file.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Sequence

from hotel_etl.batch_loader import BatchLoader
from hotel_etl.context import ImportPhase, ReviewImportContext
from hotel_etl.datastore import Datastore
from hotel_etl.records import ReviewRecord, hotel_name_key
from hotel_etl.shared import check_headers, iter_records
from hotel_etl.validation import REVIEW_REQUIRED_FIELDS, validate_review_row

log = logging.getLogger(__name__)

HOTEL_NOT_FOUND_REASON = "Hotel not found in database"

HOTEL_TABLE = "hotels"
REVIEW_TABLE = "reviews"


def load_hotel_mappings(ctx: ReviewImportContext, store: Datastore) -> None:
    """Populate ctx.hotels with trimmed hotel name → global_property_id.

    Names are not unique in the hotels table; the highest id wins.
    """
    with ctx.running(ImportPhase.LOAD_HOTEL_MAPPINGS, after=ImportPhase.START):
        log.info("[%s] Loading hotel mappings from database...", ctx.run_id)
        with store.transaction() as tx:
            rows = store.fetch_rows(
                tx, HOTEL_TABLE,
                ("global_property_id", "global_property_name"),
                order_by=("global_property_id",),
            )
        hotels: dict[str, int] = {}
        for rec in rows:
            name = hotel_name_key(rec["global_property_name"])
            if name is not None:
                hotels[name] = rec["global_property_id"]
        ctx.hotels = hotels
        ctx.counters.hotel_mappings_loaded = len(hotels)
        log.info("[%s] Loaded %d hotel mappings", ctx.run_id, len(hotels))


def persist_review_batch(store: Datastore, records: Sequence[ReviewRecord]) -> int:
    with store.transaction() as tx:
        inserted = store.bulk_insert(
            tx, REVIEW_TABLE,
            [r.to_db_row() for r in records],
            ignore_duplicates=True,
            returning=("review_id",),
        )
    return len(inserted)


def load_reviews(ctx: ReviewImportContext, store: Datastore) -> None:
    with ctx.running(ImportPhase.LOAD_BATCHES, after=ImportPhase.LOAD_HOTEL_MAPPINGS):
        log.info("[%s] Importing reviews...", ctx.run_id)
        loader: BatchLoader[ReviewRecord] = BatchLoader(
            partial(persist_review_batch, store),
            batch_size=ctx.batch_size,
            max_in_flight=ctx.max_in_flight,
        )
        c = ctx.counters
        try:
            with loader:
                for row in iter_records(ctx.csv_path, ctx.delimiter):
                    c.rows_read += 1
                    validation = validate_review_row(row)
                    if not validation.is_valid:
                        ctx.skip(row, validation.reason)
                    else:
                        hotel_name = hotel_name_key(row.get("HotelName"))
                        hotel_id = ctx.hotels.get(hotel_name, 0)
                        if not hotel_id:
                            ctx.skip(row, HOTEL_NOT_FOUND_REASON)
                            log.warning(
                                "[%s] Skipping review - hotel not found: %r",
                                ctx.run_id, hotel_name,
                            )
                        else:
                            loader.add(ReviewRecord.from_row(row, hotel_id))
                            c.rows_valid += 1
                    ctx.log_progress()
                loader.finish()
        finally:
            c.batches_submitted = loader.batches_submitted
            c.rows_inserted = loader.rows_inserted
            c.duplicates_ignored = loader.rows_committed - loader.rows_inserted

        log.info(
            "[%s] Review import completed: %d rows read, %d valid, %d inserted, %d skipped",
            ctx.run_id, c.rows_read, c.rows_valid, c.rows_inserted, c.rows_skipped,
        )


def run_review_import(ctx: ReviewImportContext, store: Datastore) -> ReviewImportContext:
    log.info("[%s] Starting review import from %s", ctx.run_id, ctx.csv_path)
    try:
        check_headers(ctx.csv_path, ctx.delimiter, REVIEW_REQUIRED_FIELDS)
    except Exception:
        ctx.fail()
        raise
    load_hotel_mappings(ctx, store)
    load_reviews(ctx, store)
    ctx.finish(after=ImportPhase.LOAD_BATCHES)
    log.info(
        "[%s] Total skipped records: %d %s",
        ctx.run_id, ctx.ledger.total, ctx.ledger.reasons(),
    )
    return ctx
