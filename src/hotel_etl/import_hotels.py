"""hotel_etl.import_hotels

Hotel property import (tab-separated).

Phases, each a full pass or a single transaction:
  1. collect_entities        : pass 1: dedupe the cities and regions that
                               valid rows reference.
  2. materialize_references  : one transaction: bulk insert both key sets,
                               keep the assigned ids.
  3. load_hotels             : pass 2 (file re-opened): resolve foreign keys,
                               batch valid hotels, insert each batch in its
                               own duplicate-ignoring transaction.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Sequence

from hotel_etl.batch_loader import BatchLoader
from hotel_etl.context import HotelImportContext, ImportPhase
from hotel_etl.datastore import Datastore
from hotel_etl.records import CityKey, HotelRecord, region_key
from hotel_etl.shared import (
    ReferenceMaterializationError,
    check_headers,
    create_batches,
    iter_records,
)
from hotel_etl.validation import HOTEL_REQUIRED_FIELDS, validate_hotel_row

log = logging.getLogger(__name__)

MISSING_MAPPING_REASON = "Missing city or region mapping"

CITY_TABLE = "cities"
REGION_TABLE = "regions"
HOTEL_TABLE = "hotels"


# ---------------------------------------------------------------------------
# Phase 1: collect unique parent entities
# ---------------------------------------------------------------------------

def collect_entities(ctx: HotelImportContext) -> None:
    """Fill ctx.cities / ctx.regions with placeholder id 0 for each unique key.

    Invalid rows are ignored here; they are counted in the load pass.
    """
    with ctx.running(ImportPhase.COLLECT_ENTITIES, after=ImportPhase.START):
        unique_cities: set[CityKey] = set()
        unique_regions: set[str] = set()

        for row in iter_records(ctx.csv_path, ctx.delimiter):
            if not validate_hotel_row(row).is_valid:
                continue
            city = CityKey.from_row(row)
            if city is not None:
                unique_cities.add(city)
            region = region_key(row)
            if region is not None:
                unique_regions.add(region)

        log.info(
            "[%s] Found %d unique cities and %d unique regions",
            ctx.run_id, len(unique_cities), len(unique_regions),
        )
        ctx.cities = {key: 0 for key in sorted(unique_cities)}
        ctx.regions = {key: 0 for key in sorted(unique_regions)}


# ---------------------------------------------------------------------------
# Phase 2: insert cities and regions, record surrogate ids
# ---------------------------------------------------------------------------

def materialize_references(ctx: HotelImportContext, store: Datastore) -> None:
    """Insert every collected city and region in one transaction.

    Rows that already exist with the same natural key are returned with
    their current id rather than duplicated. On any error the transaction
    rolls back, the error propagates, and ctx keeps its placeholder ids.
    """
    with ctx.running(ImportPhase.MATERIALIZE_REFERENCES, after=ImportPhase.COLLECT_ENTITIES):
        cities = dict(ctx.cities)
        regions = dict(ctx.regions)

        with store.transaction() as tx:
            log.info("[%s] Inserting %d cities...", ctx.run_id, len(cities))
            for batch in create_batches(list(cities), ctx.reference_batch_size):
                inserted = store.bulk_insert(
                    tx, CITY_TABLE,
                    [{"city_name": k.city_name, "country": k.country} for k in batch],
                    returning=("city_id", "city_name", "country"),
                    upsert_on=("city_name", "country"),
                )
                for rec in inserted:
                    key = CityKey(rec["city_name"], rec["country"])
                    if key in cities:
                        cities[key] = rec["city_id"]

            log.info("[%s] Inserting %d regions...", ctx.run_id, len(regions))
            for batch in create_batches(list(regions), ctx.reference_batch_size):
                inserted = store.bulk_insert(
                    tx, REGION_TABLE,
                    [{"region_name": name} for name in batch],
                    returning=("region_id", "region_name"),
                    upsert_on=("region_name",),
                )
                for rec in inserted:
                    if rec["region_name"] in regions:
                        regions[rec["region_name"]] = rec["region_id"]

            _check_resolved(cities, regions)

        ctx.cities = cities
        ctx.regions = regions
        ctx.counters.cities_materialized = len(cities)
        ctx.counters.regions_materialized = len(regions)
        log.info("[%s] Cities and regions inserted successfully", ctx.run_id)


def _check_resolved(cities: dict[CityKey, int], regions: dict[str, int]) -> None:
    bad_cities = [k.natural_key for k, v in cities.items() if not v or v <= 0]
    bad_regions = [k for k, v in regions.items() if not v or v <= 0]
    if bad_cities or bad_regions:
        raise ReferenceMaterializationError(
            f"no id assigned for {len(bad_cities)} cities and "
            f"{len(bad_regions)} regions "
            f"(first: {(bad_cities + bad_regions)[0]!r})"
        )


# ---------------------------------------------------------------------------
# Phase 3: load hotels
# ---------------------------------------------------------------------------

def persist_hotel_batch(store: Datastore, records: Sequence[HotelRecord]) -> int:
    """Insert one batch in its own transaction; return rows actually inserted."""
    with store.transaction() as tx:
        inserted = store.bulk_insert(
            tx, HOTEL_TABLE,
            [r.to_db_row() for r in records],
            ignore_duplicates=True,
            returning=("global_property_id",),
        )
    return len(inserted)


def load_hotels(ctx: HotelImportContext, store: Datastore) -> None:
    with ctx.running(ImportPhase.LOAD_BATCHES, after=ImportPhase.MATERIALIZE_REFERENCES):
        log.info("[%s] Importing hotels...", ctx.run_id)
        loader: BatchLoader[HotelRecord] = BatchLoader(
            partial(persist_hotel_batch, store),
            batch_size=ctx.batch_size,
            max_in_flight=ctx.max_in_flight,
        )
        c = ctx.counters
        try:
            with loader:
                for row in iter_records(ctx.csv_path, ctx.delimiter):
                    c.rows_read += 1
                    validation = validate_hotel_row(row)
                    if not validation.is_valid:
                        ctx.skip(row, validation.reason)
                        ctx.log_progress()
                        continue

                    city = CityKey.from_row(row)
                    region = region_key(row)
                    city_id = ctx.cities.get(city, 0) if city else 0
                    region_id = ctx.regions.get(region, 0) if region else 0
                    if not city_id or not region_id:
                        ctx.skip(row, MISSING_MAPPING_REASON)
                        log.warning(
                            "[%s] Skipping hotel due to missing city or region: %s "
                            "(city=%r id=%s, region=%r id=%s)",
                            ctx.run_id, row.get("Global Property Name"),
                            city.natural_key if city else None, city_id,
                            region, region_id,
                        )
                        ctx.log_progress()
                        continue

                    loader.add(HotelRecord.from_row(row, city_id, region_id))
                    c.rows_valid += 1
                    ctx.log_progress()

                loader.finish()
        finally:
            c.batches_submitted = loader.batches_submitted
            c.rows_inserted = loader.rows_inserted
            c.duplicates_ignored = loader.rows_committed - loader.rows_inserted

        log.info(
            "[%s] Hotel import completed: %d rows read, %d valid, %d inserted, %d skipped",
            ctx.run_id, c.rows_read, c.rows_valid, c.rows_inserted, c.rows_skipped,
        )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def run_hotel_import(ctx: HotelImportContext, store: Datastore) -> HotelImportContext:
    """Run all three phases. Raises on any unrecovered error (ctx → FAILED)."""
    log.info("[%s] Starting hotel import from %s", ctx.run_id, ctx.csv_path)
    try:
        check_headers(ctx.csv_path, ctx.delimiter, HOTEL_REQUIRED_FIELDS)
    except Exception:
        ctx.fail()
        raise
    collect_entities(ctx)
    materialize_references(ctx, store)
    load_hotels(ctx, store)
    ctx.finish(after=ImportPhase.LOAD_BATCHES)
    log.info(
        "[%s] Total skipped records: %d %s",
        ctx.run_id, ctx.ledger.total, ctx.ledger.reasons(),
    )
    return ctx
