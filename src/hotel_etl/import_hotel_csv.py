"""hotel_etl.import_hotel_csv

Unified CLI entrypoint for hotel reference-data ingestion.

Modes (--mode):
  hotels   : tab-separated property export; loads cities, regions, hotels
  reviews  : comma-separated review export; requires hotels already loaded

Usage (hotels):
    python -m hotel_etl.import_hotel_csv \\
        --mode hotels \\
        --db-dsn "$HOTEL_ETL_DB_DSN" \\
        --csv-path "data/hotels.tsv" \\
        --migrations-dir migrations

Usage (reviews):
    python -m hotel_etl.import_hotel_csv \\
        --mode reviews \\
        --csv-path "data/reviews.csv" \\
        --rejects-path "artifacts/rejects/reviews_rejects.csv"

Connection settings fall back to DB_HOST / DB_PORT / DB_NAME / DB_USER /
DB_PASSWORD (and a .env file) when --db-dsn is not given.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import click

from hotel_etl.config import DSN_ENV_VAR, DbSettings
from hotel_etl.context import HotelImportContext, ImportContext, ReviewImportContext
from hotel_etl.datastore import PostgresDatastore, apply_migrations
from hotel_etl.import_hotels import run_hotel_import
from hotel_etl.import_reviews import run_review_import
from hotel_etl.shared import (
    MissingHeadersError,
    RejectWriter,
    check_headers,
    write_run_report,
)
from hotel_etl.validation import HOTEL_REQUIRED_FIELDS, REVIEW_REQUIRED_FIELDS

# mode -> (delimiter, required headers)
MODE_HEADERS = {
    "hotels": ("\t", HOTEL_REQUIRED_FIELDS),
    "reviews": (",", REVIEW_REQUIRED_FIELDS),
}


@click.command()
@click.option(
    "--mode",
    default="hotels",
    type=click.Choice(["hotels", "reviews"]),
    show_default=True,
    help="Import kind",
)
@click.option("--csv-path", default=None, type=click.Path(), help="Input file (TSV for hotels, CSV for reviews)")
@click.option("--db-dsn", default=None, envvar=DSN_ENV_VAR, help="PostgreSQL DSN (overrides DB_* settings)")
@click.option("--batch-size", default=1000, type=click.IntRange(min=1), show_default=True)
@click.option(
    "--max-in-flight",
    default=2,
    type=click.IntRange(min=1),
    show_default=True,
    help="Batches that may be persisting at once before reading pauses",
)
@click.option("--migrations-dir", default=None, type=click.Path(), help="Apply *.sql files from this directory before importing")
@click.option("--rejects-path", default=None, type=click.Path(), help="Write skipped rows with their reason to this CSV")
@click.option("--report-dir", default="./artifacts/reports", show_default=True, type=click.Path())
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
)
def main(
    mode: str,
    csv_path: str | None,
    db_dsn: str | None,
    batch_size: int,
    max_in_flight: int,
    migrations_dir: str | None,
    rejects_path: str | None,
    report_dir: str,
    run_id: str | None,
    log_level: str,
) -> None:
    """Hotel / review CSV ingestion CLI."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()

    csv_file = _validate_csv_path(csv_path, mode, run_id)
    delimiter, required = MODE_HEADERS[mode]
    try:
        check_headers(csv_file, delimiter, required)
    except MissingHeadersError as exc:
        click.echo(f"[{run_id}] FATAL: missing headers: {exc.missing}", err=True)
        sys.exit(1)

    settings = DbSettings.from_env()
    dsn = db_dsn or settings.dsn
    if max_in_flight > settings.pool_max:
        click.echo(
            f"[{run_id}] FATAL: --max-in-flight ({max_in_flight}) exceeds "
            f"DB_POOL_MAX ({settings.pool_max})",
            err=True,
        )
        sys.exit(1)

    rejects = RejectWriter(Path(rejects_path)) if rejects_path else None
    ctx: ImportContext
    if mode == "hotels":
        ctx = HotelImportContext(
            csv_path=csv_file, delimiter=delimiter, run_id=run_id, batch_size=batch_size,
            max_in_flight=max_in_flight, rejects=rejects,
        )
    else:
        ctx = ReviewImportContext(
            csv_path=csv_file, delimiter=delimiter, run_id=run_id, batch_size=batch_size,
            max_in_flight=max_in_flight, rejects=rejects,
        )

    click.echo(f"[{run_id}] Starting {mode} run from {csv_file}")

    try:
        if migrations_dir:
            applied = apply_migrations(dsn, Path(migrations_dir))
            click.echo(f"[{run_id}] Applied {len(applied)} migration(s)")
        with PostgresDatastore.open(settings, dsn) as store:
            if mode == "hotels":
                run_hotel_import(ctx, store)
            else:
                run_review_import(ctx, store)
    except MissingHeadersError as exc:
        click.echo(f"[{run_id}] FATAL: missing headers: {exc.missing}", err=True)
        sys.exit(1)
    except Exception as exc:
        click.echo(f"[{run_id}] FATAL: {mode} import failed: {exc}", err=True)
        sys.exit(1)
    finally:
        if rejects is not None:
            rejects.close()

    report_path = write_run_report(
        run_id, started_at, mode, str(csv_file),
        ctx.counters, ctx.ledger, Path(report_dir),
    )
    click.echo(f"[{run_id}] Total skipped records: {ctx.ledger.total}")
    for reason, count in ctx.ledger.items():
        click.echo(f"[{run_id}]   {count:>8}  {reason}")
    click.echo(f"[{run_id}] Run report: {report_path}")
    click.echo(json.dumps(ctx.counters.to_dict(), indent=2, default=str))
    click.echo(f"[{run_id}] Done.")


def _validate_csv_path(csv_path: str | None, mode: str, run_id: str) -> Path:
    if not csv_path:
        click.echo(f"[{run_id}] FATAL: {mode} mode requires: --csv-path", err=True)
        sys.exit(1)
    path = Path(csv_path)
    if not path.is_file():
        click.echo(
            f"[{run_id}] FATAL: file not found: {csv_path} (cwd: {os.getcwd()})",
            err=True,
        )
        sys.exit(1)
    return path


if __name__ == "__main__":
    main()
