"""hotel_etl.validation

Row-level validation for the hotel and review importers.

Validators are pure: they inspect a raw record and return a RowValidation.
Recording the reason in the skip ledger is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from hotel_etl.normalize import parse_int, parse_numeric, trim

# ---------------------------------------------------------------------------
# Field lists
# ---------------------------------------------------------------------------

HOTEL_REQUIRED_FIELDS = (
    "Global Property ID",
    "Source Property ID",
    "Global Property Name",
    "Global Chain Code",
    "Property Address 1",
    "Primary Airport Code",
    "Property City Name",
    "Property State/Province",
    "Property Zip/Postal",
    "Property Phone Number",
    "Sabre Property Rating",
    "Property Latitude",
    "Property Longitude",
    "Source Group Code",
)

HOTEL_INTEGER_FIELDS = ("Global Property ID",)

HOTEL_NUMERIC_FIELDS = (
    "Sabre Property Rating",
    "Property Latitude",
    "Property Longitude",
)

REVIEW_RATING_FIELDS = (
    "ValueRating",
    "LocationRating",
    "ServiceRating",
    "RoomsRating",
    "CleanlinessRating",
    "SleepQualityRating",
)

REVIEW_REQUIRED_FIELDS = (
    "HotelName",
    "ReviewerName",
    "ReviewTitle",
    "ReviewContent",
) + REVIEW_RATING_FIELDS

RATING_MIN = Decimal("1.0")
RATING_MAX = Decimal("5.0")

# ---------------------------------------------------------------------------
# Column bounds (migrations/0001_hotel_schema.sql)
# ---------------------------------------------------------------------------

INT4_MAX = 2_147_483_647

HOTEL_RANGES = {
    "Global Property ID": (Decimal(1), Decimal(INT4_MAX)),
    # numeric(3,1)
    "Sabre Property Rating": (Decimal("0"), Decimal("99.9")),
    "Property Latitude": (Decimal("-90"), Decimal("90")),
    "Property Longitude": (Decimal("-180"), Decimal("180")),
}

HOTEL_MAX_LENGTHS = {
    "Source Property ID": 50,
    "Global Property Name": 100,
    "Global Chain Code": 20,
    "Primary Airport Code": 20,
    "Property City Name": 100,
    "Property State/Province": 100,
    "Property Zip/Postal": 30,
    "Property Country Code": 50,
    "Property Phone Number": 30,
    "Property Fax Number": 30,
    "Source Group Code": 20,
}

REVIEW_MAX_LENGTHS = {
    "ReviewerName": 100,
    "ReviewTitle": 200,
}


@dataclass(frozen=True)
class RowValidation:
    is_valid: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> RowValidation:
        return cls(True)

    @classmethod
    def invalid(cls, reason: str) -> RowValidation:
        return cls(False, reason)


# ---------------------------------------------------------------------------
# Generic checks
# ---------------------------------------------------------------------------

def validate_required(
    row: Mapping[str, str | None],
    fields: Iterable[str],
) -> RowValidation:
    """Fail on the first field that is absent, empty or whitespace-only."""
    for field in fields:
        if trim(row.get(field)) is None:
            return RowValidation.invalid(f"Missing required field: {field}")
    return RowValidation.ok()


def validate_integer(row: Mapping[str, str | None], field: str) -> RowValidation:
    if parse_int(row.get(field)) is None:
        return RowValidation.invalid(f"Invalid {field} (not a number)")
    return RowValidation.ok()


def validate_numeric(row: Mapping[str, str | None], field: str) -> RowValidation:
    if parse_numeric(row.get(field)) is None:
        return RowValidation.invalid(f"Invalid {field} (not a number)")
    return RowValidation.ok()


def validate_range(
    row: Mapping[str, str | None],
    field: str,
    low: Decimal,
    high: Decimal,
) -> RowValidation:
    """Numeric value must parse and fall inside [low, high]."""
    value = parse_numeric(row.get(field))
    if value is None or value < low or value > high:
        return RowValidation.invalid(
            f"Invalid {field} (must be between {low} and {high})"
        )
    return RowValidation.ok()


def validate_length(
    row: Mapping[str, str | None],
    field: str,
    max_length: int,
) -> RowValidation:
    """Trimmed value (when present) must fit a varchar(max_length) column."""
    value = trim(row.get(field))
    if value is not None and len(value) > max_length:
        return RowValidation.invalid(
            f"Invalid {field} (longer than {max_length} characters)"
        )
    return RowValidation.ok()


# ---------------------------------------------------------------------------
# Per-import validators
# ---------------------------------------------------------------------------

def validate_hotel_row(row: Mapping[str, str | None]) -> RowValidation:
    result = validate_required(row, HOTEL_REQUIRED_FIELDS)
    if not result.is_valid:
        return result
    for field in HOTEL_INTEGER_FIELDS:
        result = validate_integer(row, field)
        if not result.is_valid:
            return result
    for field in HOTEL_NUMERIC_FIELDS:
        result = validate_numeric(row, field)
        if not result.is_valid:
            return result
    for field, (low, high) in HOTEL_RANGES.items():
        result = validate_range(row, field, low, high)
        if not result.is_valid:
            return result
    for field, max_length in HOTEL_MAX_LENGTHS.items():
        result = validate_length(row, field, max_length)
        if not result.is_valid:
            return result
    return RowValidation.ok()


def validate_review_row(row: Mapping[str, str | None]) -> RowValidation:
    result = validate_required(row, REVIEW_REQUIRED_FIELDS)
    if not result.is_valid:
        return result
    for field in REVIEW_RATING_FIELDS:
        result = validate_range(row, field, RATING_MIN, RATING_MAX)
        if not result.is_valid:
            return result
    for field, max_length in REVIEW_MAX_LENGTHS.items():
        result = validate_length(row, field, max_length)
        if not result.is_valid:
            return result
    return RowValidation.ok()
