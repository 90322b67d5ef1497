"""Shared fixtures: raw hotel/review rows and writers for input files."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Callable

import pytest

HOTEL_HEADERS = [
    "Global Property ID",
    "Source Property ID",
    "Global Property Name",
    "Global Chain Code",
    "Property Address 1",
    "Property Address 2",
    "Primary Airport Code",
    "Property City Name",
    "Property State/Province",
    "Property Zip/Postal",
    "Property Country Code",
    "Property Phone Number",
    "Property Fax Number",
    "Sabre Property Rating",
    "Property Latitude",
    "Property Longitude",
    "Source Group Code",
]

REVIEW_HEADERS = [
    "HotelName",
    "ReviewerName",
    "ReviewTitle",
    "ReviewContent",
    "ValueRating",
    "LocationRating",
    "ServiceRating",
    "RoomsRating",
    "CleanlinessRating",
    "SleepQualityRating",
]


def _hotel_row(
    gid: int,
    name: str | None = None,
    city: str = "Paris",
    country: str = "FR",
    region: str = "Ile-de-France",
    **overrides: str,
) -> dict[str, str]:
    row = {
        "Global Property ID": str(gid),
        "Source Property ID": f"SRC{gid}",
        "Global Property Name": name if name is not None else f"Hotel {gid}",
        "Global Chain Code": "XX",
        "Property Address 1": f"{gid} Main Street",
        "Property Address 2": "",
        "Primary Airport Code": "CDG",
        "Property City Name": city,
        "Property State/Province": region,
        "Property Zip/Postal": "75001",
        "Property Country Code": country,
        "Property Phone Number": "+33 1 00 00 00 00",
        "Property Fax Number": "",
        "Sabre Property Rating": "4.5",
        "Property Latitude": "48.856600",
        "Property Longitude": "2.352200",
        "Source Group Code": "GRP",
    }
    row.update(overrides)
    return row


def _review_row(hotel: str = "Hotel 1", **overrides: str) -> dict[str, str]:
    row = {
        "HotelName": hotel,
        "ReviewerName": "Ann",
        "ReviewTitle": "Lovely stay",
        "ReviewContent": "Clean rooms and friendly staff.",
        "ValueRating": "4.0",
        "LocationRating": "5.0",
        "ServiceRating": "4.5",
        "RoomsRating": "4.0",
        "CleanlinessRating": "5.0",
        "SleepQualityRating": "3.5",
    }
    row.update(overrides)
    return row


@pytest.fixture
def hotel_row() -> Callable[..., dict[str, str]]:
    return _hotel_row


@pytest.fixture
def review_row() -> Callable[..., dict[str, str]]:
    return _review_row


def _write_delimited(path: Path, headers: list[str], rows: list[dict[str, str]], delimiter: str) -> Path:
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=headers, delimiter=delimiter)
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def write_hotels(tmp_path) -> Callable[[list[dict[str, str]]], Path]:
    def _write(rows: list[dict[str, str]], name: str = "hotels.tsv") -> Path:
        return _write_delimited(tmp_path / name, HOTEL_HEADERS, rows, "\t")
    return _write


@pytest.fixture
def write_reviews(tmp_path) -> Callable[[list[dict[str, str]]], Path]:
    def _write(rows: list[dict[str, str]], name: str = "reviews.csv") -> Path:
        return _write_delimited(tmp_path / name, REVIEW_HEADERS, rows, ",")
    return _write
