"""hotel_etl.records

Typed records produced from validated CSV rows. A record is only built once
every foreign key it carries has been resolved to a surrogate id.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Mapping, NamedTuple

from hotel_etl.normalize import normalize_space, parse_int, parse_numeric, trim

RawRecord = dict[str, str]

KEY_SEPARATOR = "|"


# ---------------------------------------------------------------------------
# Natural keys
# ---------------------------------------------------------------------------

class CityKey(NamedTuple):
    city_name: str
    country: str

    @property
    def natural_key(self) -> str:
        return f"{self.city_name}{KEY_SEPARATOR}{self.country}"

    @classmethod
    def from_row(cls, row: Mapping[str, str | None]) -> CityKey | None:
        city = normalize_space(row.get("Property City Name"))
        if city is None:
            return None
        return cls(city, trim(row.get("Property Country Code")) or "")

    @classmethod
    def parse(cls, natural_key: str) -> CityKey:
        city, _, country = natural_key.partition(KEY_SEPARATOR)
        return cls(city, country)


def region_key(row: Mapping[str, str | None]) -> str | None:
    """Natural key of a region: the trimmed state/province name."""
    return normalize_space(row.get("Property State/Province"))


def hotel_name_key(value: str | None) -> str | None:
    return trim(value)


# ---------------------------------------------------------------------------
# Dependent rows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HotelRecord:
    global_property_id: int
    source_property_id: str
    global_property_name: str
    global_chain_code: str
    property_address_1: str
    property_address_2: str | None
    primary_airport_code: str
    city_id: int
    region_id: int
    property_zip_postal: str
    property_phone_number: str
    property_fax_number: str | None
    sabre_property_rating: Decimal
    property_latitude: Decimal
    property_longitude: Decimal
    source_group_code: str

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, str | None],
        city_id: int,
        region_id: int,
    ) -> HotelRecord:
        """Build from a row that already passed validate_hotel_row."""
        if city_id <= 0 or region_id <= 0:
            raise ValueError(
                f"unresolved foreign key: city_id={city_id} region_id={region_id}"
            )
        return cls(
            global_property_id=parse_int(row["Global Property ID"]),
            source_property_id=trim(row["Source Property ID"]),
            global_property_name=trim(row["Global Property Name"]),
            global_chain_code=trim(row["Global Chain Code"]),
            property_address_1=trim(row["Property Address 1"]),
            property_address_2=trim(row.get("Property Address 2")),
            primary_airport_code=trim(row["Primary Airport Code"]),
            city_id=city_id,
            region_id=region_id,
            property_zip_postal=trim(row["Property Zip/Postal"]),
            property_phone_number=trim(row["Property Phone Number"]),
            property_fax_number=trim(row.get("Property Fax Number")),
            sabre_property_rating=parse_numeric(row["Sabre Property Rating"]),
            property_latitude=parse_numeric(row["Property Latitude"]),
            property_longitude=parse_numeric(row["Property Longitude"]),
            source_group_code=trim(row["Source Group Code"]),
        )

    def to_db_row(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReviewRecord:
    global_property_id: int
    reviewer_name: str
    review_title: str
    review_content: str
    value_rating: Decimal
    location_rating: Decimal
    service_rating: Decimal
    rooms_rating: Decimal
    cleanliness_rating: Decimal
    sleep_quality_rating: Decimal

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, str | None],
        global_property_id: int,
    ) -> ReviewRecord:
        """Build from a row that already passed validate_review_row."""
        if global_property_id <= 0:
            raise ValueError(f"unresolved hotel id: {global_property_id}")
        return cls(
            global_property_id=global_property_id,
            reviewer_name=trim(row["ReviewerName"]),
            review_title=trim(row["ReviewTitle"]),
            review_content=trim(row["ReviewContent"]),
            value_rating=parse_numeric(row["ValueRating"]),
            location_rating=parse_numeric(row["LocationRating"]),
            service_rating=parse_numeric(row["ServiceRating"]),
            rooms_rating=parse_numeric(row["RoomsRating"]),
            cleanliness_rating=parse_numeric(row["CleanlinessRating"]),
            sleep_quality_rating=parse_numeric(row["SleepQualityRating"]),
        )

    def to_db_row(self) -> dict[str, Any]:
        return asdict(self)
