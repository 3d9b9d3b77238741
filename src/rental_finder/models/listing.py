"""Normalized rental listing record produced by the source parsers."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AreaUnit(str, Enum):
    SQFT = "sqft"
    SQM = "m2"


class ListingRecord(BaseModel):
    """One parsed listing page.

    Records are frozen: transit enrichment writes a separate cell patch to the
    store instead of changing the record.
    """

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str
    property_type: str = ""
    price_amount: Decimal = Field(ge=0)
    # Original formatted price text, e.g. "$1,250"
    price_display: str
    bedroom_count: int = Field(ge=0)
    bathroom_count: int = Field(ge=0)
    area_value: Decimal = Field(gt=0)
    area_unit: AreaUnit
    address: str = ""
    image_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = None
    transit_routes: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_coordinates(self) -> "ListingRecord":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be set together")
        if self.distance_km is not None and self.latitude is None:
            raise ValueError("distance_km requires coordinates")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def price_per_area(self) -> Decimal:
        return self.price_amount / self.area_value

    @property
    def price_per_occupant(self) -> Decimal:
        # Studios report zero bedrooms; they still house one person.
        return self.price_amount / max(self.bedroom_count, 1)

    def display_size(self) -> str:
        return f"{self.area_value.normalize():f} {self.area_unit.value}"

    def display_price_per_person(self) -> str:
        return f"{self.price_per_occupant:.2f} $ / person"

    def display_price_per_area(self) -> str:
        return f"{self.price_per_area:.2f} $ / {self.area_unit.value}"
