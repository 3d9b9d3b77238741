"""Per-source listing parsers built on Scrapy selectors."""

from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import urlparse

from scrapy import Selector

from rental_finder.errors import (
    AreaUnparseableError,
    CoordinatesMalformedError,
    PriceUnparseableError,
    StructuredDataMalformedError,
    StructuredDataMissingError,
    UnitUnrecognizedError,
    UnsupportedSourceError,
)
from rental_finder.models import AreaUnit, ListingRecord
from rental_finder.services.geo import haversine_distance


log = logging.getLogger(__name__)

UNIT_ALIASES: Mapping[str, AreaUnit] = MappingProxyType(
    {
        "ft": AreaUnit.SQFT,
        "ft2": AreaUnit.SQFT,
        "ft²": AreaUnit.SQFT,
        "sqft": AreaUnit.SQFT,
        "sf": AreaUnit.SQFT,
        "m": AreaUnit.SQM,
        "m2": AreaUnit.SQM,
        "m²": AreaUnit.SQM,
        "sqm": AreaUnit.SQM,
    }
)

_CURRENCY_AND_GROUPING = re.compile(r"[\s,$€£¥]")
_BEDROOM_SEGMENT = re.compile(r"^(?:\d+br|studio)")
_AREA_TOKEN = re.compile(r"^([\d.]*)(.*)$")


def canonical_source(url: str) -> Optional[str]:
    """Second-level domain label of the URL host, e.g. ``craigslist``.

    Returns None when the URL carries no host.
    """
    host = urlparse((url or "").strip()).hostname
    if not host:
        return None
    labels = [p for p in host.lower().split(".") if p]
    if not labels:
        return None
    return labels[-2] if len(labels) >= 2 else labels[0]


def parse_price(text: str) -> Decimal:
    """Parse price text such as ``"$1,250"`` into a Decimal."""
    cleaned = _CURRENCY_AND_GROUPING.sub("", text or "")
    if not cleaned:
        raise PriceUnparseableError(f"Empty price text: {text!r}")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise PriceUnparseableError(f"Price is not numeric: {text!r}") from None
    if not value.is_finite() or value < 0:
        raise PriceUnparseableError(f"Price is not a usable amount: {text!r}")
    return value


def parse_size(text: str) -> Tuple[Decimal, AreaUnit]:
    """Split a housing summary like ``"2br - 850ft2"`` into area and unit.

    The unit token is resolved before any numeric parsing so it is never lost
    when the non-numeric characters are dropped.
    """
    compact = re.sub(r"[-\s/,]", "", (text or "").lower())
    rest = _BEDROOM_SEGMENT.sub("", compact, count=1)
    m = _AREA_TOKEN.match(rest)
    number, unit_text = (m.group(1), m.group(2)) if m else ("", rest)

    unit = UNIT_ALIASES.get(unit_text)
    if unit is None:
        raise UnitUnrecognizedError(f"No known area unit in {text!r}")
    try:
        area = Decimal(number)
    except InvalidOperation:
        raise AreaUnparseableError(f"Area is not numeric: {text!r}") from None
    if not area.is_finite() or area <= 0:
        raise AreaUnparseableError(f"Area must be positive: {text!r}")
    return area, unit


def parse_coordinates(content: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """Parse a ``"lat,lon"`` geo tag; an absent tag yields ``(None, None)``."""
    if content is None:
        return None, None
    parts = content.split(",")
    if len(parts) != 2:
        raise CoordinatesMalformedError(f"Expected 'lat,lon', got {content!r}")
    try:
        lat, lon = float(parts[0]), float(parts[1])
    except ValueError:
        raise CoordinatesMalformedError(f"Coordinates are not numeric: {content!r}") from None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise CoordinatesMalformedError(f"Coordinates are not finite: {content!r}")
    return lat, lon


def _count(data: dict[str, Any], key: str) -> int:
    raw = data.get(key)
    if raw is None or raw == "":
        return 0
    try:
        number = float(raw)
    except (TypeError, ValueError, OverflowError):
        raise StructuredDataMalformedError(f"{key} is not a number: {raw!r}") from None
    if not math.isfinite(number):
        raise StructuredDataMalformedError(f"{key} is not finite: {raw!r}")
    value = int(number)
    if value < 0:
        raise StructuredDataMalformedError(f"{key} is negative: {raw!r}")
    return value


class SourceParser(ABC):
    """Turns one source site's listing page into a ``ListingRecord``.

    Implementations are pure: no network or store access. Markup that does
    not match the expected shape raises a ``ParseError`` subclass.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Canonical source identifier, e.g. 'craigslist'."""

    @abstractmethod
    def parse(self, body: str, url: str) -> ListingRecord:
        """Return the listing described by ``body`` fetched from ``url``."""


class CraigslistParser(SourceParser):
    """Craigslist housing posts: JSON-LD island plus presentational spans."""

    def __init__(self, reference_point: Optional[Tuple[float, float]] = None) -> None:
        self.reference_point = reference_point

    @property
    def name(self) -> str:
        return "craigslist"

    def parse(self, body: str, url: str) -> ListingRecord:
        sel = Selector(text=body or "<html></html>")
        data = self._posting_data(sel)

        price_text = (sel.css("span.price::text").get() or "").strip()
        price = parse_price(price_text)

        housing = " ".join(sel.css("span.housing ::text").getall())
        area, unit = parse_size(housing)

        address = " ".join(t.strip() for t in sel.css("div.mapaddress ::text").getall() if t.strip())
        lat, lon = parse_coordinates(sel.css('meta[name="ICBM"]::attr(content)').get())
        image = sel.css('meta[property="og:image"]::attr(content)').get()

        distance = None
        if lat is not None and lon is not None and self.reference_point is not None:
            distance = haversine_distance(self.reference_point, (lat, lon))

        record = ListingRecord(
            source_url=url,
            title=str(data.get("name") or "").strip(),
            property_type=str(data.get("@type") or data.get("type") or ""),
            price_amount=price,
            price_display=price_text,
            bedroom_count=_count(data, "numberOfBedrooms"),
            bathroom_count=_count(data, "numberOfBathroomsTotal"),
            area_value=area,
            area_unit=unit,
            address=address,
            image_url=image or None,
            latitude=lat,
            longitude=lon,
            distance_km=distance,
        )
        log.debug("Parsed %s: %s (%s %s)", url, record.title, record.area_value, record.area_unit.value)
        return record

    def _posting_data(self, sel: Selector) -> dict[str, Any]:
        blob = sel.css("#ld_posting_data::text").get()
        if blob is None or not blob.strip():
            raise StructuredDataMissingError("Page has no #ld_posting_data block")
        try:
            data = json.loads(blob)
        except ValueError as e:
            raise StructuredDataMalformedError(f"Posting data is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StructuredDataMalformedError("Posting data is not a JSON object")
        return data


def build_registry(reference_point: Optional[Tuple[float, float]] = None) -> Mapping[str, SourceParser]:
    """Build the read-only source -> parser table used for dispatch."""
    parsers = [CraigslistParser(reference_point)]
    return MappingProxyType({p.name: p for p in parsers})


def resolve_parser(url: str, registry: Mapping[str, SourceParser]) -> SourceParser:
    source = canonical_source(url)
    parser = registry.get(source) if source else None
    if parser is None:
        raise UnsupportedSourceError(url, source)
    return parser
