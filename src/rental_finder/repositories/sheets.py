from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from rental_finder.config import Settings
from rental_finder.errors import RowNotFoundError, StoreSchemaError
from rental_finder.models import ListingRecord
from .grid import CellFormat, CellRange, MemoryBackend, SheetBackend


log = logging.getLogger(__name__)

COLUMNS: Tuple[str, ...] = (
    "Image",
    "Name",
    "Price",
    "Size",
    "Address",
    "Distance_To_UBC",
    "Bus_Routes_Nearby",
    "Bedrooms",
    "Bathrooms",
    "Price_Per_Person",
    "Price_Per_Sqft",
    "Lon",
    "Lat",
    "Type",
)
IMAGE_COLUMN = "Image"
NAME_COLUMN = "Name"
TRANSIT_COLUMN = "Bus_Routes_Nearby"

IMAGE_FORMAT = CellFormat(wrap_strategy="WRAP", padding=(10, 10, 10, 10))
CENTERED_FORMAT = CellFormat(
    horizontal_alignment="CENTER",
    vertical_alignment="MIDDLE",
    font_size=12,
    wrap_strategy="WRAP",
)


def _formula_text(s: str) -> str:
    return (s or "").replace('"', '""')


def record_to_row(record: ListingRecord) -> Dict[str, Any]:
    """Cell contents for one record, keyed by column name.

    ``Image`` and ``Name`` are formulas; everything else is a literal.
    """
    distance = round(record.distance_km, 2) if record.distance_km is not None else ""
    return {
        "Image": f'=IMAGE("{_formula_text(record.image_url or "")}")',
        "Name": f'=HYPERLINK("{_formula_text(record.source_url)}", "{_formula_text(record.title)}")',
        "Price": record.price_display,
        "Size": record.display_size(),
        "Address": record.address,
        "Distance_To_UBC": distance,
        "Bus_Routes_Nearby": ", ".join(record.transit_routes),
        "Bedrooms": record.bedroom_count,
        "Bathrooms": record.bathroom_count,
        "Price_Per_Person": record.display_price_per_person(),
        "Price_Per_Sqft": record.display_price_per_area(),
        "Lon": record.longitude if record.longitude is not None else "",
        "Lat": record.latitude if record.latitude is not None else "",
        "Type": record.property_type,
    }


@dataclass
class RowCoordinates:
    row_index: int
    latitude: Optional[float]
    longitude: Optional[float]

    @property
    def known(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def _as_float(v: Any) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


class ListingStore:
    """Listing rows in a sheet with a fixed header.

    Data rows are numbered from 1, directly under the header. Every mutation
    runs a load -> modify -> save cycle while holding this instance's lock, so
    appends and patches issued from different threads never interleave. The
    next free row is re-read from the sheet on every append because other
    people edit the sheet too.
    """

    def __init__(self, backend: SheetBackend, ensure_header: bool = True) -> None:
        self.backend = backend
        self._lock = threading.RLock()
        if ensure_header:
            self.ensure_header()

    @contextmanager
    def exclusive(self) -> Iterator["ListingStore"]:
        with self._lock:
            yield self

    def ensure_header(self) -> None:
        with self._lock:
            if tuple(self.backend.header()[: len(COLUMNS)]) != COLUMNS:
                log.info("Writing header row")
                self.backend.set_header(COLUMNS)

    def row_count(self) -> int:
        with self._lock:
            return self.backend.row_count()

    def append_record(self, record: ListingRecord) -> int:
        """Write ``record`` as a new row and return its 1-based row index."""
        values = record_to_row(record)
        with self._lock:
            columns = self._column_map()
            row_index = self.backend.row_count() + 1
            sheet_row = row_index + 1
            cells = self.backend.load_range(sheet_row, sheet_row, max(columns.values()))
            for name in COLUMNS:
                cell = cells.cell(sheet_row, columns[name])
                if name in (IMAGE_COLUMN, NAME_COLUMN):
                    cell.formula = values[name]
                else:
                    cell.value = values[name]
                cell.format = IMAGE_FORMAT if name == IMAGE_COLUMN else CENTERED_FORMAT
            self.backend.save(cells)
        log.info("Appended %s as row %d", record.source_url, row_index)
        return row_index

    def patch_cell(self, row_index: int, column: str, value: Any) -> None:
        """Overwrite one cell's value; its formatting is left as is."""
        with self._lock:
            populated = self.backend.row_count()
            if row_index < 1 or row_index > populated:
                raise RowNotFoundError(row_index, populated)
            col = self._header_index(column)
            sheet_row = row_index + 1
            cells = self.backend.load_range(sheet_row, sheet_row, col)
            cells.cell(sheet_row, col).value = value
            self.backend.save(cells)

    def read_coordinates(self) -> List[RowCoordinates]:
        with self._lock:
            columns = self._column_map()
            populated = self.backend.row_count()
            if populated == 0:
                return []
            cells: CellRange = self.backend.load_range(2, populated + 1, max(columns.values()))
        out: List[RowCoordinates] = []
        for sheet_row in range(2, populated + 2):
            lat = _as_float(cells.cell(sheet_row, columns["Lat"]).value)
            lon = _as_float(cells.cell(sheet_row, columns["Lon"]).value)
            out.append(RowCoordinates(sheet_row - 1, lat, lon))
        return out

    def _column_map(self) -> Dict[str, int]:
        header = self.backend.header()
        out: Dict[str, int] = {}
        for name in COLUMNS:
            if name not in header:
                raise StoreSchemaError(f"Sheet header has no {name!r} column")
            out[name] = header.index(name) + 1
        return out

    def _header_index(self, column: str) -> int:
        header = self.backend.header()
        if column not in header:
            raise StoreSchemaError(f"Sheet header has no {column!r} column")
        return header.index(column) + 1


def open_store(settings: Settings | None = None) -> ListingStore:
    """Connect to the configured spreadsheet, or an in-memory grid without one."""
    cfg = settings or Settings()
    if not cfg.sheet_id:
        log.warning("SHEET_ID not set; using an in-memory sheet")
        return ListingStore(MemoryBackend())
    from .gsheets import GspreadBackend

    return ListingStore(GspreadBackend(cfg.sheet_id, cfg.service_account_file))
