from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

import google.auth.exceptions
import gspread
import requests
from gspread.utils import ValueInputOption, ValueRenderOption

from rental_finder.errors import StoreUnavailableError
from .grid import Cell, CellRange, SheetBackend, column_letter


log = logging.getLogger(__name__)

_BACKEND_ERRORS = (
    gspread.exceptions.GSpreadException,
    google.auth.exceptions.GoogleAuthError,
    requests.RequestException,
    OSError,
)


@contextmanager
def _unavailable(action: str) -> Iterator[None]:
    try:
        yield
    except _BACKEND_ERRORS as e:
        log.warning("Sheet %s failed: %s", action, e)
        raise StoreUnavailableError(f"Sheet {action} failed: {e}") from e


class GspreadBackend(SheetBackend):
    """First worksheet of a Google spreadsheet, accessed through gspread.

    The constructor performs the one-time service-account authentication.
    """

    def __init__(self, sheet_id: str, service_account_file: str, worksheet_index: int = 0) -> None:
        with _unavailable("authentication"):
            client = gspread.service_account(filename=service_account_file)
            spreadsheet = client.open_by_key(sheet_id)
            self._ws = spreadsheet.get_worksheet(worksheet_index)
        if self._ws is None:
            raise StoreUnavailableError(f"Spreadsheet {sheet_id} has no worksheet {worksheet_index}")
        log.info("Connected to sheet %s (%s)", sheet_id, self._ws.title)

    @classmethod
    def from_worksheet(cls, worksheet: gspread.Worksheet) -> "GspreadBackend":
        """Wrap an already opened worksheet."""
        backend = cls.__new__(cls)
        backend._ws = worksheet
        return backend

    def header(self) -> List[str]:
        with _unavailable("header read"):
            return [str(v) for v in self._ws.row_values(1)]

    def set_header(self, names: Sequence[str]) -> None:
        with _unavailable("header write"):
            self._ws.update(values=[list(names)], range_name="A1")

    def row_count(self) -> int:
        # The values API trims trailing empty rows, so this is the populated extent.
        with _unavailable("row count"):
            rows = self._ws.get_all_values()
        return max(len(rows) - 1, 0)

    def load_range(self, first_row: int, last_row: int, num_cols: int) -> CellRange:
        a1 = f"A{first_row}:{column_letter(num_cols)}{last_row}"
        with _unavailable(f"load {a1}"):
            rows = self._ws.get(a1, value_render_option=ValueRenderOption.formula)
        rng = CellRange(first_row, last_row, num_cols)
        for r_off, row in enumerate(rows or []):
            for c_off, raw in enumerate(row[:num_cols]):
                r, c = first_row + r_off, c_off + 1
                formula: Optional[str] = raw if isinstance(raw, str) and raw.startswith("=") else None
                rng.cells[(r, c)] = Cell(r, c, value=None if formula else raw, formula=formula)
        return rng

    def save(self, cells: CellRange) -> None:
        touched = list(cells.touched())
        # Only formula cells are parsed by Sheets; literals are stored verbatim
        # so scraped text can never turn into a formula.
        formulas = [{"range": c.a1, "values": [[c.formula]]} for c in touched if c.dirty and c.formula is not None]
        literals = [{"range": c.a1, "values": [[c.input_value()]]} for c in touched if c.dirty and c.formula is None]
        formats = [{"range": c.a1, "format": c.format.to_api()} for c in touched if c.format_dirty]
        with _unavailable("save"):
            if formulas:
                self._ws.batch_update(formulas, value_input_option=ValueInputOption.user_entered)
            if literals:
                self._ws.batch_update(literals, value_input_option=ValueInputOption.raw)
            if formats:
                self._ws.batch_format(formats)
        for c in touched:
            c.dirty = c.format_dirty = False
