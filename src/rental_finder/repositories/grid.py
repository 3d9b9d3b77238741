"""Cell grid model shared by the sheet backends.

Every store mutation follows the same cycle: load a rectangular range of
cells, change them in memory, then save the range. Only cells touched since
the load are written back, and a cell's format is only written when it was
changed explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class CellFormat:
    horizontal_alignment: Optional[str] = None
    vertical_alignment: Optional[str] = None
    font_size: Optional[int] = None
    wrap_strategy: Optional[str] = None
    padding: Optional[Tuple[int, int, int, int]] = None  # top, right, bottom, left

    def to_api(self) -> Dict[str, Any]:
        """Google Sheets ``CellFormat`` JSON for the attributes that are set."""
        out: Dict[str, Any] = {}
        if self.horizontal_alignment:
            out["horizontalAlignment"] = self.horizontal_alignment
        if self.vertical_alignment:
            out["verticalAlignment"] = self.vertical_alignment
        if self.font_size:
            out["textFormat"] = {"fontSize": self.font_size}
        if self.wrap_strategy:
            out["wrapStrategy"] = self.wrap_strategy
        if self.padding:
            top, right, bottom, left = self.padding
            out["padding"] = {"top": top, "right": right, "bottom": bottom, "left": left}
        return out


class Cell:
    """One grid cell; rows and columns are 1-based like A1 notation."""

    def __init__(
        self,
        row: int,
        col: int,
        value: Any = None,
        formula: Optional[str] = None,
        fmt: Optional[CellFormat] = None,
    ) -> None:
        self.row = row
        self.col = col
        self._value = value
        self._formula = formula
        self._format = fmt or CellFormat()
        self.dirty = False
        self.format_dirty = False

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, v: Any) -> None:
        self._value = v
        self._formula = None
        self.dirty = True

    @property
    def formula(self) -> Optional[str]:
        return self._formula

    @formula.setter
    def formula(self, f: str) -> None:
        self._formula = f
        self._value = None
        self.dirty = True

    @property
    def format(self) -> CellFormat:
        return self._format

    @format.setter
    def format(self, fmt: CellFormat) -> None:
        self._format = fmt
        self.format_dirty = True

    def input_value(self) -> Any:
        """What to send to the sheet: the formula if set, else the literal."""
        if self._formula is not None:
            return self._formula
        return "" if self._value is None else self._value

    @property
    def a1(self) -> str:
        return f"{column_letter(self.col)}{self.row}"


@dataclass
class CellRange:
    first_row: int
    last_row: int
    num_cols: int
    cells: Dict[Tuple[int, int], Cell] = field(default_factory=dict)

    def cell(self, row: int, col: int) -> Cell:
        if not (self.first_row <= row <= self.last_row and 1 <= col <= self.num_cols):
            raise IndexError(f"Cell {column_letter(col)}{row} is outside the loaded range")
        c = self.cells.get((row, col))
        if c is None:
            c = Cell(row, col)
            self.cells[(row, col)] = c
        return c

    def touched(self) -> Iterator[Cell]:
        for key in sorted(self.cells):
            c = self.cells[key]
            if c.dirty or c.format_dirty:
                yield c


def column_letter(col: int) -> str:
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


class SheetBackend(ABC):
    """Capability interface of a row/column grid with a header row at row 1."""

    @abstractmethod
    def header(self) -> List[str]:
        ...

    @abstractmethod
    def set_header(self, names: Sequence[str]) -> None:
        ...

    @abstractmethod
    def row_count(self) -> int:
        """Number of populated rows below the header."""

    @abstractmethod
    def load_range(self, first_row: int, last_row: int, num_cols: int) -> CellRange:
        ...

    @abstractmethod
    def save(self, cells: CellRange) -> None:
        """Write back every touched cell of a range returned by ``load_range``."""


class MemoryBackend(SheetBackend):
    """In-process grid, used for tests and when no sheet id is configured."""

    def __init__(self) -> None:
        self._header: List[str] = []
        self._cells: Dict[Tuple[int, int], Tuple[Any, Optional[str], CellFormat]] = {}
        self.saves = 0

    def header(self) -> List[str]:
        return list(self._header)

    def set_header(self, names: Sequence[str]) -> None:
        self._header = list(names)

    def row_count(self) -> int:
        rows = [r for (r, _c), (v, f, _fmt) in self._cells.items() if (v not in (None, "") or f)]
        return max(rows) - 1 if rows else 0

    def load_range(self, first_row: int, last_row: int, num_cols: int) -> CellRange:
        rng = CellRange(first_row, last_row, num_cols)
        for (r, c), (v, f, fmt) in self._cells.items():
            if first_row <= r <= last_row and c <= num_cols:
                rng.cells[(r, c)] = Cell(r, c, value=v, formula=f, fmt=fmt)
        return rng

    def save(self, cells: CellRange) -> None:
        for c in cells.touched():
            _v, _f, fmt = self._cells.get((c.row, c.col), (None, None, CellFormat()))
            if c.format_dirty:
                fmt = c.format
            self._cells[(c.row, c.col)] = (c.value, c.formula, fmt)
            c.dirty = c.format_dirty = False
        self.saves += 1

    def raw(self, row: int, col: int) -> Tuple[Any, Optional[str], CellFormat]:
        return self._cells.get((row, col), (None, None, CellFormat()))
