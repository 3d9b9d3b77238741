from .grid import Cell, CellFormat, CellRange, MemoryBackend, SheetBackend
from .sheets import COLUMNS, ListingStore, open_store

__all__ = [
    "COLUMNS",
    "Cell",
    "CellFormat",
    "CellRange",
    "ListingStore",
    "MemoryBackend",
    "SheetBackend",
    "open_store",
]
