from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from rental_finder.models import ListingRecord
from rental_finder.repositories.sheets import ListingStore
from .parsers import SourceParser, resolve_parser


log = logging.getLogger(__name__)

Fetcher = Callable[[str], str]


@dataclass
class IngestResult:
    row_index: int
    record: ListingRecord


class IngestService:
    """Resolve a listing URL to its parser, fetch, parse and append one row.

    The source is checked before anything is fetched, and the row is only
    written once the record parsed cleanly.
    """

    def __init__(self, store: ListingStore, registry: Mapping[str, SourceParser], fetcher: Fetcher) -> None:
        self.store = store
        self.registry = registry
        self.fetcher = fetcher

    def ingest(self, url: str) -> IngestResult:
        parser = resolve_parser(url, self.registry)
        body = self.fetcher(url)
        record = parser.parse(body, url)
        row = self.store.append_record(record)
        log.info("Ingested %s from %s into row %d", record.title, parser.name, row)
        return IngestResult(row_index=row, record=record)
