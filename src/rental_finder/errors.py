"""Exception hierarchy for listing ingestion, storage and enrichment."""

from __future__ import annotations


class RentalFinderError(Exception):
    """Base class for all errors raised by rental_finder."""


class UnsupportedSourceError(RentalFinderError):
    """The listing URL does not belong to a registered source site."""

    def __init__(self, url: str, source: str | None = None) -> None:
        self.url = url
        self.source = source
        super().__init__(f"Domain not supported: {source or url}")


class FetchError(RentalFinderError):
    """The listing page could not be downloaded."""


class ParseError(RentalFinderError):
    """The page markup does not match the shape its source parser expects."""


class StructuredDataMissingError(ParseError):
    pass


class StructuredDataMalformedError(ParseError):
    pass


class PriceUnparseableError(ParseError):
    pass


class UnitUnrecognizedError(ParseError):
    pass


class AreaUnparseableError(ParseError):
    pass


class CoordinatesMalformedError(ParseError):
    pass


class StoreError(RentalFinderError):
    """Base class for tabular store failures."""


class StoreUnavailableError(StoreError):
    """The backing sheet could not be reached or authenticated."""


class RowNotFoundError(StoreError):
    def __init__(self, row_index: int, populated: int) -> None:
        self.row_index = row_index
        self.populated = populated
        super().__init__(f"Row {row_index} is outside the populated range 1..{populated}")


class StoreSchemaError(StoreError):
    """The sheet header does not contain a column the adapter needs."""


class TransitLookupError(RentalFinderError):
    """The transit provider request failed or returned an unusable payload."""
