"""Service layer: parsing, enrichment and ingestion."""

from .geo import haversine_distance
from .ingest import IngestResult, IngestService
from .parsers import CraigslistParser, SourceParser, build_registry, canonical_source, resolve_parser
from .transit import TransitEnrichment, TranslinkClient, normalize_routes

__all__ = [
    "CraigslistParser",
    "IngestResult",
    "IngestService",
    "SourceParser",
    "TransitEnrichment",
    "TranslinkClient",
    "build_registry",
    "canonical_source",
    "haversine_distance",
    "normalize_routes",
    "resolve_parser",
]
