"""Nearby transit routes for stored listings (TransLink RTTI stops API)."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

import requests

from rental_finder.errors import StoreError, TransitLookupError
from rental_finder.repositories.sheets import TRANSIT_COLUMN, ListingStore, RowCoordinates


log = logging.getLogger(__name__)


@dataclass
class TranslinkConfig:
    api_key: Optional[str] = os.environ.get("TRANSLINK_API_KEY")
    base_url: str = os.environ.get("TRANSLINK_BASE_URL", "http://api.translink.ca/RTTIAPI/V1")
    radius: int = int(os.environ.get("TRANSIT_RADIUS", "750"))
    timeout_secs: float = float(os.environ.get("TRANSIT_TIMEOUT_SECS", "15"))
    user_agent: str = os.environ.get("HTTP_USER_AGENT", "RentalFinder/1.0")


class TranslinkClient:
    """Thin client for the stops-near-a-point search.

    No retries: a failed or timed-out request raises ``TransitLookupError``.
    """

    def __init__(self, config: TranslinkConfig | None = None, session: requests.Session | None = None) -> None:
        self.config = config or TranslinkConfig()
        self.session = session or requests.Session()

    def nearby_stops(self, lat: float, lon: float) -> List[dict[str, Any]]:
        url = f"{self.config.base_url.rstrip('/')}/stops"
        params = {
            "apikey": self.config.api_key or "",
            "lat": f"{lat:.6f}",
            "long": f"{lon:.6f}",
            "radius": self.config.radius,
        }
        headers = {"Accept": "application/json", "User-Agent": self.config.user_agent}
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.config.timeout_secs)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise TransitLookupError(f"Stop search failed for {lat},{lon}: {e}") from e
        if not isinstance(payload, list):
            raise TransitLookupError(f"Unexpected stop search payload for {lat},{lon}")
        return [s for s in payload if isinstance(s, dict)]


def clean_route(route: str) -> str:
    """Drop one leading space, then one leading zero: ``" 099"`` -> ``"99"``.

    Only a single zero goes, so ``"007"`` becomes ``"07"``.
    """
    if route.startswith(" "):
        route = route[1:]
    if route.startswith("0"):
        route = route[1:]
    return route


def normalize_routes(stops: Iterable[dict[str, Any]]) -> str:
    """Unique route ids across all stops, first-seen order, ``", "``-joined."""
    seen: List[str] = []
    for stop in stops:
        routes = stop.get("Routes")
        if not isinstance(routes, str):
            continue
        for raw in routes.split(","):
            route = clean_route(raw)
            if route and route not in seen:
                seen.append(route)
    return ", ".join(seen)


@dataclass
class EnrichmentResult:
    row_index: int
    routes: str = ""
    skipped: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


class TransitEnrichment:
    """Backfill the transit column for every row with known coordinates.

    Lookups run concurrently; patches go through the store one at a time.
    A failure on one row is recorded in its result and never stops the sweep.
    """

    def __init__(self, store: ListingStore, client: TranslinkClient, max_workers: int = 8) -> None:
        self.store = store
        self.client = client
        self.max_workers = max(1, max_workers)

    def lookup(self, row: RowCoordinates) -> EnrichmentResult:
        try:
            stops = self.client.nearby_stops(row.latitude, row.longitude)  # type: ignore[arg-type]
            return EnrichmentResult(row.row_index, normalize_routes(stops))
        except (TransitLookupError, requests.RequestException) as e:
            log.warning("Transit lookup failed for row %d: %s", row.row_index, e)
            return EnrichmentResult(row.row_index, "", error=str(e))

    def run(self) -> List[EnrichmentResult]:
        rows = self.store.read_coordinates()
        results: List[EnrichmentResult] = []
        pending: List[RowCoordinates] = []
        for row in rows:
            if row.known:
                pending.append(row)
            else:
                results.append(EnrichmentResult(row.row_index, skipped=True))

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            looked_up = list(pool.map(self.lookup, pending))

        for res in looked_up:
            try:
                self.store.patch_cell(res.row_index, TRANSIT_COLUMN, res.routes)
            except StoreError as e:
                log.warning("Could not patch transit routes for row %d: %s", res.row_index, e)
                res.error = res.error or str(e)
            results.append(res)

        results.sort(key=lambda r: r.row_index)
        log.info(
            "Transit sweep done: %d rows, %d enriched, %d skipped",
            len(results),
            sum(1 for r in results if r.ok),
            sum(1 for r in results if r.skipped),
        )
        return results
