from __future__ import annotations

from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient

from rental_finder.errors import FetchError, StoreUnavailableError
from rental_finder.repositories import ListingStore, MemoryBackend
from rental_finder.services import IngestService, TransitEnrichment, TranslinkClient, build_registry
from rental_finder.web import main
from rental_finder.web.jobs import EnrichmentJobManager


URL = "https://vancouver.craigslist.org/van/apa/d/vancouver-bright-bed/7712345678.html"


class StaticStops(TranslinkClient):
    def nearby_stops(self, lat: float, lon: float) -> list[dict[str, Any]]:
        return [{"Routes": " 099, 044"}]


class BrokenBackend(MemoryBackend):
    def save(self, cells: Any) -> None:
        raise StoreUnavailableError("sheet offline")


@pytest.fixture
def client(store: ListingStore, make_html) -> Iterator[TestClient]:
    pages = {URL: make_html()}

    def fetcher(url: str) -> str:
        if url not in pages:
            raise FetchError(f"404 for {url}")
        return pages[url]

    jobs = EnrichmentJobManager(lambda: TransitEnrichment(store, StaticStops(), max_workers=2))
    main.app.dependency_overrides[main.get_ingest_service] = lambda: IngestService(store, build_registry(), fetcher)
    main.app.dependency_overrides[main.get_job_manager] = lambda: jobs
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def test_index_page(client: TestClient) -> None:
    resp = client.get("/")
    assert resp.status_code == 200
    assert 'action="/listing"' in resp.text


def test_ingest_redirects_home(client: TestClient, store: ListingStore) -> None:
    resp = client.get("/listing", params={"url": URL}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"
    assert store.row_count() == 1


def test_unsupported_domain(client: TestClient, store: ListingStore) -> None:
    resp = client.get("/listing", params={"url": "https://www.kijiji.ca/v/1"})
    assert resp.status_code == 400
    assert "Domain not supported" in resp.text
    assert store.row_count() == 0


def test_fetch_failure(client: TestClient) -> None:
    resp = client.get("/listing", params={"url": "https://vancouver.craigslist.org/gone.html"})
    assert resp.status_code == 502


def test_parse_failure(store: ListingStore, make_html) -> None:
    service = IngestService(store, build_registry(), lambda u: make_html(price="call"))
    main.app.dependency_overrides[main.get_ingest_service] = lambda: service
    try:
        resp = TestClient(main.app).get("/listing", params={"url": URL})
    finally:
        main.app.dependency_overrides.clear()
    assert resp.status_code == 422
    assert "PriceUnparseableError" in resp.text


def test_store_failure(make_html) -> None:
    store = ListingStore(BrokenBackend())
    service = IngestService(store, build_registry(), lambda u: make_html())
    main.app.dependency_overrides[main.get_ingest_service] = lambda: service
    try:
        resp = TestClient(main.app).get("/listing", params={"url": URL})
    finally:
        main.app.dependency_overrides.clear()
    assert resp.status_code == 503


def test_transit_refresh_runs_sweep(client: TestClient, store: ListingStore) -> None:
    client.get("/listing", params={"url": URL}, follow_redirects=False)

    resp = client.post("/transit/refresh")
    assert resp.status_code == 200
    job_id = resp.json()["job_id"]

    jobs = main.app.dependency_overrides[main.get_job_manager]()
    jobs.wait(job_id, timeout=5)

    status = client.get("/transit/status", params={"job_id": job_id}).json()
    assert status["status"] == "completed"
    assert status["enriched"] == 1
    assert store.read_coordinates()[0].known


def test_unknown_job(client: TestClient) -> None:
    assert client.get("/transit/status", params={"job_id": "nope"}).status_code == 404


def test_rejection_text_is_escaped(client: TestClient) -> None:
    resp = client.get("/listing", params={"url": "<script>alert(1)</script>"})
    assert resp.status_code == 400
    assert "<script>" not in resp.text
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in resp.text


def test_serve_runs_app_with_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    import sys

    import uvicorn

    from rental_finder.cli import serve

    calls: list[tuple[str, dict[str, Any]]] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    monkeypatch.setattr(sys, "argv", ["rental-finder-serve", "--port", "9001"])

    serve.main()

    assert calls == [("rental_finder.web.main:app", {"host": "127.0.0.1", "port": 9001, "reload": False})]
