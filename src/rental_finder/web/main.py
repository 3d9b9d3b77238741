from __future__ import annotations

import html
from functools import lru_cache
from pathlib import Path
from typing import Mapping

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from rental_finder.config import Settings
from rental_finder.errors import FetchError, ParseError, StoreError, UnsupportedSourceError
from rental_finder.repositories.sheets import ListingStore, open_store
from rental_finder.services.fetcher import fetch_page
from rental_finder.services.ingest import IngestService
from rental_finder.services.parsers import SourceParser, build_registry
from rental_finder.services.transit import TransitEnrichment, TranslinkClient
from rental_finder.utils.log import configure_logging
from .jobs import EnrichmentJobManager, JobAlreadyRunning


app = FastAPI(title="Rental Finder")
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def _message(text: str, status_code: int) -> HTMLResponse:
    # Error text carries the request URL and scraped page snippets
    return HTMLResponse(f"<pre>{html.escape(text)}</pre>", status_code=status_code)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


@lru_cache(maxsize=1)
def get_registry() -> Mapping[str, SourceParser]:
    return build_registry(get_settings().reference_point)


@lru_cache(maxsize=1)
def get_store() -> ListingStore:
    return open_store(get_settings())


def get_ingest_service(
    store: ListingStore = Depends(get_store),
    registry: Mapping[str, SourceParser] = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> IngestService:
    def fetcher(url: str) -> str:
        return fetch_page(url, timeout=settings.fetch_timeout_secs, user_agent=settings.user_agent)

    return IngestService(store, registry, fetcher)


@lru_cache(maxsize=1)
def get_job_manager() -> EnrichmentJobManager:
    settings = get_settings()
    return EnrichmentJobManager(
        lambda: TransitEnrichment(get_store(), TranslinkClient(), max_workers=settings.transit_max_workers)
    )


@app.on_event("startup")
def on_startup() -> None:
    configure_logging()


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError) -> HTMLResponse:
    # Raised while opening the sheet session, before a route body runs
    return _message(f"Sheet update failed: {exc}", status_code=503)


@app.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html")


@app.get("/listing")
def ingest_listing(
    url: str = Query(..., description="Listing page URL"),
    service: IngestService = Depends(get_ingest_service),
):
    try:
        service.ingest(url)
    except UnsupportedSourceError as e:
        return _message(str(e), status_code=400)
    except FetchError as e:
        return _message(f"Fetch failed: {e}", status_code=502)
    except ParseError as e:
        return _message(f"Could not parse listing ({type(e).__name__}): {e}", status_code=422)
    except StoreError as e:
        return _message(f"Sheet update failed: {e}", status_code=503)
    return RedirectResponse("/", status_code=303)


@app.post("/transit/refresh")
def transit_refresh(jobs: EnrichmentJobManager = Depends(get_job_manager)) -> JSONResponse:
    try:
        job = jobs.start()
    except JobAlreadyRunning as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=409)
    return JSONResponse({"ok": True, "job_id": job.id})


@app.get("/transit/status")
def transit_status(job_id: str, jobs: EnrichmentJobManager = Depends(get_job_manager)) -> JSONResponse:
    job = jobs.status(job_id)
    if not job:
        return JSONResponse({"ok": False, "error": "Unknown job."}, status_code=404)
    return JSONResponse(job.as_dict())
