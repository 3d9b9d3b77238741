from __future__ import annotations

import argparse
import logging

from rental_finder.config import Settings
from rental_finder.errors import RentalFinderError
from rental_finder.repositories.sheets import open_store
from rental_finder.services.fetcher import fetch_page
from rental_finder.services.ingest import IngestService
from rental_finder.services.parsers import build_registry
from rental_finder.utils.log import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Append rental listings to the sheet")
    parser.add_argument("urls", nargs="+", help="Listing page URLs")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    settings = Settings()
    service = IngestService(
        open_store(settings),
        build_registry(settings.reference_point),
        lambda u: fetch_page(u, timeout=settings.fetch_timeout_secs, user_agent=settings.user_agent),
    )
    failed = 0
    for url in args.urls:
        try:
            result = service.ingest(url)
            print(f"row {result.row_index}: {result.record.title}")
        except RentalFinderError as e:
            failed += 1
            print(f"skipped {url}: {type(e).__name__}: {e}")
    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
