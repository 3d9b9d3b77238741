from __future__ import annotations

import argparse

from rental_finder.config import Settings
from rental_finder.repositories.sheets import open_store
from rental_finder.services.transit import TransitEnrichment, TranslinkClient
from rental_finder.utils.log import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill nearby bus routes for every sheet row")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent transit lookups")
    args = parser.parse_args()
    configure_logging()

    settings = Settings()
    sweep = TransitEnrichment(
        open_store(settings),
        TranslinkClient(),
        max_workers=args.workers or settings.transit_max_workers,
    )
    results = sweep.run()
    for r in results:
        if r.skipped:
            print(f"row {r.row_index}: no coordinates")
        elif r.error:
            print(f"row {r.row_index}: failed ({r.error})")
        else:
            print(f"row {r.row_index}: {r.routes or '-'}")


if __name__ == "__main__":
    main()
