from __future__ import annotations

import argparse

import uvicorn

from rental_finder.utils.log import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the listing ingestion web app")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on source changes")
    args = parser.parse_args()
    configure_logging()

    uvicorn.run("rental_finder.web.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
