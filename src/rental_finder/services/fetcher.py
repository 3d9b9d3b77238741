from __future__ import annotations

import logging

import requests

from rental_finder.errors import FetchError


log = logging.getLogger(__name__)


def fetch_page(url: str, timeout: float = 15.0, user_agent: str = "RentalFinder/1.0") -> str:
    """Download a listing page and return its decoded body."""
    try:
        resp = requests.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        log.warning("Fetching %s failed: %s", url, e)
        raise FetchError(f"Could not fetch {url}: {e}") from e
    return resp.text
