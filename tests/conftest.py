from __future__ import annotations

import json
from typing import Any

import pytest

from rental_finder.repositories import ListingStore, MemoryBackend


def listing_html(
    posting: Any = None,
    price: str = "$1,250",
    housing: str = "/ 2br - 850ft2 - ",
    address: str | None = "1234 W 10th Ave",
    icbm: str | None = "49.2627,-123.1207",
    image: str | None = "https://images.craigslist.org/abc_600x450.jpg",
    include_posting: bool = True,
) -> str:
    if posting is None:
        posting = {
            "@type": "Apartment",
            "name": "Bright 2 bed near Kits Beach",
            "numberOfBedrooms": "2",
            "numberOfBathroomsTotal": 1,
        }
    blob = posting if isinstance(posting, str) else json.dumps(posting)
    head = []
    if icbm is not None:
        head.append(f'<meta name="ICBM" content="{icbm}">')
    if image is not None:
        head.append(f'<meta property="og:image" content="{image}">')
    body = []
    if include_posting:
        body.append(f'<script type="application/ld+json" id="ld_posting_data">{blob}</script>')
    body.append(f'<span class="price">{price}</span>')
    body.append(f'<span class="housing">{housing}</span>')
    if address is not None:
        body.append(f'<div class="mapaddress">{address}</div>')
    return f"<html><head>{''.join(head)}</head><body>{''.join(body)}</body></html>"


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> ListingStore:
    return ListingStore(backend)


@pytest.fixture
def make_html():
    return listing_html
