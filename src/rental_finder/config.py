from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class Settings:
    sheet_id: Optional[str] = os.environ.get("SHEET_ID")
    service_account_file: str = os.environ.get("GOOGLE_SERVICE_ACCOUNT_FILE", "rental-finder-key.json")
    transit_max_workers: int = int(os.environ.get("TRANSIT_MAX_WORKERS", "8"))
    # Reference point every listing's distance is measured against (UBC campus)
    reference_lat: float = float(os.environ.get("REFERENCE_LAT", "49.2606"))
    reference_lon: float = float(os.environ.get("REFERENCE_LON", "-123.2460"))
    user_agent: str = os.environ.get("HTTP_USER_AGENT", "RentalFinder/1.0")
    fetch_timeout_secs: float = float(os.environ.get("FETCH_TIMEOUT_SECS", "15"))

    @property
    def reference_point(self) -> Tuple[float, float]:
        return (self.reference_lat, self.reference_lon)
