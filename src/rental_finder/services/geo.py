from __future__ import annotations

import math
from typing import Tuple

EARTH_RADIUS_KM = 6371.0
KM_PER_MILE = 1.60934


def haversine_distance(a: Tuple[float, float], b: Tuple[float, float], miles: bool = False) -> float:
    """Great-circle distance between two ``(lat, lon)`` pairs in decimal degrees.

    Returns kilometers, or miles when ``miles`` is set. Callers keep latitudes
    within +/-90 and longitudes within +/-180.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    d = EARTH_RADIUS_KM * c
    if miles:
        d /= KM_PER_MILE
    return d
