"""Great-circle distance in Python and as a SQL expression."""

import math
from typing import Optional

from sqlalchemy import case, func, literal

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def distance_between(
    lat1: Optional[float], lng1: Optional[float], lat2: Optional[float], lng2: Optional[float]
) -> Optional[float]:
    """Rounded distance in km, or None when either point is missing."""
    if None in (lat1, lng1, lat2, lng2):
        return None
    return round(haversine_km(lat1, lng1, lat2, lng2), 2)


def haversine_sql(lat: float, lng: float, lat_col, lng_col):
    """Same formula as `haversine_km`, built from radians/sin/cos/asin/sqrt."""
    origin_lat = literal(lat)
    origin_lng = literal(lng)
    half_dlat = func.radians(lat_col - origin_lat) / 2
    half_dlng = func.radians(lng_col - origin_lng) / 2
    a = (
        func.sin(half_dlat) * func.sin(half_dlat)
        + func.cos(func.radians(origin_lat)) * func.cos(func.radians(lat_col))
        * func.sin(half_dlng) * func.sin(half_dlng)
    )
    root = func.sqrt(a)
    # Rounding can push sqrt(a) just past 1 for antipodal points; asin would then fail on Postgres
    clamped = case((root > 1.0, literal(1.0)), else_=root)
    return 2 * EARTH_RADIUS_KM * func.asin(clamped)
