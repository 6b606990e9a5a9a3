# SPDX-License-Identifier: Apache-2.0

"""
Geofence evaluation.

Great-circle distance between a captured fix and a tenant centroid. The
result is advisory evidence for the adjudicator and never gates the wizard.
"""

import math
from typing import Optional, Tuple

from models.entities import Coordinates

EARTH_RADIUS_KM = 6371.0

# Manila city hall, used when a tenant has no registered centroid
DEFAULT_CENTROID = Coordinates(lat=14.5995, lng=120.9842)

Point = Tuple[float, float]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometers between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Floating point can push `a` marginally above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Point, b: Point) -> float:
    """Distance between two (lat, lng) tuples."""
    return haversine_km(a[0], a[1], b[0], b[1])


def evaluate(
    lat: float,
    lng: float,
    centroid: Optional[Coordinates] = None,
    default: Coordinates = DEFAULT_CENTROID
) -> float:
    """
    Distance from a captured fix to a tenant centroid, rounded for display.

    Args:
        lat: Captured latitude
        lng: Captured longitude
        centroid: Tenant centroid, or None when the tenant has none
        default: Fallback reference point

    Returns:
        Non-negative distance in km rounded to 2 decimals
    """
    reference = centroid or default
    return round(haversine_km(lat, lng, reference.lat, reference.lng), 2)
