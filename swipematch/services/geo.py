"""
Great-circle distance on a spherical Earth (haversine).
"""

import math
from typing import Optional


EARTH_RADIUS_KM = 6371.0


def distance_km(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
) -> Optional[float]:
    """
    Distance in kilometres between two coordinates.

    Returns None when any coordinate is missing. Callers treat None as
    "unknown", never as zero.
    """
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def profile_distance_km(profile_a, profile_b) -> Optional[float]:
    """Distance between two profiles; None if either profile or location is missing."""
    if profile_a is None or profile_b is None:
        return None
    if not (profile_a.has_location and profile_b.has_location):
        return None
    return distance_km(profile_a.latitude, profile_a.longitude, profile_b.latitude, profile_b.longitude)
