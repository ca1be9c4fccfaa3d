"""Planar distance approximation for nearby-stop matching."""

from __future__ import annotations

import math

METERS_PER_DEGREE_LAT = 111_320.0


def distance_meters(lat_a: float, lng_a: float, lat_b: float, lng_b: float) -> float:
    """Return the equirectangular distance between two coordinates in meters.

    Longitude degrees are scaled by the cosine of the mean latitude, which is
    accurate to well under a meter at the radii used for stop matching.
    """

    avg_lat_rad = math.radians((lat_a + lat_b) / 2.0)
    meters_per_lng = METERS_PER_DEGREE_LAT * math.cos(avg_lat_rad)
    d_lat = (lat_a - lat_b) * METERS_PER_DEGREE_LAT
    d_lng = (lng_a - lng_b) * meters_per_lng
    return math.hypot(d_lat, d_lng)
