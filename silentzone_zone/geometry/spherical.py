"""
Spherical Geometry Module
=========================

Pure dead-reckoning math on a spherical Earth - NO state, NO side effects.

Design:
- Destination point from (anchor, distance, bearing)
- Great-circle distance (haversine), scalar and vectorised
- Circular mean for compass headings (handles the 0/360 seam)
- Thread-safe (pure functions)
"""

import math
from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np


EARTH_RADIUS_METERS = 6_371_000.0


class HasLatLng(Protocol):
    """Anything carrying a lat/lng pair (Coordinate, AnchorPosition, Place)."""

    lat: float
    lng: float


@dataclass(frozen=True)
class Coordinate:
    """
    Immutable geographic coordinate in decimal degrees.

    Attributes:
        lat: Latitude in degrees
        lng: Longitude in degrees
    """

    lat: float
    lng: float

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict."""
        return {"lat": self.lat, "lng": self.lng}


def calculate_new_position(
    anchor: HasLatLng,
    steps: float,
    heading_degrees: float,
    stride_length_meters: float,
) -> Coordinate:
    """
    Project a new coordinate from an anchor, travelled steps and a heading.

    Uses the "destination point given distance and bearing" formula on a
    sphere of radius EARTH_RADIUS_METERS.

    Args:
        anchor: Starting point (anything with .lat / .lng)
        steps: Number of steps taken since the anchor
        heading_degrees: Compass bearing (0 = North, 90 = East)
        stride_length_meters: Length of a single step in meters

    Returns:
        Estimated Coordinate after the walk

    Example:
        >>> end = calculate_new_position(Coordinate(0.0, 0.0), 1000, 0.0, 1.0)
        >>> round(end.lat, 5)
        0.00899
    """
    distance_meters = steps * stride_length_meters

    lat1 = math.radians(anchor.lat)
    lng1 = math.radians(anchor.lng)
    bearing = math.radians(heading_degrees)
    angular_distance = distance_meters / EARTH_RADIUS_METERS

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular_distance)
        + math.cos(lat1) * math.sin(angular_distance) * math.cos(bearing)
    )
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(angular_distance) * math.cos(lat1),
        math.cos(angular_distance) - math.sin(lat1) * math.sin(lat2),
    )

    lng_degrees = math.degrees(lng2)
    # Keep longitude in [-180, 180) when crossing the antimeridian
    if not -180.0 <= lng_degrees < 180.0:
        lng_degrees = (lng_degrees + 540.0) % 360.0 - 180.0

    return Coordinate(lat=math.degrees(lat2), lng=lng_degrees)


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points in meters.

    Args:
        lat1: Latitude of first point (degrees)
        lng1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lng2: Longitude of second point (degrees)

    Returns:
        Distance in meters
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def haversine_distance_array(
    lat1: float,
    lng1: float,
    lat2: np.ndarray,
    lng2: np.ndarray,
) -> np.ndarray:
    """
    Vectorised haversine: distance from one point to many (meters).

    Same formula and radius as haversine_distance(), applied element-wise so
    grid generation does not loop in Python.
    """
    lat2 = np.asarray(lat2, dtype=np.float64)
    lng2 = np.asarray(lng2, dtype=np.float64)

    d_lat = np.radians(lat2 - lat1)
    d_lng = np.radians(lng2 - lng1)

    a = (
        np.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * np.cos(np.radians(lat2)) * np.sin(d_lng / 2) ** 2
    )
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def smooth_heading(headings: Sequence[float]) -> float:
    """
    Circular mean of compass headings.

    Sums unit vectors (sin, cos) and takes atan2 of the averaged components,
    so 359 and 1 average to 0 rather than 180.

    Args:
        headings: Heading samples in degrees

    Returns:
        Mean heading in [0, 360). 0.0 for an empty sequence.
    """
    if not headings:
        return 0.0

    sum_sin = 0.0
    sum_cos = 0.0
    for heading in headings:
        rad = math.radians(heading)
        sum_sin += math.sin(rad)
        sum_cos += math.cos(rad)

    count = len(headings)
    avg_deg = math.degrees(math.atan2(sum_sin / count, sum_cos / count)) % 360.0

    # -1e-15 % 360.0 rounds up to 360.0
    if avg_deg >= 360.0:
        avg_deg = 0.0
    return avg_deg
