"""
GPS Coordinate Utilities

Geodesic helpers for place verification: distances between the device and
candidate places, and the search region around the device. Uses pyproj on the
WGS84 ellipsoid.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from pyproj import Geod

from placelens.models import Coordinate, PlaceResult

_geod = Geod(ellps='WGS84')


def validate_gps_coordinate(lat: float, lon: float) -> bool:
    """
    Validate GPS coordinates are within valid ranges.

    Args:
        lat: Latitude (degrees)
        lon: Longitude (degrees)

    Returns:
        True if valid, False otherwise
    """
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle (geodesic) distance between two coordinates in meters."""
    _, _, distance = _geod.inv(a.longitude, a.latitude, b.longitude, b.latitude)
    return abs(distance)


def meters_to_gps(
    x_meters: float,
    y_meters: float,
    ref_lat: float,
    ref_lon: float
) -> Tuple[float, float]:
    """
    Convert a local ENU offset (meters) to GPS coordinates.

    Args:
        x_meters: Eastward distance in meters
        y_meters: Northward distance in meters
        ref_lat: Reference latitude (degrees) at the origin
        ref_lon: Reference longitude (degrees) at the origin

    Returns:
        Tuple of (latitude, longitude) in degrees
    """
    distance = np.sqrt(x_meters**2 + y_meters**2)
    if distance < 1e-9:
        return (ref_lat, ref_lon)

    # Azimuth clockwise from north
    azimuth = np.degrees(np.arctan2(x_meters, y_meters))
    if azimuth < 0:
        azimuth += 360.0

    lon, lat, _ = _geod.fwd(ref_lon, ref_lat, azimuth, distance)
    return (lat, lon)


def region_bounds(center: Coordinate, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Bounding box of a square search region centered on a coordinate.

    Returns:
        (min_lon, min_lat, max_lon, max_lat) in degrees
    """
    north_lat, _ = meters_to_gps(0.0, radius_meters, center.latitude, center.longitude)
    south_lat, _ = meters_to_gps(0.0, -radius_meters, center.latitude, center.longitude)
    _, east_lon = meters_to_gps(radius_meters, 0.0, center.latitude, center.longitude)
    _, west_lon = meters_to_gps(-radius_meters, 0.0, center.latitude, center.longitude)
    return (west_lon, south_lat, east_lon, north_lat)


def nearest_place(places: Sequence[PlaceResult], center: Coordinate) -> Optional[PlaceResult]:
    """
    Closest place to center; ties go to the earliest place in the given order.
    """
    best = None
    best_distance = float('inf')
    for place in places:
        d = distance_meters(center, place.coordinate)
        if d < best_distance:
            best = place
            best_distance = d
    return best
