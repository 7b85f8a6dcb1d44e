"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional, Sequence
from urllib.parse import parse_qs, urlencode

from shapely.geometry import MultiLineString, Point
from shapely.ops import nearest_points

from ..models.domain import LatLng

EARTH_RADIUS_M = 6371008.8


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in meters between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_m(origin: LatLng, target: LatLng) -> float:
    return haversine_m(origin[0], origin[1], target[0], target[1])


def nearest_point_on_lines(lines: Sequence[Sequence[LatLng]], point: LatLng) -> Optional[LatLng]:
    """Return the point on a multi-line geometry closest to ``point``.

    Lines are given as (lat, lon) polylines. Planar distance in degrees is
    good enough at the street scale this is used for. Returns None when the
    geometry has no usable line.
    """

    usable = [[(lon, lat) for lat, lon in line] for line in lines if len(line) >= 2]
    if not usable:
        return None
    geometry = MultiLineString(usable)
    nearest, _ = nearest_points(geometry, Point(point[1], point[0]))
    return (nearest.y, nearest.x)


def parse_lat_lng(text: Optional[str]) -> Optional[LatLng]:
    """Parse a "lat,lon" path fragment, returning None when it is not a coordinate."""

    if not text:
        return None
    parts = text.split(",")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    try:
        lat, lon = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not -90 <= lat <= 90 or not -90 < lon < 90:
        return None
    return (lat, lon)


def _format_lat_lng(value: Optional[LatLng]) -> str:
    if value is None:
        return "undefined"
    return f"{value[0]},{value[1]}"


def format_route_path(
    origin: Optional[LatLng],
    destination: Optional[LatLng],
    query_string: str = "",
) -> str:
    """Build the shareable /route/<origin>/<destination>/ path, keeping utm_source if present."""

    path = f"/route/{_format_lat_lng(origin)}/{_format_lat_lng(destination)}/"
    utm_source = parse_qs(query_string.lstrip("?")).get("utm_source")
    if utm_source:
        return f"{path}?{urlencode({'utm_source': utm_source[0]})}"
    return path


def google_maps_directions_url(origin: LatLng, destination: LatLng) -> str:
    """Directions link offered when the origin is too far for in-app routes."""

    params = {
        "api": "1",
        "origin": f"{origin[0]},{origin[1]}",
        "destination": f"{destination[0]},{destination[1]}",
        "travelmode": "driving",
    }
    return f"https://www.google.com/maps/dir/?{urlencode(params, safe=',')}"
