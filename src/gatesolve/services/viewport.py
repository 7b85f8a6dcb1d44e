"""Camera viewport fitting for a set of map points."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..models.domain import LatLng

logger = logging.getLogger(__name__)

TILE_SIZE = 512
MAX_LATITUDE = 85.051129
DEFAULT_MAX_ZOOM = 24.0

# Screen margins in pixels
PADDING_PX = 20
MARKER_SIZE_PX = 50
OCCLUDED_TOP_PX = 40
CIRCLE_RADIUS_PX = 5
SINGLE_POINT_MAX_ZOOM = 17.0


@dataclass(frozen=True, slots=True)
class Viewport:
    latitude: float
    longitude: float
    zoom: float
    width: int
    height: int
    bearing: float = 0.0
    pitch: float = 0.0


@dataclass(frozen=True, slots=True)
class Padding:
    top: float
    bottom: float
    left: float
    right: float


def _lng_lat_to_world(lng: float, lat: float) -> tuple[float, float]:
    lambda2 = math.radians(lng)
    phi2 = math.radians(max(-MAX_LATITUDE, min(MAX_LATITUDE, lat)))
    x = TILE_SIZE * (lambda2 + math.pi) / (2 * math.pi)
    y = TILE_SIZE * (math.pi + math.log(math.tan(math.pi / 4 + phi2 * 0.5))) / (2 * math.pi)
    return x, y


def _world_to_lng_lat(x: float, y: float) -> tuple[float, float]:
    lambda2 = (x / TILE_SIZE) * (2 * math.pi) - math.pi
    phi2 = 2 * (math.atan(math.exp((y / TILE_SIZE) * (2 * math.pi) - math.pi)) - math.pi / 4)
    return math.degrees(lambda2), math.degrees(phi2)


def fit_box(
    viewport: Viewport,
    south_west: LatLng,
    north_east: LatLng,
    padding: Padding,
    max_zoom: Optional[float] = None,
) -> Viewport:
    """Center and zoom ``viewport`` so the box fills the padded screen area.

    Follows the web-mercator fitBounds used by map GL libraries: the box is
    projected to world pixels at zoom 0, scaled into the padded target size,
    and the center is shifted by half the padding imbalance.
    """

    west, south = south_west[1], south_west[0]
    east, north = north_east[1], north_east[0]
    nw = _lng_lat_to_world(west, north)
    se = _lng_lat_to_world(east, south)

    size_x = abs(se[0] - nw[0])
    size_y = abs(se[1] - nw[1])
    target_x = viewport.width - padding.left - padding.right
    target_y = viewport.height - padding.top - padding.bottom
    if target_x <= 0 or target_y <= 0:
        logger.debug("Padding %s leaves no room in a %sx%s viewport", padding, viewport.width, viewport.height)
        return viewport

    scale_x = target_x / size_x if size_x > 0 else math.inf
    scale_y = target_y / size_y if size_y > 0 else math.inf
    offset_x = (padding.right - padding.left) / 2 / scale_x
    offset_y = (padding.top - padding.bottom) / 2 / scale_y

    center_x = (se[0] + nw[0]) / 2 + offset_x
    center_y = (se[1] + nw[1]) / 2 + offset_y
    longitude, latitude = _world_to_lng_lat(center_x, center_y)

    limit = DEFAULT_MAX_ZOOM if max_zoom is None else max_zoom
    scale = min(scale_x, scale_y)
    zoom = limit if math.isinf(scale) else min(limit, math.log2(scale))
    return replace(viewport, latitude=latitude, longitude=longitude, zoom=zoom)


def fit_bounds(
    viewport: Viewport,
    points: Iterable[Optional[LatLng]],
    occluded_bottom_fraction: float = 0,
) -> Viewport:
    """Fit the camera to ``points`` leaving room for the header, markers and a bottom panel.

    Absent points are ignored; with nothing left the viewport is returned as is.
    The zoom cap for close points only applies without bottom occlusion, since
    the fit cannot honour both at once.
    """

    inputs = [point for point in points if point is not None]
    if not inputs:
        return viewport

    min_lat = min(lat for lat, _ in inputs)
    max_lat = max(lat for lat, _ in inputs)
    min_lng = min(lng for _, lng in inputs)
    max_lng = max(lng for _, lng in inputs)

    occluded_bottom = occluded_bottom_fraction * viewport.height
    padding = Padding(
        top=PADDING_PX + OCCLUDED_TOP_PX + MARKER_SIZE_PX,
        bottom=PADDING_PX + occluded_bottom + CIRCLE_RADIUS_PX,
        left=PADDING_PX + MARKER_SIZE_PX / 2,
        right=PADDING_PX + MARKER_SIZE_PX / 2,
    )
    max_zoom = None if occluded_bottom_fraction else SINGLE_POINT_MAX_ZOOM
    return fit_box(viewport, (min_lat, min_lng), (max_lat, max_lng), padding, max_zoom=max_zoom)
