"""Turn a destination and its entrance data into path-planner queries."""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional, Sequence

from ...config import settings
from ...models.domain import LatLng, PointOfInterest, UnloadingPlace
from ..geospatial import distance_m, nearest_point_on_lines
from ..overpass_client import NETWORK_ERRORS
from ..unloading import UnloadingSelection
from .models import PlanResult, RouteMode, RouteQuery, UnreachableReason

logger = logging.getLogger(__name__)

# Offset in degrees added to both coordinates of an unloading place to get
# the car-leg target.
UNLOADING_PLACE_NUDGE_DEG = 0.000001

STREET_TAG = "addr:street"

StreetMatcher = Callable[[PointOfInterest, str], Sequence[Sequence[LatLng]]]


def select_targets(destination: PointOfInterest, entrances: Sequence[PointOfInterest]) -> list[PointOfInterest]:
    """The entrance that is the destination, or every entrance when none is."""
    matching = [entrance for entrance in entrances if entrance.same_feature(destination)]
    return matching or list(entrances)


def unloading_place_target(place: UnloadingPlace) -> PointOfInterest:
    lat, lon = place.location
    return PointOfInterest.from_lat_lng((lat + UNLOADING_PLACE_NUDGE_DEG, lon + UNLOADING_PLACE_NUDGE_DEG))


def _delivery_queries(
    destination: PointOfInterest,
    entrances: Sequence[PointOfInterest],
    selection: UnloadingSelection,
    place_entrances: Mapping[int, Sequence[int]],
) -> list[RouteQuery]:
    queries: list[RouteQuery] = []
    for place in selection.places:
        if place.access_points:
            target = unloading_place_target(place)
            queries.extend(
                RouteQuery(origin=access_point, target=target, mode=RouteMode.DELIVERY_CAR)
                for access_point in place.access_points
            )
            continue
        if selection.venue_wide:
            linked = place_entrances.get(place.id, [])
            walk_targets = [entrance for entrance in entrances if entrance.id in linked]
            # Keep the venue's link order rather than the entrance list order
            walk_targets.sort(key=lambda entrance: linked.index(entrance.id))
        else:
            walk_targets = [destination]
        queries.extend(
            RouteQuery(origin=place.location, target=target, mode=RouteMode.DELIVERY_WALKING)
            for target in walk_targets
        )
    return queries


def snap_to_street(
    destination: PointOfInterest,
    targets: Sequence[PointOfInterest],
    street_matcher: StreetMatcher,
) -> Optional[LatLng]:
    """Nearest point on the destination's street, or None when it cannot be found."""

    street = destination.tags.get(STREET_TAG)
    target = destination
    if not street and targets:
        target = targets[0]
        street = target.tags.get(STREET_TAG)
    if not street:
        return None
    try:
        lines = street_matcher(target, street)
    except NETWORK_ERRORS as e:
        logger.warning(f"Street lookup for {street!r} near {target.identity} failed: {e}")
        return None
    return nearest_point_on_lines(lines, target.lat_lng)


def plan_queries(
    origin: Optional[LatLng],
    destination: PointOfInterest,
    entrances: Sequence[PointOfInterest],
    selection: UnloadingSelection,
    street_matcher: StreetMatcher,
    place_entrances: Optional[Mapping[int, Sequence[int]]] = None,
    max_distance_m: Optional[float] = None,
) -> PlanResult:
    """Decide which (origin, target, mode) queries to route for a destination.

    Unloading places take precedence and produce delivery legs regardless of
    the origin. Otherwise a distant or missing origin is replaced by the
    nearest point on the destination's street when one can be matched, and
    the result is one default query per target, or an unreachable reason.
    Query order follows the order of the selected places and targets.
    """

    limit = settings.max_routing_distance_m if max_distance_m is None else max_distance_m
    targets = select_targets(destination, entrances)

    if selection.places:
        queries = _delivery_queries(destination, entrances, selection, place_entrances or {})
        return PlanResult(queries=queries, origin=origin)

    if origin is None or distance_m(origin, destination.lat_lng) >= limit:
        snapped = snap_to_street(destination, targets, street_matcher)
        if snapped is not None:
            logger.debug("Snapped origin %s to street point %s", origin, snapped)
            origin = snapped

    if origin is None:
        return PlanResult.blocked(UnreachableReason.NO_ORIGIN)
    if distance_m(origin, destination.lat_lng) >= limit:
        return PlanResult.blocked(UnreachableReason.TOO_FAR, origin=origin)

    return PlanResult(
        queries=[RouteQuery(origin=origin, target=target, mode=RouteMode.DEFAULT) for target in targets],
        origin=origin,
    )
