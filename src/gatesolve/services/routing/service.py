"""Routing orchestration service."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ...models.domain import LatLng, PointOfInterest
from ...schemas.routing import (
    Coordinate,
    PlanRequest,
    PlanResponse,
    PointOfInterestModel,
    RouteQueryModel,
    RouteResponse,
    SharedRouteResponse,
    ViewportModel,
    ViewportRequest,
)
from ..geospatial import format_route_path, parse_lat_lng
from ..session import DEFAULT_VIEWPORT, PlanningCycle, PlanningSession, create_session
from ..viewport import Viewport, fit_bounds
from .reconciler import empty_feature_collection

logger = logging.getLogger(__name__)


def _to_poi(model: PointOfInterestModel) -> PointOfInterest:
    return PointOfInterest(id=model.id, type=model.type, lat=model.lat, lon=model.lon, tags=dict(model.tags))


def _poi_model(poi: PointOfInterest) -> PointOfInterestModel:
    return PointOfInterestModel(id=poi.id, type=poi.type, lat=poi.lat, lon=poi.lon, tags=dict(poi.tags))


def _coordinate(lat_lng: Optional[LatLng]) -> Optional[Coordinate]:
    if lat_lng is None:
        return None
    return Coordinate(lat=lat_lng[0], lon=lat_lng[1])


def _to_viewport(model: Optional[ViewportModel]) -> Viewport:
    if model is None:
        return DEFAULT_VIEWPORT
    return Viewport(**model.model_dump())


def _viewport_model(viewport: Viewport) -> ViewportModel:
    return ViewportModel(
        latitude=viewport.latitude,
        longitude=viewport.longitude,
        zoom=viewport.zoom,
        width=viewport.width,
        height=viewport.height,
        bearing=viewport.bearing,
        pitch=viewport.pitch,
    )


def _prepare_session(payload: PlanRequest) -> PlanningSession:
    session = create_session(_to_viewport(payload.viewport))
    destination = _to_poi(payload.destination)
    if payload.origin is not None:
        session.set_origin(payload.origin.as_tuple(), explicit=payload.origin_is_explicit)
    if payload.is_venue:
        session.select_venue(destination)
    else:
        session.set_destination(destination)
    session.resolve_entrances()

    if payload.entrance_id is not None:
        session.select_entrance(payload.entrance_id)
    elif payload.unloading_place_id is not None:
        session.select_unloading_place(payload.unloading_place_id)
    return session


def _plan_response(session: PlanningSession, cycle: Optional[PlanningCycle], payload: PlanRequest) -> dict:
    state = session.state
    queries = []
    unreachable = None
    if cycle is not None:
        queries = [
            RouteQueryModel(
                origin=_coordinate(query.origin),
                target=_poi_model(query.target),
                mode=query.mode.value,
            )
            for query in cycle.plan.queries
        ]
        unreachable = cycle.plan.unreachable.value if cycle.plan.unreachable else None
    return {
        "queries": queries,
        "unreachable": unreachable,
        "recovery_actions": session.recovery_actions(),
        "external_map_url": session.external_map_url() if unreachable == "too-far" else None,
        "entrances": [_poi_model(entrance) for entrance in state.entrances],
        "venue_features": session.venue_features(),
        "viewport": _viewport_model(state.viewport),
        "share_path": format_route_path(
            state.origin,
            state.destination.lat_lng if state.destination else None,
            payload.query_string,
        ),
    }


def plan_destination(payload: PlanRequest) -> PlanResponse:
    """Resolve entrances and plan route queries without dispatching them."""
    session = _prepare_session(payload)
    cycle = session.plan_route(dispatch=False)
    return PlanResponse(**_plan_response(session, cycle, payload))


def route_destination(payload: PlanRequest) -> RouteResponse:
    """Resolve entrances, plan, and collect the route from the path planner."""
    session = _prepare_session(payload)
    cycle = session.plan_route()
    body = _plan_response(session, cycle, payload)
    reconcile = cycle.reconcile if cycle is not None else None
    if reconcile is not None:
        logger.info(
            f"Route for {payload.destination.type.value}/{payload.destination.id}: "
            f"{reconcile.completed} queries completed, {reconcile.failed} failed, {reconcile.skipped} skipped"
        )
    return RouteResponse(
        **body,
        route=session.state.route if reconcile is not None else empty_feature_collection(),
        completed_queries=reconcile.completed if reconcile else 0,
        failed_queries=reconcile.failed if reconcile else 0,
        skipped_queries=reconcile.skipped if reconcile else 0,
    )


def fit_viewport(payload: ViewportRequest) -> ViewportModel:
    points = [point.as_tuple() if point is not None else None for point in payload.points]
    viewport = fit_bounds(_to_viewport(payload.viewport), points, payload.occluded_bottom_fraction)
    return _viewport_model(viewport)


def open_shared_route(origin_text: str, destination_text: str, width: int, height: int) -> SharedRouteResponse:
    """Parse a /route/<origin>/<destination> link and frame both points."""
    origin = parse_lat_lng(origin_text)
    destination = parse_lat_lng(destination_text)
    base = replace(DEFAULT_VIEWPORT, width=width, height=height)
    fitted = fit_bounds(base, [origin, destination])
    return SharedRouteResponse(
        origin=_coordinate(origin),
        destination=_coordinate(destination),
        viewport=_viewport_model(fitted),
    )
