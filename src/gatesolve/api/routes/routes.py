"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status

from ...schemas.routing import (
    PlanRequest,
    PlanResponse,
    RouteResponse,
    SharedRouteResponse,
    ViewportModel,
    ViewportRequest,
)
from ...services.geospatial import google_maps_directions_url, parse_lat_lng
from ...services.routing.service import fit_viewport, open_shared_route, plan_destination, route_destination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/plan", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def plan(payload: PlanRequest) -> PlanResponse:
    """Resolve entrances and list the route queries for a destination."""
    try:
        return plan_destination(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error planning route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan route: {str(exc)}"
        ) from exc


@router.post("/route", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def route(payload: PlanRequest) -> RouteResponse:
    """Plan and run the route queries, returning the merged route geometry."""
    try:
        return route_destination(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error computing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute route: {str(exc)}"
        ) from exc


@router.post("/viewport", response_model=ViewportModel, status_code=status.HTTP_200_OK)
def viewport(payload: ViewportRequest) -> ViewportModel:
    return fit_viewport(payload)


@router.get("/external-link", status_code=status.HTTP_200_OK)
def external_link(
    origin: str = Query(..., description="Origin as 'lat,lon'."),
    destination: str = Query(..., description="Destination as 'lat,lon'."),
) -> dict:
    """Directions link to an external map service for origins too far to route here."""
    origin_lat_lng = parse_lat_lng(origin)
    destination_lat_lng = parse_lat_lng(destination)
    if origin_lat_lng is None or destination_lat_lng is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expected coordinates as 'lat,lon'.")
    return {"url": google_maps_directions_url(origin_lat_lng, destination_lat_lng)}


@router.get("/shared/{origin}/{destination}", response_model=SharedRouteResponse, status_code=status.HTTP_200_OK)
def shared(
    origin: str,
    destination: str,
    width: int = Query(1024, gt=0),
    height: int = Query(768, gt=0),
) -> SharedRouteResponse:
    """Open a shared /route/<origin>/<destination> link."""
    return open_shared_route(origin, destination, width, height)
