"""Routing request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.domain import ElementType


class Coordinate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lon)


class PointOfInterestModel(BaseModel):
    id: int = Field(-1, description="OSM element id; -1 for a point without map identity.")
    type: ElementType = ElementType.NODE
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    tags: Dict[str, str] = Field(default_factory=dict)


class ViewportModel(BaseModel):
    latitude: float
    longitude: float
    zoom: float
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    bearing: float = 0.0
    pitch: float = 0.0


class PlanRequest(BaseModel):
    origin: Optional[Coordinate] = None
    origin_is_explicit: bool = Field(
        default=True,
        description="False when the origin comes from geolocation rather than the user placing it.",
    )
    destination: PointOfInterestModel
    is_venue: bool = Field(
        default=False,
        description="Treat the destination as a venue and load its curated entrance data.",
    )
    entrance_id: Optional[int] = Field(default=None, description="OSM id of a chosen venue entrance.")
    unloading_place_id: Optional[int] = Field(default=None, description="Preferred venue unloading place.")
    viewport: Optional[ViewportModel] = None
    query_string: str = Field(default="", description="Query string of the current page, for the share path.")


class RouteQueryModel(BaseModel):
    origin: Coordinate
    target: PointOfInterestModel
    mode: Literal["default", "delivery-walking", "delivery-car"]


class PlanResponse(BaseModel):
    queries: List[RouteQueryModel]
    unreachable: Optional[Literal["no-origin", "too-far"]] = None
    recovery_actions: List[str] = Field(default_factory=list)
    external_map_url: Optional[str] = None
    entrances: List[PointOfInterestModel]
    venue_features: Dict[str, Any]
    viewport: ViewportModel
    share_path: str


class RouteResponse(PlanResponse):
    route: Dict[str, Any]
    completed_queries: int = 0
    failed_queries: int = 0
    skipped_queries: int = 0


class ViewportRequest(BaseModel):
    viewport: ViewportModel
    points: List[Optional[Coordinate]]
    occluded_bottom_fraction: float = Field(default=0.0, ge=0.0, lt=1.0)


class SharedRouteResponse(BaseModel):
    origin: Optional[Coordinate] = None
    destination: Optional[Coordinate] = None
    viewport: ViewportModel
