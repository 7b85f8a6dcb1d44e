"""Domain models for map features, venues and planning inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

LatLng = tuple[float, float]

T = TypeVar("T")


class ElementType(str, Enum):
    NODE = "node"
    WAY = "way"
    RELATION = "relation"


SYNTHETIC_ID = -1


@dataclass(slots=True)
class PointOfInterest:
    """An addressable map element with coordinates and optional tags."""

    id: int
    type: ElementType
    lat: float
    lon: float
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def identity(self) -> tuple[ElementType, int]:
        return (self.type, self.id)

    @property
    def lat_lng(self) -> LatLng:
        return (self.lat, self.lon)

    @property
    def key(self) -> tuple[ElementType, int, float, float]:
        """Identity plus position; tells apart two synthetic points."""
        return (self.type, self.id, self.lat, self.lon)

    @property
    def is_synthetic(self) -> bool:
        return self.id == SYNTHETIC_ID

    def same_feature(self, other: "PointOfInterest") -> bool:
        if self.is_synthetic or other.is_synthetic:
            return self.key == other.key
        return self.identity == other.identity

    @classmethod
    def from_lat_lng(cls, lat_lng: LatLng) -> "PointOfInterest":
        """Build a point for a raw click or drag that has no map identity."""
        return cls(id=SYNTHETIC_ID, type=ElementType.NODE, lat=lat_lng[0], lon=lat_lng[1])


class DeliveryType(str, Enum):
    MAIN = "main"
    YES = "yes"
    NONE = "none"
    NO = "no"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DeliveryType":
        """Map a raw tag value to the enum; missing, empty and unknown values become NONE."""
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NONE


@dataclass(slots=True)
class UnloadingPlace:
    id: int
    location: LatLng
    access_points: list[LatLng] = field(default_factory=list)
    osm_feature_id: Optional[int] = None
    description: Optional[str] = None
    opening_hours: Optional[str] = None
    parking_condition: Optional[str] = None


@dataclass(slots=True)
class WorkplaceEntrance:
    id: int
    osm_entrance_id: int
    delivery_type: DeliveryType = DeliveryType.NONE
    unloading_places: list[UnloadingPlace] = field(default_factory=list)
    description: Optional[str] = None
    delivery_instructions: Optional[str] = None
    delivery_hours: Optional[str] = None
    delivery_types: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Venue:
    """Curated workplace data overlaying a map element."""

    poi: PointOfInterest
    osm_feature_id: Optional[int] = None
    name: Optional[str] = None
    entrances: list[WorkplaceEntrance] = field(default_factory=list)
    delivery_instructions: Optional[str] = None
    delivery_hours: Optional[str] = None
    profile_images: list[str] = field(default_factory=list)

    @property
    def identity(self) -> tuple[ElementType, int]:
        return self.poi.identity


class NetworkStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True)
class NetworkState(Generic[T]):
    """Outcome of a collaborator fetch: loading, success with a response, or error."""

    status: NetworkStatus
    response: Optional[T] = None
    message: Optional[str] = None

    @classmethod
    def loading(cls) -> "NetworkState[T]":
        return cls(status=NetworkStatus.LOADING)

    @classmethod
    def success(cls, response: T) -> "NetworkState[T]":
        return cls(status=NetworkStatus.SUCCESS, response=response)

    @classmethod
    def error(cls, message: str) -> "NetworkState[T]":
        return cls(status=NetworkStatus.ERROR, message=message)

    @property
    def ok(self) -> bool:
        return self.status is NetworkStatus.SUCCESS and self.response is not None


@dataclass(frozen=True, slots=True)
class PlanningInputSnapshot:
    """Inputs captured when a planning cycle starts; compared by value to detect staleness."""

    origin: Optional[LatLng]
    destination_id: Optional[tuple[ElementType, int, float, float]]
    entrance_set_id: int
    unloading_place_preference_id: Optional[int]
    # Destination the entrance set was resolved for
    entrances_destination_id: Optional[tuple[ElementType, int, float, float]] = None
