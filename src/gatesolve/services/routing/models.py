"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ...models.domain import LatLng, PointOfInterest


class RouteMode(str, Enum):
    DEFAULT = "default"
    DELIVERY_WALKING = "delivery-walking"
    DELIVERY_CAR = "delivery-car"


class UnreachableReason(str, Enum):
    NO_ORIGIN = "no-origin"
    TOO_FAR = "too-far"


@dataclass(frozen=True, slots=True)
class RouteQuery:
    origin: LatLng
    target: PointOfInterest
    mode: RouteMode = RouteMode.DEFAULT


@dataclass(slots=True)
class PlanResult:
    queries: List[RouteQuery] = field(default_factory=list)
    unreachable: Optional[UnreachableReason] = None
    # Origin the queries start from, after any street snapping
    origin: Optional[LatLng] = None

    @property
    def is_reachable(self) -> bool:
        return self.unreachable is None

    @classmethod
    def blocked(cls, reason: UnreachableReason, origin: Optional[LatLng] = None) -> "PlanResult":
        return cls(unreachable=reason, origin=origin)
