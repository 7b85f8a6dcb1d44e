"""Choose the unloading places a delivery route should start from."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union

from ..models.domain import DeliveryType, PointOfInterest, UnloadingPlace, Venue, WorkplaceEntrance
from .venues import find_workplace_entrance, venue_unloading_places

DELIVERY_TYPE_PRIORITIES: dict[DeliveryType, int] = {
    DeliveryType.MAIN: 2,
    DeliveryType.YES: 1,
    DeliveryType.NONE: 0,
    DeliveryType.NO: -1,
}


def delivery_priority(value: Union[DeliveryType, str, None]) -> int:
    if not isinstance(value, DeliveryType):
        value = DeliveryType.parse(value)
    return DELIVERY_TYPE_PRIORITIES[value]


def sort_entrances_by_delivery_type(entrances: Sequence[WorkplaceEntrance]) -> list[WorkplaceEntrance]:
    """Most suitable delivery entrances first; ties keep their original order."""
    return sorted(entrances, key=lambda entrance: -delivery_priority(entrance.delivery_type))


def rank_venue_entrances(venue: Venue, nodes: Sequence[PointOfInterest]) -> tuple[Venue, list[PointOfInterest]]:
    """Venue with its entrances in delivery order, and their map nodes in the same order.

    Entrances without a resolved node are left out.
    """
    by_id = {node.id: node for node in nodes}
    ranked = [
        entrance for entrance in sort_entrances_by_delivery_type(venue.entrances) if entrance.osm_entrance_id in by_id
    ]
    return replace(venue, entrances=ranked), [by_id[entrance.osm_entrance_id] for entrance in ranked]


@dataclass(slots=True)
class UnloadingSelection:
    places: list[UnloadingPlace] = field(default_factory=list)
    # Set when the destination is one specific entrance of the venue
    workplace_entrance: Optional[WorkplaceEntrance] = None
    venue_wide: bool = False


def select_unloading_places(
    venue: Optional[Venue],
    destination: Optional[PointOfInterest],
    preferred_id: Optional[int] = None,
) -> UnloadingSelection:
    """Pick the unloading places for a destination.

    An explicitly chosen venue entrance with its own unloading places wins.
    Otherwise, when the destination is the venue itself, all venue-wide
    places apply, narrowed to the preferred one if it is among them. With
    neither, the selection is empty and planning falls back to the street.
    """

    if venue is None or destination is None:
        return UnloadingSelection()

    workplace_entrance = find_workplace_entrance(venue, destination.id)
    if workplace_entrance is not None and workplace_entrance.unloading_places:
        return UnloadingSelection(
            places=list(workplace_entrance.unloading_places),
            workplace_entrance=workplace_entrance,
        )

    if not destination.same_feature(venue.poi):
        return UnloadingSelection(workplace_entrance=workplace_entrance)

    places = venue_unloading_places(venue)
    if places and preferred_id is not None:
        preferred = [place for place in places if place.id == preferred_id]
        if preferred:
            places = preferred
    return UnloadingSelection(places=places, venue_wide=bool(places))
