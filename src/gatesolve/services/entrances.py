"""Resolve the candidate entrances for a destination."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..models.domain import NetworkState, PointOfInterest, Venue
from .overpass_client import NETWORK_ERRORS
from .venues import restrict_to_resolved

logger = logging.getLogger(__name__)

VenueFetcher = Callable[[PointOfInterest], NetworkState[Venue]]
NodeLookup = Callable[[Sequence[int]], list[PointOfInterest]]
EntranceSearch = Callable[[PointOfInterest], list[PointOfInterest]]


@dataclass(slots=True)
class EntranceResolution:
    """Entrances for a destination plus the venue data used to find them."""

    entrances: list[PointOfInterest]
    venue_state: Optional[NetworkState[Venue]] = None
    venue_entrances: list[PointOfInterest] = field(default_factory=list)
    source: str = "fallback"


def _venue_matches(destination: PointOfInterest, venue_poi: Optional[PointOfInterest]) -> bool:
    return venue_poi is not None and venue_poi.same_feature(destination)


def _curated_entrances(
    destination: PointOfInterest,
    venue_state: Optional[NetworkState[Venue]],
    venue_entrances: Sequence[PointOfInterest],
    fetch_venue: VenueFetcher,
    lookup_nodes: NodeLookup,
) -> tuple[list[PointOfInterest], Optional[NetworkState[Venue]], list[PointOfInterest]]:
    if venue_state is not None and venue_state.ok and venue_state.response.osm_feature_id == destination.id:
        return list(venue_entrances), venue_state, list(venue_entrances)

    fetched = fetch_venue(destination)
    if not fetched.ok:
        logger.info("No curated venue data for %s: %s", destination.identity, fetched.message)
        return [], fetched, []
    venue = fetched.response
    nodes = lookup_nodes([entrance.osm_entrance_id for entrance in venue.entrances])
    venue, ordered = restrict_to_resolved(venue, nodes)
    return ordered, NetworkState.success(venue), ordered


def resolve_entrances(
    destination: PointOfInterest,
    current_entrances: Sequence[PointOfInterest],
    venue_poi: Optional[PointOfInterest],
    venue_state: Optional[NetworkState[Venue]],
    venue_entrances: Sequence[PointOfInterest],
    fetch_venue: VenueFetcher,
    lookup_nodes: NodeLookup,
    search_entrances: EntranceSearch,
) -> EntranceResolution:
    """Find the entrances to route to, never returning an empty set.

    Tried in order: the entrance set already holding the destination, the
    curated venue entrances (when the destination is the selected venue), a
    generic building-entrance search, and finally the destination itself.
    Collaborator failures are logged and treated as empty results.
    """

    if any(entrance.same_feature(destination) for entrance in current_entrances):
        return EntranceResolution(
            entrances=list(current_entrances),
            venue_state=venue_state,
            venue_entrances=list(venue_entrances),
            source="current",
        )

    result: list[PointOfInterest] = []
    source = "fallback"
    if _venue_matches(destination, venue_poi):
        try:
            result, venue_state, venue_entrances = _curated_entrances(
                destination, venue_state, venue_entrances, fetch_venue, lookup_nodes
            )
            source = "venue"
        except NETWORK_ERRORS as e:
            logger.warning(f"Error while fetching venue entrances for {destination.identity}: {e}")
            result = []

    if not result:
        try:
            result = search_entrances(destination)
            source = "search"
        except NETWORK_ERRORS as e:
            logger.warning(f"Error while fetching building entrances for {destination.identity}: {e}")
            result = []

    if not result:
        result = [destination]
        source = "fallback"

    return EntranceResolution(
        entrances=result,
        venue_state=venue_state,
        venue_entrances=list(venue_entrances),
        source=source,
    )
