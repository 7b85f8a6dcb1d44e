"""Planning state for one user and the orchestration around it."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Optional, Sequence

from ..config import settings
from ..models.domain import ElementType, LatLng, NetworkState, PlanningInputSnapshot, PointOfInterest, Venue
from .entrances import EntranceSearch, NodeLookup, VenueFetcher, resolve_entrances
from .geospatial import distance_m, google_maps_directions_url
from .olmap_client import OlmapClient
from .overpass_client import OverpassClient
from .routing.models import PlanResult, RouteQuery, UnreachableReason
from .routing.osrm_client import OSRMClient
from .routing.planner import StreetMatcher, plan_queries
from .routing.reconciler import ReconcileResult, RouteReconciler, empty_feature_collection
from .unloading import rank_venue_entrances, select_unloading_places
from .venues import to_venue_state, unloading_place_entrances, venue_to_geojson
from .viewport import Viewport, fit_bounds

logger = logging.getLogger(__name__)

VENUE_PANEL_OCCLUSION = 0.5

DEFAULT_VIEWPORT = Viewport(latitude=60.17, longitude=24.941, zoom=15, width=1024, height=768)


@dataclass(slots=True)
class PlanningState:
    viewport: Viewport = DEFAULT_VIEWPORT
    origin: Optional[LatLng] = None
    origin_is_explicit: bool = False
    destination: Optional[PointOfInterest] = None
    venue: Optional[PointOfInterest] = None
    venue_state: Optional[NetworkState[Venue]] = None
    venue_entrances: list[PointOfInterest] = field(default_factory=list)
    entrances: list[PointOfInterest] = field(default_factory=list)
    entrance_set_id: int = 0
    # Key of the destination the entrance set was resolved for
    entrances_destination_key: Optional[tuple[ElementType, int, float, float]] = None
    unloading_place_id: Optional[int] = None
    route: dict[str, Any] = field(default_factory=empty_feature_collection)
    unreachable: Optional[UnreachableReason] = None
    geolocation_position: Optional[LatLng] = None
    venue_panel_open: bool = False

    @property
    def loaded_venue(self) -> Optional[Venue]:
        if self.venue_state is not None and self.venue_state.ok:
            return self.venue_state.response
        return None


@dataclass(slots=True)
class Collaborators:
    fetch_venue: VenueFetcher
    lookup_nodes: NodeLookup
    search_entrances: EntranceSearch
    street_matcher: StreetMatcher


@dataclass(slots=True)
class PlanningCycle:
    plan: PlanResult
    reconcile: Optional[ReconcileResult] = None


class PlanningSession:
    """Holds the current planning inputs and applies staleness-checked updates.

    All reads and writes of the state go through one lock. Slow work
    (collaborator fetches and path planning) runs outside of it and is
    written back only if the inputs it was computed from are still current.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        reconciler: RouteReconciler,
        viewport: Viewport = DEFAULT_VIEWPORT,
        max_distance_m: float | None = None,
    ) -> None:
        self.collaborators = collaborators
        self.reconciler = reconciler
        self.max_distance_m = settings.max_routing_distance_m if max_distance_m is None else max_distance_m
        self._state = PlanningState(viewport=viewport)
        self._lock = threading.RLock()
        self._abort: Optional[threading.Event] = None

    @property
    def state(self) -> PlanningState:
        """A shallow copy of the current state."""
        with self._lock:
            return replace(self._state, entrances=list(self._state.entrances))

    def _update(self, mutate: Callable[[PlanningState], None]) -> None:
        with self._lock:
            mutate(self._state)

    def _replace_entrances(self, state: PlanningState, entrances: Sequence[PointOfInterest]) -> None:
        state.entrances = list(entrances)
        state.entrance_set_id += 1
        state.entrances_destination_key = state.destination.key if state.destination else None

    def _entrances_match_destination(self, state: PlanningState) -> bool:
        destination = state.destination
        if destination is None or not state.entrances:
            return False
        if state.entrances_destination_key == destination.key:
            return True
        return any(entrance.same_feature(destination) for entrance in state.entrances)

    def _within_routing_distance(self, origin: Optional[LatLng], target: Optional[LatLng]) -> bool:
        return origin is not None and target is not None and distance_m(origin, target) < self.max_distance_m

    def _routing_markers(self, state: PlanningState) -> list[Optional[LatLng]]:
        destination = state.destination.lat_lng if state.destination else None
        if self._within_routing_distance(state.origin, destination):
            return [state.origin, destination]
        return [destination]

    # Snapshots

    def _snapshot(self, state: PlanningState) -> PlanningInputSnapshot:
        return PlanningInputSnapshot(
            origin=state.origin,
            destination_id=state.destination.key if state.destination else None,
            entrance_set_id=state.entrance_set_id,
            entrances_destination_id=state.entrances_destination_key,
            unloading_place_preference_id=state.unloading_place_id,
        )

    def snapshot(self) -> PlanningInputSnapshot:
        with self._lock:
            return self._snapshot(self._state)

    def is_current(self, snapshot: PlanningInputSnapshot) -> bool:
        with self._lock:
            return self._snapshot(self._state) == snapshot

    # User interactions

    def resize(self, width: int, height: int) -> None:
        self._update(lambda state: setattr(state, "viewport", replace(state.viewport, width=width, height=height)))

    def select_venue(self, poi: PointOfInterest) -> None:
        """Destination picked from search: it is also the venue whose data we load."""

        def mutate(state: PlanningState) -> None:
            state.viewport = fit_bounds(
                state.viewport,
                [state.origin, poi.lat_lng] if self._within_routing_distance(state.origin, poi.lat_lng) else [poi.lat_lng],
            )
            state.destination = poi
            state.venue = poi
            state.venue_state = None
            state.venue_entrances = []
            state.unloading_place_id = None
            state.venue_panel_open = True
            self._replace_entrances(state, [])

        self._update(mutate)

    def set_destination(self, poi: PointOfInterest) -> None:
        """Destination set from a map popup or by dragging the destination pin."""
        self._update(lambda state: setattr(state, "destination", poi))

    def set_origin(self, origin: Optional[LatLng], explicit: bool = True) -> None:
        def mutate(state: PlanningState) -> None:
            state.origin = origin
            state.origin_is_explicit = explicit and origin is not None

        self._update(mutate)

    def update_geolocation(self, position: LatLng) -> None:
        """Record a position fix; it becomes the origin unless the user placed one."""

        def mutate(state: PlanningState) -> None:
            is_first_position = state.geolocation_position is None
            state.geolocation_position = position
            if is_first_position and not state.origin_is_explicit:
                state.viewport = fit_bounds(
                    state.viewport,
                    [position, state.destination.lat_lng if state.destination else None],
                )
            if state.origin_is_explicit:
                return
            if state.origin is None or distance_m(state.origin, position) > settings.geolocation_move_threshold_m:
                state.origin = position

        self._update(mutate)

    def stop_geolocation(self) -> None:
        self._update(lambda state: setattr(state, "geolocation_position", None))

    def select_entrance(self, osm_entrance_id: int) -> None:
        """Route to one entrance of the loaded venue."""

        with self._lock:
            state = self._state
            entrance = next((node for node in state.venue_entrances if node.id == osm_entrance_id), None)
            if entrance is None:
                raise ValueError(f"Entrance {osm_entrance_id} is not part of the loaded venue.")
            state.unloading_place_id = None
            state.destination = entrance
            self._replace_entrances(state, state.venue_entrances)

    def select_unloading_place(self, unloading_place_id: int) -> None:
        """Prefer one unloading place and route to the venue as a whole."""

        with self._lock:
            state = self._state
            if state.venue is None:
                raise ValueError("No venue is selected.")
            state.unloading_place_id = unloading_place_id
            state.destination = state.venue
            self._replace_entrances(state, state.venue_entrances)

    def close_venue(self) -> None:
        def mutate(state: PlanningState) -> None:
            state.venue_panel_open = False
            state.venue = None
            state.venue_state = None
            state.venue_entrances = []

        self._update(mutate)

    # Recovery actions for an unreachable destination

    def recovery_actions(self) -> list[str]:
        with self._lock:
            state = self._state
            if state.unreachable is not UnreachableReason.TOO_FAR:
                return []
            actions = ["undo-origin"] if state.origin_is_explicit else []
            return [*actions, "undo-destination", "external-map"]

    def undo_origin(self) -> None:
        def mutate(state: PlanningState) -> None:
            state.origin = state.geolocation_position
            state.origin_is_explicit = False
            state.unreachable = None
            state.viewport = fit_bounds(state.viewport, [state.destination.lat_lng if state.destination else None])

        self._update(mutate)

    def undo_destination(self) -> None:
        def mutate(state: PlanningState) -> None:
            state.destination = None
            state.unreachable = None
            self._replace_entrances(state, [])
            state.viewport = fit_bounds(state.viewport, [state.origin])

        self._update(mutate)

    def external_map_url(self) -> Optional[str]:
        with self._lock:
            state = self._state
            if state.origin is None or state.destination is None:
                return None
            return google_maps_directions_url(state.origin, state.destination.lat_lng)

    def fit(self, points: Sequence[Optional[LatLng]], occluded_bottom_fraction: float = 0) -> Viewport:
        """Fit the viewport on request; nothing else moves the camera behind the caller's back."""
        with self._lock:
            self._state.viewport = fit_bounds(self._state.viewport, points, occluded_bottom_fraction)
            return self._state.viewport

    def venue_features(self) -> dict[str, Any]:
        with self._lock:
            venue = self._state.loaded_venue
            if venue is None:
                return empty_feature_collection()
            return venue_to_geojson(*rank_venue_entrances(venue, self._state.venue_entrances))

    # Asynchronous work

    def resolve_entrances(self) -> bool:
        """Fetch entrances for the current destination; returns whether they were committed."""

        with self._lock:
            state = self._state
            destination = state.destination
            if destination is None:
                return False
            venue_poi = state.venue
            venue_key = venue_poi.key if venue_poi else None
            current_entrances = list(state.entrances)
            venue_state = state.venue_state
            venue_entrances = list(state.venue_entrances)

        resolution = resolve_entrances(
            destination,
            current_entrances,
            venue_poi,
            venue_state,
            venue_entrances,
            self.collaborators.fetch_venue,
            self.collaborators.lookup_nodes,
            self.collaborators.search_entrances,
        )

        with self._lock:
            state = self._state
            current_venue_key = state.venue.key if state.venue else None
            if state.destination is None or state.destination.key != destination.key or current_venue_key != venue_key:
                logger.info("Discarding entrances for %s: destination changed meanwhile", destination.identity)
                return False
            venue_arrived = resolution.venue_state is not venue_state and resolution.venue_state is not None
            self._replace_entrances(state, resolution.entrances)
            state.venue_state = resolution.venue_state
            state.venue_entrances = resolution.venue_entrances
            if venue_arrived and state.loaded_venue is not None:
                markers = self._routing_markers(state) + [entrance.lat_lng for entrance in state.entrances]
                state.viewport = fit_bounds(state.viewport, markers, VENUE_PANEL_OCCLUSION)
            logger.debug("Resolved %d entrances for %s from %s", len(resolution.entrances), destination.identity, resolution.source)
            return True

    def _commit_route(self, snapshot: PlanningInputSnapshot, route: dict[str, Any]) -> bool:
        with self._lock:
            if self._snapshot(self._state) != snapshot:
                return False
            self._state.route = route
            return True

    def plan_route(self, dispatch: bool = True) -> Optional[PlanningCycle]:
        """Plan and run the route queries for the current inputs.

        With ``dispatch`` off the queries are planned but not sent to the path
        planner. Returns None when there is nothing to plan yet (no destination
        or no entrances resolved for it yet) or when the inputs changed before
        dispatch.
        """

        with self._lock:
            state = self._state
            if not self._entrances_match_destination(state):
                return None
            snapshot = self._snapshot(state)
            origin = state.origin
            destination = state.destination
            entrances = list(state.entrances)
            selection = select_unloading_places(state.loaded_venue, destination, state.unloading_place_id)
            place_entrances = unloading_place_entrances(state.loaded_venue)
            # A new cycle always starts from an empty route
            state.route = empty_feature_collection()
            state.unreachable = None
            if self._abort is not None:
                self._abort.set()
            abort = self._abort = threading.Event()

        plan = plan_queries(
            origin,
            destination,
            entrances,
            selection,
            self.collaborators.street_matcher,
            place_entrances=place_entrances,
            max_distance_m=self.max_distance_m,
        )

        if not plan.is_reachable:
            with self._lock:
                if self._snapshot(self._state) != snapshot:
                    return None
                self._state.unreachable = plan.unreachable
            logger.info("Destination %s unreachable: %s", destination.identity, plan.unreachable.value)
            return PlanningCycle(plan=plan)

        if not dispatch:
            return PlanningCycle(plan=plan)
        if not self.is_current(snapshot):
            return None
        reconcile = self.reconciler.run_plan(plan.queries, snapshot, self._commit_route, abort=abort)
        return PlanningCycle(plan=plan, reconcile=reconcile)

    def refresh(self) -> Optional[PlanningCycle]:
        """Resolve entrances and plan the route for the current destination."""
        if not self.resolve_entrances():
            return None
        return self.plan_route()


def default_collaborators(
    overpass: Optional[OverpassClient] = None,
    olmap: Optional[OlmapClient] = None,
) -> Collaborators:
    overpass = overpass or OverpassClient()
    olmap = olmap or OlmapClient()

    def fetch_venue(poi: PointOfInterest) -> NetworkState[Venue]:
        return to_venue_state(poi, olmap.fetch_venue_data(poi.id))

    return Collaborators(
        fetch_venue=fetch_venue,
        lookup_nodes=overpass.query_nodes_by_id,
        search_entrances=overpass.query_entrances,
        street_matcher=overpass.query_matching_street,
    )


def _plan_with_osrm(query: RouteQuery) -> Iterator[dict[str, Any]]:
    # Planning without dispatch never builds a client
    return OSRMClient().plan(query)


def create_session(viewport: Viewport = DEFAULT_VIEWPORT) -> PlanningSession:
    """Session wired to the configured Overpass, OLMap and OSRM services."""
    return PlanningSession(default_collaborators(), RouteReconciler(_plan_with_osrm), viewport=viewport)
