import pytest

from src.gatesolve.models.domain import ElementType, NetworkState, PointOfInterest
from src.gatesolve.schemas.routing import PlanRequest, ViewportRequest
from src.gatesolve.services.routing import service as routing_service
from src.gatesolve.services.routing.reconciler import RouteReconciler
from src.gatesolve.services.session import Collaborators, PlanningSession


def _entrance(pid: int, lat: float = 60.1705, lon: float = 24.9415) -> PointOfInterest:
    return PointOfInterest(id=pid, type=ElementType.NODE, lat=lat, lon=lon, tags={"entrance": "yes"})


def _install_session(monkeypatch, entrances, planner=None):
    def create_session(viewport):
        collaborators = Collaborators(
            fetch_venue=lambda poi: NetworkState.error("no venue"),
            lookup_nodes=lambda ids: [],
            search_entrances=lambda poi: list(entrances),
            street_matcher=lambda target, street: [],
        )
        return PlanningSession(
            collaborators,
            RouteReconciler(planner or (lambda query: iter(())), max_workers=2),
            viewport=viewport,
            max_distance_m=200,
        )

    monkeypatch.setattr(routing_service, "create_session", create_session)


def _request(**overrides) -> PlanRequest:
    body = {
        "origin": {"lat": 60.170, "lon": 24.940},
        "destination": {"id": 900, "type": "way", "lat": 60.1705, "lon": 24.9415},
        "query_string": "?utm_source=sticker",
    }
    body.update(overrides)
    return PlanRequest(**body)


def test_plan_destination_lists_queries_per_entrance(monkeypatch):
    _install_session(monkeypatch, [_entrance(1), _entrance(2, lat=60.1706)])

    response = routing_service.plan_destination(_request())

    assert [query.target.id for query in response.queries] == [1, 2]
    assert {query.mode for query in response.queries} == {"default"}
    assert response.unreachable is None
    assert response.share_path == "/route/60.17,24.94/60.1705,24.9415/?utm_source=sticker"


def test_plan_destination_reports_too_far_with_recovery(monkeypatch):
    _install_session(monkeypatch, [])

    response = routing_service.plan_destination(_request(origin={"lat": 60.10, "lon": 24.90}))

    assert response.queries == []
    assert response.unreachable == "too-far"
    assert response.recovery_actions == ["undo-origin", "undo-destination", "external-map"]
    assert response.external_map_url.startswith("https://www.google.com/maps/dir/")
    # Fallback entrance is the destination itself
    assert [entrance.id for entrance in response.entrances] == [900]


def test_route_destination_collects_segments(monkeypatch):
    def planner(query):
        yield {"type": "Feature", "geometry": None, "properties": {"target_id": query.target.id}}

    _install_session(monkeypatch, [_entrance(1)], planner)

    response = routing_service.route_destination(_request())

    assert response.completed_queries == 1
    assert response.failed_queries == 0
    assert response.route["features"][0]["properties"]["target_id"] == 1


def test_unknown_entrance_is_rejected(monkeypatch):
    _install_session(monkeypatch, [_entrance(1)])

    with pytest.raises(ValueError):
        routing_service.plan_destination(_request(entrance_id=5))


def test_fit_viewport_ignores_missing_points():
    payload = ViewportRequest(
        viewport={"latitude": 60.17, "longitude": 24.94, "zoom": 12, "width": 800, "height": 600},
        points=[{"lat": 60.2, "lon": 25.0}, None],
    )

    result = routing_service.fit_viewport(payload)

    assert result.zoom == 17
    assert result.longitude == pytest.approx(25.0)


def test_open_shared_route_with_undefined_origin():
    response = routing_service.open_shared_route("undefined", "60.2,25.0", 800, 600)

    assert response.origin is None
    assert response.destination.lat == 60.2
    assert response.viewport.width == 800
