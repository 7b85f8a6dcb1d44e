import pytest
from fastapi.testclient import TestClient

from src.gatesolve.main import create_app
from src.gatesolve.models.domain import ElementType, NetworkState, PointOfInterest
from src.gatesolve.services.routing.reconciler import RouteReconciler
from src.gatesolve.services.session import Collaborators, PlanningSession


class DummyPlanner:
    def __call__(self, query):
        origin = [query.origin[1], query.origin[0]]
        target = [query.target.lon, query.target.lat]
        yield {
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": [origin, target]},
            "properties": {"mode": query.mode.value, "target_id": query.target.id, "route": True},
        }


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from src.gatesolve.services.routing import service as routing_service

    def create_session(viewport):
        collaborators = Collaborators(
            fetch_venue=lambda poi: NetworkState.error("no venue"),
            lookup_nodes=lambda ids: [],
            search_entrances=lambda poi: [
                PointOfInterest(id=11, type=ElementType.NODE, lat=60.1705, lon=24.9415, tags={"entrance": "main"})
            ],
            street_matcher=lambda target, street: [],
        )
        return PlanningSession(collaborators, RouteReconciler(DummyPlanner(), max_workers=2), viewport=viewport)

    monkeypatch.setattr(routing_service, "create_session", create_session)
    return TestClient(create_app())


def test_health_endpoint(api_client: TestClient):
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_route_endpoint(api_client: TestClient):
    body = {
        "origin": {"lat": 60.170, "lon": 24.940},
        "destination": {"id": 900, "type": "way", "lat": 60.1705, "lon": 24.9415},
    }

    response = api_client.post("/api/routes/route", json=body)

    assert response.status_code == 200
    payload = response.json()
    assert [query["target"]["id"] for query in payload["queries"]] == [11]
    assert payload["completed_queries"] == 1
    assert payload["route"]["features"][0]["properties"]["target_id"] == 11


def test_plan_endpoint_rejects_unknown_entrance(api_client: TestClient):
    body = {
        "destination": {"id": 900, "type": "way", "lat": 60.1705, "lon": 24.9415},
        "entrance_id": 42,
    }

    response = api_client.post("/api/routes/plan", json=body)

    assert response.status_code == 400


def test_plan_endpoint_validates_coordinates(api_client: TestClient):
    response = api_client.post("/api/routes/plan", json={"destination": {"lat": 123, "lon": 24.9}})

    assert response.status_code == 422


def test_external_link_endpoint(api_client: TestClient):
    response = api_client.get("/api/routes/external-link", params={"origin": "60.1,24.9", "destination": "60.2,25.0"})

    assert response.status_code == 200
    assert "travelmode=driving" in response.json()["url"]


def test_external_link_rejects_bad_coordinates(api_client: TestClient):
    response = api_client.get("/api/routes/external-link", params={"origin": "here", "destination": "60.2,25.0"})

    assert response.status_code == 400


def test_shared_route_endpoint(api_client: TestClient):
    response = api_client.get("/api/routes/shared/60.1,24.9/60.2,25.0", params={"width": 640, "height": 480})

    assert response.status_code == 200
    payload = response.json()
    assert payload["origin"] == {"lat": 60.1, "lon": 24.9}
    assert payload["viewport"]["width"] == 640
