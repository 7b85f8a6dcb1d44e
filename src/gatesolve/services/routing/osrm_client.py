"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterator, Sequence

import httpx

from ...config import settings
from ...models.domain import LatLng
from .models import RouteMode, RouteQuery

logger = logging.getLogger(__name__)


class OSRMRouteError(ValueError):
    """OSRM answered with a non-Ok code such as NoRoute."""


def _response_json(response: httpx.Response) -> dict[str, Any] | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def profile_for_mode(mode: RouteMode) -> str:
    match mode:
        case RouteMode.DELIVERY_CAR:
            return settings.osrm_profile_delivery_car
        case RouteMode.DELIVERY_WALKING:
            return settings.osrm_profile_delivery_walking
        case _:
            return settings.osrm_profile_default


def _line_feature(coordinates: list[list[float]], properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": coordinates},
        "properties": properties,
    }


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.http_backoff_seconds
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        """Get a thread-local HTTP client."""
        # Create a new client for each thread to avoid thread-safety issues
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
            transport=self.transport,
        )

    def route(self, coordinates: Sequence[LatLng], profile: str) -> dict:
        """Get route geometry between coordinates using OSRM route endpoint.

        Args:
            coordinates: Sequence of (lat, lon) tuples for the route waypoints
            profile: OSRM profile, e.g. "foot" or "driving"

        Returns:
            The OSRM response with GeoJSON geometry in ``routes[0]["geometry"]``
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM route endpoint expects coordinates as "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)

        params = {
            "overview": "full",
            "geometries": "geojson",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{profile}/{coordinate_str}"

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    # OSRM reports NoRoute and NoSegment as 4xx responses with a JSON code
                    data = _response_json(response) if response.status_code < 500 else None
                    if data is not None and data.get("code") not in (None, "Ok"):
                        error_msg = data.get("message", "Unknown OSRM route error")
                        raise OSRMRouteError(f"OSRM route request failed: {data['code']}: {error_msg}")
                    response.raise_for_status()
                    if data is None:
                        raise ValueError("OSRM route response is not a JSON object.")
                    if data.get("code") != "Ok":
                        raise ValueError("OSRM route response has no code.")

                    return data
                except OSRMRouteError:
                    raise
                except httpx.HTTPStatusError:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {self.max_retries} attempts: {e}")
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.NetworkError, OSError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def plan(self, query: RouteQuery) -> Iterator[dict[str, Any]]:
        """Yield the route for one query as GeoJSON line segments.

        The street route comes first, followed by straight connectors from the
        origin to where the route starts and from where it ends to the target,
        since OSRM snaps both ends to the nearest road.
        """
        target = query.target.lat_lng
        data = self.route([query.origin, target], profile_for_mode(query.mode))
        routes = data.get("routes") or []
        if not routes:
            return
        coordinates = routes[0]["geometry"]["coordinates"]
        properties = {"mode": query.mode.value, "target_id": query.target.id}
        yield _line_feature(
            coordinates,
            {**properties, "route": True, "distance_m": routes[0].get("distance"), "duration_s": routes[0].get("duration")},
        )
        if not coordinates:
            return
        origin_lon_lat = [query.origin[1], query.origin[0]]
        target_lon_lat = [target[1], target[0]]
        if coordinates[0] != origin_lon_lat:
            yield _line_feature([origin_lon_lat, coordinates[0]], {**properties, "imaginary": True})
        if coordinates[-1] != target_lon_lat:
            yield _line_feature([coordinates[-1], target_lon_lat], {**properties, "imaginary": True})


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a short route request.

    Public OSRM endpoints may not have a /health endpoint, so we test
    connectivity by routing between two nearby points.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        # Two points in central Helsinki
        test_coords = "24.9410,60.1699;24.9450,60.1710"
        url = f"{base}/route/v1/{settings.osrm_profile_default}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
