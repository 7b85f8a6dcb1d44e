"""HTTP client for the Overpass API (building entrances, nodes and streets)."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ..config import settings
from ..models.domain import ElementType, LatLng, PointOfInterest

logger = logging.getLogger(__name__)

# Failures a collaborator call may end with once its retries are exhausted
NETWORK_ERRORS = (ConnectionError, OSError, ValueError, httpx.HTTPError)


def build_entrance_query(lat: float, lon: float, radius_m: int) -> str:
    """Entrances of buildings (and building parts) within ``radius_m`` of a point."""
    return f"""
  [out:json][timeout:25];
  (
    relation(around:{radius_m}, {lat}, {lon})[building];
    way(r);
    way(around:{radius_m}, {lat}, {lon})[building];
  )->.b;
  (
    relation(around.b:{radius_m})["building:part"];
    way(r);
    way(around.b:{radius_m})["building:part"];
  )->.p;
  (
    node(w.b)[entrance];
    node(w.p)[entrance];
  );
  out body;
  >;
  out skel qt;
"""


def escape_overpass_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def build_matching_street_query(lat: float, lon: float, street: str, radius_m: int) -> str:
    return f"""
  [out:json][timeout:25];
  (
    way(around:{radius_m}, {lat}, {lon})["highway"][name="{escape_overpass_string(street)}"];
  );
  out ids geom qt;"""


def build_nodes_by_id_query(ids: Sequence[int]) -> str:
    return f"""
  [out:json][timeout:25];
  node(id:{",".join(str(node_id) for node_id in ids)});
  out;
"""


def element_to_poi(element: dict[str, Any]) -> PointOfInterest | None:
    """Convert an Overpass element with coordinates; elements without them yield None."""
    lat = element.get("lat")
    lon = element.get("lon")
    if lat is None or lon is None:
        return None
    try:
        element_type = ElementType(element.get("type", "node"))
    except ValueError:
        return None
    tags = {str(key): str(value) for key, value in (element.get("tags") or {}).items()}
    return PointOfInterest(id=int(element["id"]), type=element_type, lat=float(lat), lon=float(lon), tags=tags)


class OverpassClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.overpass_interpreter_url
        if not self.base_url:
            raise ValueError("Overpass interpreter URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.http_backoff_seconds
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call; lookups run from worker threads
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0), transport=self.transport)

    def _interpret(self, query: str) -> list[dict[str, Any]]:
        """Run an Overpass QL query and return its elements."""
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(self.base_url, params={"data": query})
                    response.raise_for_status()
                    data = response.json()
                    elements = data.get("elements")
                    if not isinstance(elements, list):
                        raise ValueError("Overpass response missing elements.")
                    return elements
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Overpass API at {self.base_url} is not reachable: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Overpass network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def query_entrances(self, target: PointOfInterest) -> list[PointOfInterest]:
        """Entrance nodes of the building(s) at ``target``; may be empty."""
        elements = self._interpret(build_entrance_query(target.lat, target.lon, settings.entrance_search_radius_m))
        entrances = []
        for element in elements:
            if element.get("type") != ElementType.NODE.value:
                continue
            if not (element.get("tags") or {}).get("entrance"):
                continue
            poi = element_to_poi(element)
            if poi is not None:
                entrances.append(poi)
        return entrances

    def query_nodes_by_id(self, ids: Sequence[int]) -> list[PointOfInterest]:
        """Resolve node ids to points; unknown ids are omitted."""
        if not ids:
            return []
        elements = self._interpret(build_nodes_by_id_query(ids))
        return [poi for poi in (element_to_poi(element) for element in elements) if poi is not None]

    def query_matching_street(self, target: PointOfInterest, street: str) -> list[list[LatLng]]:
        """Geometry of highways named ``street`` near ``target`` as (lat, lon) polylines."""
        elements = self._interpret(
            build_matching_street_query(target.lat, target.lon, street, settings.street_match_radius_m)
        )
        return [
            [(float(node["lat"]), float(node["lon"])) for node in element.get("geometry") or []]
            for element in elements
        ]
