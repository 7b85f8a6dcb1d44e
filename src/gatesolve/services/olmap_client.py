"""HTTP client for curated venue data from the OLMap API."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..config import settings
from ..models.domain import NetworkState

logger = logging.getLogger(__name__)


class OlmapClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.olmap_api_url
        if not self.base_url:
            raise ValueError("OLMap API URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.http_backoff_seconds
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0), transport=self.transport)

    def feature_url(self, osm_feature_id: int) -> str:
        return f"{self.base_url}/osm_features/{osm_feature_id}/"

    def _get_json(self, url: str) -> dict[str, Any]:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url)
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise ValueError("OLMap response is not an object.")
                    return data
                except httpx.HTTPStatusError as e:
                    # No OLMap record for this feature
                    if e.response.status_code == 404:
                        raise
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"OLMap API at {self.base_url} is not reachable: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OLMap network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def fetch_venue_data(self, osm_feature_id: int) -> NetworkState[dict[str, Any]]:
        """Fetch the raw venue response for a map feature.

        Never raises: failures are logged and reported as an error state.
        """
        try:
            return NetworkState.success(self._get_json(self.feature_url(osm_feature_id)))
        except (ConnectionError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Fetching OLMap data for feature {osm_feature_id} failed: {e}")
            return NetworkState.error(str(e))
