"""
HTTP clients for the catalog search and video lookup services.
"""

import logging
from typing import Any, Optional

import httpx

from plyr_assistant.config import CatalogConfig, VideoLookupConfig
from plyr_assistant.services.base import (
    CatalogSearchService,
    CatalogTrack,
    ServiceError,
    VideoLookupService,
)

logger = logging.getLogger(__name__)


class _HttpService:
    """Shared httpx client handling."""

    def __init__(self, base_url: str, timeout: float, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _get_json(self, path: str, params: dict[str, Any], headers: Optional[dict] = None) -> Optional[dict]:
        try:
            response = self._client.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ServiceError(f"Request to {path} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ServiceError(f"HTTP {response.status_code} from {path}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(f"Invalid JSON from {path}") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class HttpCatalogSearch(_HttpService, CatalogSearchService):
    """
    Catalog search against a Spotify-style Web API.

    Usage:
        catalog = HttpCatalogSearch(CatalogConfig(access_token="..."))
        track = catalog.search_best_match("bohemian rhapsody")
    """

    def __init__(self, config: Optional[CatalogConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or CatalogConfig()
        super().__init__(self.config.base_url, self.config.timeout, client)

    def search_best_match(self, query: str) -> Optional[CatalogTrack]:
        if not query.strip():
            return None
        if not self.config.access_token:
            logger.debug("No catalog access token configured, skipping catalog search")
            return None

        data = self._get_json(
            "/search",
            params={"q": query, "type": "track", "limit": 1},
            headers={"Authorization": f"Bearer {self.config.access_token}"},
        )
        if not data:
            return None

        items = (data.get("tracks") or {}).get("items") or []
        if not items:
            return None

        item = items[0]
        artists = tuple(a.get("name", "") for a in item.get("artists", []) if a.get("name"))
        return CatalogTrack(id=str(item.get("id", "")), name=str(item.get("name", "")), artists=artists)


class HttpVideoLookup(_HttpService, VideoLookupService):
    """Video lookup against a YouTube Data-style search API."""

    def __init__(self, config: Optional[VideoLookupConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or VideoLookupConfig()
        super().__init__(self.config.base_url, self.config.timeout, client)

    def find_playable_id(self, query: str) -> Optional[str]:
        if not query.strip():
            return None

        params: dict[str, Any] = {
            "part": "snippet",
            "type": "video",
            "maxResults": 1,
            "q": query,
        }
        if self.config.api_key:
            params["key"] = self.config.api_key

        data = self._get_json("/search", params=params)
        if not data:
            return None

        for item in data.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if video_id:
                return str(video_id)
        return None
