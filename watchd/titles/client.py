"""Client for the OMDb title lookup service."""

from __future__ import annotations

import logging
from typing import Any

import requests

from watchd.errors import DependencyFailure

from .models import Title

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.omdbapi.com/"
DEFAULT_TIMEOUT = 15


class OmdbClient:
    """Search and fetch titles from OMDb.

    Transport problems and a missing API key raise DependencyFailure so that
    callers can abort whatever write depended on the lookup.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Any) -> OmdbClient:
        return cls(
            config.get("OMDB_API_KEY"),
            base_url=config.get("OMDB_BASE_URL") or DEFAULT_BASE_URL,
            timeout=config.get("OMDB_TIMEOUT") or DEFAULT_TIMEOUT,
        )

    def _request(self, params: dict[str, str]) -> dict[str, Any]:
        if not self.api_key:
            raise DependencyFailure(
                "Title lookup is not configured. Set OMDB_API_KEY."
            )
        try:
            response = self.session.get(
                self.base_url,
                params={"apikey": self.api_key, **params},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("OMDb request failed: %s", e)
            raise DependencyFailure(
                "Unable to reach OMDb right now. Please try again later."
            ) from e

        if response.status_code != 200:
            logger.error("OMDb returned status %s", response.status_code)
            raise DependencyFailure(
                "Unable to reach OMDb right now. Please try again later."
            )
        try:
            return response.json()
        except ValueError as e:
            raise DependencyFailure("OMDb returned an unreadable response.") from e

    def search_titles(self, query: str, title_type: str | None = None) -> list[Title]:
        """Search by free text, optionally limited to movies or series."""
        params = {"s": query}
        if title_type in ("movie", "series"):
            params["type"] = title_type
        data = self._request(params)
        if data.get("Response") == "False":
            return []
        return [Title.from_omdb(item) for item in data.get("Search") or []]

    def fetch_title_by_id(self, imdb_id: str) -> Title | None:
        """Full record for an IMDb id, or None if OMDb does not know it."""
        data = self._request({"i": imdb_id, "plot": "short"})
        if data.get("Response") == "False":
            return None
        return Title.from_omdb(data, keep_raw=True)
