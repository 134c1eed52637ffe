"""Title lookup for IMDb ids through the Cinemeta catalog."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..cache import LookasideCache
from .base import HttpProvider, UpstreamError, UpstreamNotFoundError
from .models import CinemetaResponse

LOGGER = logging.getLogger(__name__)

CINEMETA_URL = "https://v3-cinemeta.strem.io"


class CinemetaClient(HttpProvider):
    name = "Cinemeta"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        cache: LookasideCache[str] | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers={"Accept": "application/json"})
        self.base_url = (base_url or CINEMETA_URL).rstrip("/")
        self.cache = cache or LookasideCache("cinemeta", max_entries=500, ttl_seconds=24 * 60 * 60)

    def title_for(self, imdb_id: str, media_type: str = "series") -> str | None:
        """Return the catalog title for ``imdb_id`` or None when unknown.

        Raises:
            UpstreamError: If Cinemeta could not be reached
        """
        try:
            return self.cache.get_or_load((media_type, imdb_id), lambda: self._fetch_title(imdb_id, media_type))
        except UpstreamNotFoundError:
            LOGGER.info("Cinemeta has no %s entry for %s", media_type, imdb_id)
            return None

    def _fetch_title(self, imdb_id: str, media_type: str) -> str | None:
        url = f"{self.base_url}/meta/{media_type}/{imdb_id}.json"
        response = self._request("GET", url)
        try:
            payload = CinemetaResponse.model_validate(self._json(response, url))
        except ValidationError as exc:
            raise UpstreamError(f"{self.name}: malformed metadata from {url}") from exc
        if payload.meta is None or not payload.meta.name:
            return None
        return payload.meta.name
