"""Title lookup by MyAnimeList id through the AniList GraphQL API."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..cache import LookasideCache
from .base import HttpProvider, UpstreamError, UpstreamNotFoundError
from .models import AniListMedia

LOGGER = logging.getLogger(__name__)

ANILIST_URL = "https://graphql.anilist.co"

MEDIA_BY_MAL_QUERY = """
query ($malId: Int) {
  Media(idMal: $malId, type: ANIME) {
    id
    idMal
    title { romaji english native }
  }
}
"""


class AniListClient(HttpProvider):
    """Resolve MyAnimeList ids to show titles.

    Used when the catalog has no title for a request: MAL and Kitsu ids, and
    IMDb ids Cinemeta does not know.
    """

    name = "AniList"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        cache: LookasideCache[str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            timeout=timeout,
            headers={"Accept": "application/json", "Content-Type": "application/json", **(headers or {})},
        )
        self.base_url = base_url or ANILIST_URL
        self.cache = cache or LookasideCache("anilist", max_entries=500, ttl_seconds=24 * 60 * 60)

    def title_for_mal(self, mal_id: int) -> str | None:
        """Return the English, romaji or native title for ``mal_id``, in that order.

        Raises:
            UpstreamError: If AniList could not be reached
        """
        try:
            return self.cache.get_or_load(("mal", mal_id), lambda: self._fetch_title(mal_id))
        except UpstreamNotFoundError:
            LOGGER.info("AniList has no entry for MAL id %s", mal_id)
            return None

    def _fetch_title(self, mal_id: int) -> str | None:
        response = self._request(
            "POST",
            self.base_url,
            json={"query": MEDIA_BY_MAL_QUERY, "variables": {"malId": int(mal_id)}},
        )
        payload = self._json(response, self.base_url)
        if not isinstance(payload, dict):
            raise UpstreamError(f"{self.name}: unexpected response shape")
        node = (payload.get("data") or {}).get("Media")
        if node is None:
            LOGGER.debug("AniList returned no media for MAL id %s: %s", mal_id, payload.get("errors"))
            return None
        try:
            media = AniListMedia.model_validate(node)
        except ValidationError as exc:
            raise UpstreamError(f"{self.name}: malformed media for MAL id {mal_id}") from exc
        return media.title.preferred
