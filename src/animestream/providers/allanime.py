"""AllAnime GraphQL client: show search, show details and episode sources."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from ..cache import LookasideCache
from ..models import ShowCandidate, StreamSource
from ..release_info import stream_quality
from .base import HttpProvider, UpstreamError, browser_headers
from .models import AllAnimeEpisode, AllAnimeShowDetails, AllAnimeShowEdge

LOGGER = logging.getLogger(__name__)

API_URL = "https://api.allanime.day/api"
SITE_URL = "https://allanime.to"

TRANSLATION_TYPES = ("sub", "dub")

SEARCH_QUERY = """
query ($search: SearchInput!, $limit: Int, $page: Int, $translationType: VaildTranslationTypeEnumType, $countryOrigin: VaildCountryOriginEnumType) {
  shows(search: $search, limit: $limit, page: $page, translationType: $translationType, countryOrigin: $countryOrigin) {
    edges { _id name englishName nativeName type score status episodeCount malId aniListId }
  }
}
"""

EPISODE_QUERY = """
query ($showId: String!, $translationType: VaildTranslationTypeEnumType!, $episodeString: String!) {
  episode(showId: $showId, translationType: $translationType, episodeString: $episodeString) {
    episodeString
    sourceUrls
  }
}
"""

SHOW_QUERY = """
query ($showId: String!) {
  show(_id: $showId) {
    _id name englishName nativeName type status episodeCount availableEpisodesDetail
  }
}
"""

XOR_KEY = 56

_HEX = re.compile(r"^[0-9a-fA-F]+$")
_DOUBLE_SLASH = re.compile(r"([^:]/)/+")
_DIRECT_STREAM = re.compile(r"\.(mp4|m3u8|mkv|webm)(\?|$)", re.IGNORECASE)
_FAST4SPEED = re.compile(r"fast4speed\.rsvp", re.IGNORECASE)
_BLOCKED_HOSTS = ("listeamed.net",)


def normalize_url(url: str) -> str:
    """Collapse repeated slashes after the scheme separator."""
    return _DOUBLE_SLASH.sub(r"\1", url)


def decode_source_url(value: str | None) -> str | None:
    """Decode an obfuscated source URL.

    Plain ``http`` URLs pass through. Obfuscated values are hex strings,
    optionally prefixed with ``--``, whose bytes are XORed with 56. Values
    decoding to internal ``/api`` paths yield None.
    """
    if not value:
        return None
    if value.startswith("http"):
        return normalize_url(value)

    payload = value[2:] if value.startswith("--") else value
    if not _HEX.match(payload) or len(payload) % 2:
        return value

    decoded = "".join(chr(int(payload[index : index + 2], 16) ^ XOR_KEY) for index in range(0, len(payload), 2))
    if decoded.startswith("/api"):
        return None
    return normalize_url(decoded)


def is_direct_stream(url: str) -> bool:
    return bool(_DIRECT_STREAM.search(url) or _FAST4SPEED.search(url))


class AllAnimeClient(HttpProvider):
    """Client for the AllAnime GraphQL API.

    Search results are cached in memory keyed by the lower-cased query and
    limit, since the resolver repeats the same queries across requests.
    """

    name = "AllAnime"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 15.0,
        search_cache: LookasideCache[list[ShowCandidate]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        merged = browser_headers(origin=SITE_URL)
        merged.update(headers or {})
        super().__init__(timeout=timeout, headers=merged)
        self.base_url = base_url or API_URL
        self.search_cache = search_cache or LookasideCache("allanime-search", max_entries=100, ttl_seconds=300)

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        response = self._request("POST", self.base_url, json={"query": query, "variables": variables})
        payload = self._json(response, self.base_url)
        if not isinstance(payload, dict):
            raise UpstreamError(f"{self.name}: unexpected response shape")
        if payload.get("errors") and not payload.get("data"):
            raise UpstreamError(f"{self.name}: GraphQL error: {payload['errors']}")
        return payload.get("data") or {}

    def search_shows(self, query: str, limit: int = 10) -> list[ShowCandidate]:
        """Search shows by free text, in upstream relevance order."""
        key = (query.lower(), limit)
        return self.search_cache.get_or_load(key, lambda: self._search(query, limit))

    def _search(self, query: str, limit: int) -> list[ShowCandidate]:
        LOGGER.debug("Searching AllAnime for %r (limit %d)", query, limit)
        data = self._graphql(
            SEARCH_QUERY,
            {
                "search": {"query": query, "allowAdult": False, "allowUnknown": False},
                "limit": limit,
                "page": 1,
                "translationType": "sub",
                "countryOrigin": "JP",
            },
        )
        edges = ((data.get("shows") or {}).get("edges")) or []
        candidates: list[ShowCandidate] = []
        for edge in edges:
            try:
                candidates.append(AllAnimeShowEdge.model_validate(edge).to_candidate())
            except ValidationError as exc:
                LOGGER.debug("Skipping malformed search edge %r: %s", edge, exc)
        return candidates

    def show_details(self, show_id: str) -> AllAnimeShowDetails | None:
        data = self._graphql(SHOW_QUERY, {"showId": show_id})
        show = data.get("show")
        if not show:
            return None
        try:
            return AllAnimeShowDetails.model_validate(show)
        except ValidationError as exc:
            raise UpstreamError(f"{self.name}: malformed show details for {show_id}") from exc

    def episode_sources(self, show_id: str, episode: int) -> list[StreamSource]:
        """Direct stream URLs for ``episode`` of ``show_id``, subbed then dubbed.

        A failing translation type is logged and skipped so the other one
        can still produce streams.
        """
        streams: list[StreamSource] = []
        for translation in TRANSLATION_TYPES:
            try:
                data = self._graphql(
                    EPISODE_QUERY,
                    {"showId": show_id, "translationType": translation, "episodeString": str(episode)},
                )
            except UpstreamError as exc:
                LOGGER.warning("Fetching %s sources for %s E%s failed: %s", translation, show_id, episode, exc)
                continue
            if not data.get("episode"):
                continue
            episode_data = AllAnimeEpisode.model_validate(data["episode"])
            streams.extend(self._direct_sources(show_id, translation, episode_data))
        LOGGER.debug("AllAnime %s E%s: %d direct streams", show_id, episode, len(streams))
        return streams

    def _direct_sources(self, show_id: str, translation: str, episode: AllAnimeEpisode) -> list[StreamSource]:
        sources: list[StreamSource] = []
        for source in episode.source_urls:
            url = decode_source_url(source.source_url)
            if not url or not url.startswith("http"):
                continue
            if any(host in url for host in _BLOCKED_HOSTS):
                continue
            if not is_direct_stream(url):
                continue
            headers: tuple[tuple[str, str], ...] = ()
            if _FAST4SPEED.search(url):
                headers = (("Referer", f"{SITE_URL}/"),)
            sources.append(
                StreamSource(
                    url=url,
                    quality=stream_quality(source.source_name, url),
                    provider=source.source_name or self.name,
                    translation=translation.upper(),
                    headers=headers,
                )
            )
        return sources
