"""Request orchestration: catalog id in, direct streams and torrent releases out.

The service wires the upstream clients to the matching core:

1. parse the request id and look up crosswalk ids for it
2. find a title (caller-supplied, from Cinemeta, then AniList by MAL id)
3. resolve the upstream show with ``ShowIdentityResolver``
4. map the catalog episode to the upstream absolute episode
5. check the episode has been released, then fetch direct streams
   (skipped when the AllAnime provider is disabled)
6. search the torrent feeds concurrently and merge their releases

Upstream failures never abort a request; they are logged and reported in
``StreamResult.warnings``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional

from .cache import LookasideCache
from .config import Settings
from .logging_utils import render_fields_block, render_section_block
from .matcher import ShowIdentityResolver, to_absolute
from .matcher.show_resolver import related_alias_queries
from .models import CrosswalkIds, ShowResolution, StreamRequest, StreamResult, StreamSource, TorrentRelease
from .providers.allanime import AllAnimeClient
from .providers.anilist import AniListClient
from .providers.base import UpstreamError
from .providers.cinemeta import CinemetaClient
from .providers.crosswalk import CrosswalkClient, known_ids
from .providers.feeds import ANIDB_PROVIDER, FEEDS, TorrentFeedClient
from .reference_data import ReferenceData, default_reference_data, load_reference_data
from .release_info import dedupe_releases, sort_releases
from .stremio_ids import IMDB, KITSU, MAL, id_source, parse_stream_id
from .utils import coerce_int

LOGGER = logging.getLogger(__name__)

ANIDB_TASK = "anidb"

CROSSWALK_SOURCES = {IMDB: "imdb", MAL: "myanimelist", KITSU: "kitsu"}


class StreamService:
    """Answer stream requests for catalog ids.

    Clients default to ones built from ``settings``; tests pass fakes.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        reference: Optional[ReferenceData] = None,
        allanime: Optional[AllAnimeClient] = None,
        crosswalk: Optional[CrosswalkClient] = None,
        cinemeta: Optional[CinemetaClient] = None,
        anilist: Optional[AniListClient] = None,
        feeds: Optional[TorrentFeedClient] = None,
    ) -> None:
        self.settings = settings or Settings()
        if reference is None:
            path = self.settings.reference_data
            reference = load_reference_data(path) if path is not None else default_reference_data()
        self.reference = reference

        cache = self.settings.cache
        self.allanime = allanime or AllAnimeClient(
            base_url=self.settings.allanime.base_url,
            timeout=self.settings.allanime.timeout,
            headers=self.settings.allanime.headers,
            search_cache=LookasideCache("allanime-search", cache.search_max_entries, cache.search_ttl_seconds),
        )
        self.crosswalk = crosswalk or CrosswalkClient(
            base_url=self.settings.crosswalk.base_url,
            timeout=self.settings.crosswalk.timeout,
            headers=self.settings.crosswalk.headers,
            cache=LookasideCache("crosswalk", cache.crosswalk_max_entries, cache.crosswalk_ttl_seconds),
        )
        self.cinemeta = cinemeta or CinemetaClient(
            cache=LookasideCache("cinemeta", cache.crosswalk_max_entries, cache.crosswalk_ttl_seconds),
        )
        self.anilist = anilist or AniListClient(
            base_url=self.settings.anilist.base_url,
            timeout=self.settings.anilist.timeout,
            headers=self.settings.anilist.headers,
            cache=LookasideCache("anilist", cache.crosswalk_max_entries, cache.crosswalk_ttl_seconds),
        )
        self.feeds = feeds or TorrentFeedClient(
            max_queries=self.settings.torrents.max_queries,
            timeout=self.settings.torrents.timeout,
            cache=LookasideCache("torrent-feeds", cache.feed_max_entries, cache.feed_ttl_seconds),
        )
        self.resolver = ShowIdentityResolver(self.allanime.search_shows, self.reference, self.settings.matching)

    def close(self) -> None:
        for client in (self.allanime, self.crosswalk, self.cinemeta, self.anilist, self.feeds):
            client.close()

    def __enter__(self) -> "StreamService":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def lookup_ids(self, request: StreamRequest) -> CrosswalkIds:
        kind, value = id_source(request.base_id)
        if not self.settings.crosswalk.enabled:
            return known_ids(CROSSWALK_SOURCES[kind], value)
        if kind == IMDB:
            return self.crosswalk.ids_for_imdb(value, request.season)
        if kind == MAL:
            return self.crosswalk.ids_for_source("myanimelist", value)
        return self.crosswalk.ids_for_source("kitsu", value)

    def lookup_title(self, request: StreamRequest, ids: CrosswalkIds, warnings: List[str]) -> Optional[str]:
        """Find a title for ``request``: Cinemeta for IMDb ids, then AniList by MAL id."""
        kind, value = id_source(request.base_id)
        if kind == IMDB:
            try:
                title = self.cinemeta.title_for(value, request.media_type)
            except UpstreamError as exc:
                LOGGER.warning("Title lookup for %s failed: %s", value, exc)
                warnings.append(f"Title lookup failed: {exc}")
                title = None
            if title:
                return title

        mal_id = ids.mal_id if ids.mal_id is not None else (coerce_int(value) if kind == MAL else None)
        if mal_id is None or not self.settings.anilist.enabled:
            return None
        try:
            title = self.anilist.title_for_mal(mal_id)
        except UpstreamError as exc:
            LOGGER.warning("AniList lookup for MAL id %s failed: %s", mal_id, exc)
            warnings.append(f"AniList title lookup failed: {exc}")
            return None
        if title:
            LOGGER.debug("Title for %s from AniList: %s", request.base_id, title)
        return title

    def streams(self, request: StreamRequest | str, title: Optional[str] = None) -> StreamResult:
        """Resolve ``request`` and collect direct streams and torrent releases.

        Args:
            request: A ``StreamRequest`` or a raw id such as ``tt0388629:21:5``
            title: Catalog title; looked up from Cinemeta, then AniList, when omitted
        """
        if isinstance(request, str):
            request = parse_stream_id(request)
        warnings: List[str] = []

        ids = self.lookup_ids(request)
        title = title or self.lookup_title(request, ids, warnings)
        if not title and id_source(request.base_id)[0] in (MAL, KITSU):
            warnings.append(f"No title known for {request.base_id}; only pinned ids can resolve it")

        absolute = to_absolute(request.base_id, request.season, request.episode, self.reference)
        if not self.settings.allanime.enabled:
            warnings.append(f"{self.allanime.name} is disabled; no direct streams")
            result = StreamResult(
                request=request, resolution=ShowResolution.not_found(), absolute_episode=absolute, warnings=warnings
            )
            if self.settings.torrents.enabled and title:
                result.torrents = self.search_torrents(title, request.season, absolute, ids, warnings)
            self._log_summary(result, title)
            return result

        resolution = self.resolver.resolve(title or "", request.season, ids, series_id=request.base_id)
        result = StreamResult(request=request, resolution=resolution, absolute_episode=absolute, warnings=warnings)
        if not resolution.found:
            warnings.append(f"No upstream show found for {title or request.base_id} S{request.season}")
            self._log_summary(result, title)
            return result

        available = self._available_episodes(resolution, warnings)
        if available is not None and absolute > available:
            warnings.append(f"Episode {absolute} not available yet ({available} released)")
            self._log_summary(result, title)
            return result

        result.streams = self._direct_streams(resolution, absolute, warnings)
        if self.settings.torrents.enabled and title:
            result.torrents = self.search_torrents(title, request.season, absolute, ids, warnings)
        self._log_summary(result, title)
        return result

    def _available_episodes(self, resolution: ShowResolution, warnings: List[str]) -> Optional[int]:
        try:
            details = self.allanime.show_details(resolution.external_id)
        except UpstreamError as exc:
            LOGGER.warning("Could not read episode count for %s: %s", resolution.external_id, exc)
            warnings.append(f"Episode count unavailable: {exc}")
            return None
        return details.available_episodes if details is not None else None

    def _direct_streams(self, resolution: ShowResolution, absolute: int, warnings: List[str]) -> List[StreamSource]:
        try:
            return self.allanime.episode_sources(resolution.external_id, absolute)
        except UpstreamError as exc:
            LOGGER.warning("Fetching streams for %s E%s failed: %s", resolution.external_id, absolute, exc)
            warnings.append(f"{self.allanime.name} streams unavailable: {exc}")
            return []

    def search_torrents(
        self,
        title: str,
        season: int,
        episode: int,
        ids: Optional[CrosswalkIds] = None,
        warnings: Optional[List[str]] = None,
    ) -> List[TorrentRelease]:
        """Search every enabled feed at once and merge the results.

        AniDB-linked releases come first when merging, duplicates by info
        hash are dropped, and the merged list is ordered RAW first, then
        AniDB-linked, then by quality and seeders.
        """
        warnings = warnings if warnings is not None else []
        tasks: Dict[str, Callable[[], List[TorrentRelease]]] = {}
        if ids is not None and ids.anidb_id is not None:
            anidb_id = ids.anidb_id
            tasks[ANIDB_TASK] = lambda: self.feeds.search_anidb(anidb_id, season, episode)
        for name in self.settings.torrents.feeds:
            feed = FEEDS[name]
            tasks[name] = lambda feed=feed: self.feeds.search(feed, title, season, episode)

        results: Dict[str, List[TorrentRelease]] = {}
        with ThreadPoolExecutor(max_workers=max(len(tasks), 1)) as executor:
            future_map = {executor.submit(task): name for name, task in tasks.items()}
            for future in as_completed(future_map):
                name = future_map[future]
                try:
                    results[name] = future.result()
                except UpstreamError as exc:
                    LOGGER.warning("Torrent search on %s failed: %s", name, exc)
                    warnings.append(f"Torrent search on {name} failed")
                    results[name] = []

        ordered = [ANIDB_TASK, *self.settings.torrents.feeds]
        combined = dedupe_releases(release for name in ordered for release in results.get(name, []))
        if not combined:
            synonyms = related_alias_queries(title, self.reference.title_aliases)
            if synonyms:
                combined = self.feeds.search_synonyms(synonyms, season, episode)

        ranked = sort_releases(combined, preferred_provider=ANIDB_PROVIDER)
        return ranked[: self.settings.torrents.max_results]

    def _log_summary(self, result: StreamResult, title: Optional[str]) -> None:
        request = result.request
        fields = {
            "Request": f"{request.base_id} S{request.season}E{request.episode}",
            "Title": title or "(unknown)",
            "Show": result.resolution.external_id or "(not found)",
            "Tier": result.resolution.tier or "-",
            "Absolute episode": result.absolute_episode,
            "Streams": len(result.streams),
            "Torrents": len(result.torrents),
        }
        LOGGER.info(render_fields_block("Stream Request", fields))
        if result.warnings:
            LOGGER.debug(render_section_block("Stream Warnings", [("Warnings", result.warnings)]))
