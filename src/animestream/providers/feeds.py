"""Torrent release search over the Nyaa and AnimeTosho feeds."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import feedparser
from pydantic import ValidationError

from ..cache import LookasideCache
from ..matcher.filename_parser import filter_releases
from ..models import TorrentRelease
from ..release_info import dedupe_releases, format_size, info_hash_from_magnet, make_release, quality_rank
from ..utils import coerce_int
from .base import HttpProvider, UpstreamError, browser_headers
from .models import ToshoJsonItem

LOGGER = logging.getLogger(__name__)

ANIDB_PROVIDER = "AnimeTosho-AniDB"
TOSHO_JSON_URL = "https://feed.animetosho.org/json"

_QUERY_PUNCTUATION = re.compile(r"[:'!?\"“”‘’]")
_SHORT_NAME_SPLIT = re.compile(r"[:-]")
_LEADING_ARTICLE = re.compile(r"^The\s+", re.IGNORECASE)
_LINK_HASH = re.compile(r"/([a-f0-9]{40})", re.IGNORECASE)

MIN_SYNONYM_LENGTH = 3
MAX_SYNONYMS = 3


def clean_query_name(title: str) -> str:
    """Drop punctuation that breaks feed search and collapse whitespace."""
    return " ".join(_QUERY_PUNCTUATION.sub("", title).split())


def short_query_name(title: str) -> str:
    """First segment of a subtitled title without a leading article.

    ``"Frieren: Beyond Journey's End"`` becomes ``"Frieren"``.
    """
    head = clean_query_name(_SHORT_NAME_SPLIT.split(title)[0])
    return _LEADING_ARTICLE.sub("", head).strip()


def _unique(queries: Sequence[str]) -> List[str]:
    result: List[str] = []
    for query in queries:
        query = query.strip()
        if query and query not in result:
            result.append(query)
    return result


def nyaa_queries(title: str, season: int, episode: int) -> List[str]:
    clean = clean_query_name(title)
    short = short_query_name(title) or clean
    ss, ee = f"{season:02d}", f"{episode:02d}"
    if season > 1:
        queries = [f"{short} S{ss}E{ee}", f"{short} Season {season} {ee}", f"{clean} S{ss}E{ee}"]
    else:
        queries = [f"{short} {ee}", f"{clean} {ee}", f"{short} S01E{ee}"]
    return _unique(queries)


def animetosho_queries(title: str, season: int, episode: int) -> List[str]:
    ss, ee = f"{season:02d}", f"{episode:02d}"
    if season > 1:
        queries = [f"{title} S{ss}E{ee}", f"{title} Season {season} {ee}"]
    else:
        queries = [f"{title} {ee}", f"{title} S{ss}E{ee}"]
    return _unique(queries)


def _entry_published(entry: Any) -> Optional[str]:
    parsed = entry.get("published_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
    return entry.get("published")


def parse_nyaa_entry(entry: Any, provider: str) -> Optional[TorrentRelease]:
    title = entry.get("title")
    if not title:
        return None
    link = entry.get("link") or ""
    magnet: Optional[str] = None
    info_hash = entry.get("nyaa_infohash")
    if "magnet:" in link:
        magnet = link
        info_hash = info_hash_from_magnet(link)
    if not info_hash:
        return None
    return make_release(
        title,
        info_hash,
        provider,
        magnet=magnet,
        seeders=coerce_int(entry.get("nyaa_seeders")) or 0,
        size=entry.get("nyaa_size"),
        published=_entry_published(entry),
    )


def parse_animetosho_entry(entry: Any, provider: str) -> Optional[TorrentRelease]:
    title = entry.get("title")
    if not title:
        return None
    hrefs = [entry.get("link") or ""]
    hrefs.extend(link.get("href", "") for link in entry.get("links", []))
    for href in hrefs:
        info_hash = info_hash_from_magnet(href)
        if info_hash is None:
            match = _LINK_HASH.search(href)
            info_hash = match.group(1) if match else None
        if info_hash:
            return make_release(title, info_hash, provider, published=_entry_published(entry))
    return None


@dataclass(frozen=True)
class FeedDefinition:
    """How to query one RSS feed and read its entries."""

    name: str
    label: str
    url: str
    build_params: Callable[[str], Dict[str, str]]
    build_queries: Callable[[str, int, int], List[str]]
    parse_entry: Callable[[Any, str], Optional[TorrentRelease]]


NYAA = FeedDefinition(
    name="nyaa",
    label="Nyaa",
    url="https://nyaa.si/",
    # Category 1_0 covers all anime (subbed and raw); f=0 disables the uploader filter.
    build_params=lambda query: {"page": "rss", "q": query, "c": "1_0", "f": "0"},
    build_queries=nyaa_queries,
    parse_entry=parse_nyaa_entry,
)

ANIMETOSHO = FeedDefinition(
    name="animetosho",
    label="AnimeTosho",
    url="https://feed.animetosho.org/rss2",
    build_params=lambda query: {"q": query, "filter[0][t]": "nyaa_class", "filter[0][v]": "trusted"},
    build_queries=animetosho_queries,
    parse_entry=parse_animetosho_entry,
)

FEEDS: Dict[str, FeedDefinition] = {feed.name: feed for feed in (NYAA, ANIMETOSHO)}


class TorrentFeedClient(HttpProvider):
    """Search anime torrent feeds for releases of one episode.

    Every search returns releases sorted by quality then seeders, with
    releases whose title names a different episode already removed.
    """

    name = "feeds"

    def __init__(
        self,
        max_queries: int = 2,
        timeout: float = 8.0,
        cache: LookasideCache[List[TorrentRelease]] | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=browser_headers())
        self.max_queries = max_queries
        self.cache = cache or LookasideCache("torrent-feeds", max_entries=200, ttl_seconds=10 * 60)

    def search(self, feed: FeedDefinition | str, title: str, season: int, episode: int) -> List[TorrentRelease]:
        """Search ``feed`` for ``title`` and keep releases of ``episode``.

        Queries run in order and stop at the first one that returns entries.

        Raises:
            UpstreamError: If every query failed
        """
        definition = FEEDS[feed] if isinstance(feed, str) else feed
        key = (definition.name, title.lower(), season, episode)
        return self.cache.get_or_load(key, lambda: self._search(definition, title, season, episode))

    def _search(self, feed: FeedDefinition, title: str, season: int, episode: int) -> List[TorrentRelease]:
        queries = feed.build_queries(title, season, episode)[: self.max_queries]
        releases: List[TorrentRelease] = []
        failures: List[UpstreamError] = []
        for query in queries:
            try:
                entries = self._fetch_entries(feed, query)
            except UpstreamError as exc:
                LOGGER.warning("%s query %r failed: %s", feed.label, query, exc)
                failures.append(exc)
                continue
            releases = dedupe_releases(
                release for release in (feed.parse_entry(entry, feed.label) for entry in entries) if release is not None
            )
            if releases:
                break
        if not releases and failures and len(failures) == len(queries):
            raise UpstreamError(f"{feed.label}: every query failed for {title!r}") from failures[-1]
        return self._finish(feed.label, releases, season, episode)

    def _fetch_entries(self, feed: FeedDefinition, query: str) -> List[Any]:
        LOGGER.debug("Searching %s for %r", feed.label, query)
        response = self._request("GET", feed.url, params=feed.build_params(query))
        parsed = feedparser.parse(response.text)
        if parsed.bozo and not parsed.entries:
            raise UpstreamError(f"{feed.label}: malformed feed: {parsed.get('bozo_exception')}")
        return list(parsed.entries)

    def search_anidb(self, anidb_id: int, season: int, episode: int) -> List[TorrentRelease]:
        """Releases AnimeTosho linked to ``anidb_id``, filtered to ``episode``."""
        key = ("anidb", anidb_id, season, episode)
        return self.cache.get_or_load(key, lambda: self._search_anidb(anidb_id, season, episode))

    def _search_anidb(self, anidb_id: int, season: int, episode: int) -> List[TorrentRelease]:
        response = self._request("GET", TOSHO_JSON_URL, params={"aid": str(anidb_id)})
        payload = self._json(response, TOSHO_JSON_URL)
        if not isinstance(payload, list):
            raise UpstreamError(f"{ANIDB_PROVIDER}: expected a list for aid={anidb_id}")

        releases: List[TorrentRelease] = []
        for raw in payload:
            try:
                item = ToshoJsonItem.model_validate(raw)
            except ValidationError as exc:
                LOGGER.debug("Skipping malformed AnimeTosho item: %s", exc)
                continue
            if not item.title or not item.info_hash:
                continue
            published = None
            if item.timestamp:
                published = datetime.fromtimestamp(item.timestamp, tz=timezone.utc).isoformat()
            releases.append(
                make_release(
                    item.title,
                    item.info_hash,
                    ANIDB_PROVIDER,
                    magnet=item.magnet_uri,
                    seeders=item.seeders or 0,
                    size=format_size(item.total_size) if item.total_size else None,
                    published=published,
                )
            )
        LOGGER.debug("%s returned %d items for aid=%s", ANIDB_PROVIDER, len(releases), anidb_id)
        return self._finish(ANIDB_PROVIDER, dedupe_releases(releases), season, episode)

    def search_synonyms(self, synonyms: Sequence[str], season: int, episode: int) -> List[TorrentRelease]:
        """Try alternate titles on Nyaa in order until one yields releases."""
        for synonym in [name for name in synonyms if name and len(name) >= MIN_SYNONYM_LENGTH][:MAX_SYNONYMS]:
            try:
                releases = self.search(NYAA, synonym, season, episode)
            except UpstreamError as exc:
                LOGGER.warning("Synonym search for %r failed: %s", synonym, exc)
                continue
            if releases:
                LOGGER.info("Found %d releases using synonym %r", len(releases), synonym)
                return releases
        return []

    def _finish(self, label: str, releases: List[TorrentRelease], season: int, episode: int) -> List[TorrentRelease]:
        ordered = sorted(releases, key=quality_rank)
        validated = filter_releases(ordered, episode, season)
        LOGGER.info("%s: %d/%d releases match S%sE%s", label, len(validated), len(ordered), season, episode)
        return validated
