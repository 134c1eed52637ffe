"""Anime id crosswalk backed by the arm (anime relations mapping) API."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..cache import LookasideCache
from ..models import CrosswalkIds
from ..utils import coerce_int
from .base import HttpProvider, UpstreamError
from .models import ArmMapping

LOGGER = logging.getLogger(__name__)

ARM_URL = "https://arm.haglund.dev/api/v2"
INCLUDE_SOURCES = "anilist,kitsu,myanimelist,anidb,imdb"
SOURCES = ("anilist", "anidb", "kitsu", "myanimelist", "imdb")


def pick_mapping(payload: Any, season: int) -> dict[str, Any] | None:
    """Choose the mapping entry for ``season`` from an arm response.

    IMDb ids of multi-season shows map to one entry per season; the entry at
    ``season - 1`` is used when present, otherwise the first one.
    """
    if isinstance(payload, list):
        if not payload:
            return None
        index = season - 1 if 0 < season <= len(payload) else 0
        entry = payload[index]
        return entry if isinstance(entry, dict) else None
    if isinstance(payload, dict):
        return payload
    return None


def mapping_to_ids(mapping: ArmMapping, imdb_id: str | None = None) -> CrosswalkIds:
    return CrosswalkIds(
        mal_id=coerce_int(mapping.myanimelist),
        anilist_id=coerce_int(mapping.anilist),
        kitsu_id=coerce_int(mapping.kitsu),
        anidb_id=coerce_int(mapping.anidb),
        imdb_id=mapping.imdb or imdb_id,
    )


class CrosswalkClient(HttpProvider):
    """Translate catalog ids (IMDb, MAL, Kitsu) into the other id spaces.

    Lookups never raise for upstream failures: they log a warning and return
    ids carrying only what the caller already knew.
    """

    name = "arm"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        cache: LookasideCache[CrosswalkIds] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers={"Accept": "application/json", **(headers or {})})
        self.base_url = (base_url or ARM_URL).rstrip("/")
        self.cache = cache or LookasideCache("crosswalk", max_entries=500, ttl_seconds=24 * 60 * 60)

    def ids_for_imdb(self, imdb_id: str, season: int = 1) -> CrosswalkIds:
        try:
            return self.cache.get_or_load(("imdb", imdb_id, season), lambda: self._imdb_lookup(imdb_id, season))
        except UpstreamError as exc:
            LOGGER.warning("Crosswalk lookup for %s S%s failed: %s", imdb_id, season, exc)
            return CrosswalkIds(imdb_id=imdb_id)

    def ids_for_source(self, source: str, source_id: int | str) -> CrosswalkIds:
        """Look up ids by a non-IMDb source such as ``myanimelist`` or ``kitsu``."""
        if source not in SOURCES:
            raise ValueError(f"Unknown crosswalk source {source!r}; expected one of {', '.join(SOURCES)}")
        known = known_ids(source, source_id)
        try:
            return self.cache.get_or_load((source, str(source_id)), lambda: self._source_lookup(source, source_id, known))
        except UpstreamError as exc:
            LOGGER.warning("Crosswalk lookup for %s:%s failed: %s", source, source_id, exc)
            return known

    def _imdb_lookup(self, imdb_id: str, season: int) -> CrosswalkIds:
        url = f"{self.base_url}/imdb"
        response = self._request("GET", url, params={"id": imdb_id, "include": INCLUDE_SOURCES})
        entry = pick_mapping(self._json(response, url), season)
        if entry is None:
            LOGGER.debug("No crosswalk entry for %s S%s", imdb_id, season)
            return CrosswalkIds(imdb_id=imdb_id)
        return self._parse(entry, url, imdb_id)

    def _source_lookup(self, source: str, source_id: int | str, known: CrosswalkIds) -> CrosswalkIds:
        url = f"{self.base_url}/ids"
        response = self._request("GET", url, params={"source": source, "id": str(source_id)})
        entry = pick_mapping(self._json(response, url), 1)
        if entry is None:
            return known
        ids = self._parse(entry, url, known.imdb_id)
        return CrosswalkIds(
            mal_id=ids.mal_id if ids.mal_id is not None else known.mal_id,
            anilist_id=ids.anilist_id if ids.anilist_id is not None else known.anilist_id,
            kitsu_id=ids.kitsu_id if ids.kitsu_id is not None else known.kitsu_id,
            anidb_id=ids.anidb_id if ids.anidb_id is not None else known.anidb_id,
            imdb_id=ids.imdb_id,
        )

    def _parse(self, entry: dict[str, Any], url: str, imdb_id: str | None) -> CrosswalkIds:
        try:
            mapping = ArmMapping.model_validate(entry)
        except ValidationError as exc:
            raise UpstreamError(f"{self.name}: malformed mapping from {url}") from exc
        return mapping_to_ids(mapping, imdb_id)


def known_ids(source: str, source_id: int | str) -> CrosswalkIds:
    """Ids that follow from the request id alone, without a lookup."""
    value = coerce_int(source_id)
    if source == "myanimelist":
        return CrosswalkIds(mal_id=value)
    if source == "anilist":
        return CrosswalkIds(anilist_id=value)
    if source == "kitsu":
        return CrosswalkIds(kitsu_id=value)
    if source == "anidb":
        return CrosswalkIds(anidb_id=value)
    return CrosswalkIds(imdb_id=str(source_id))
