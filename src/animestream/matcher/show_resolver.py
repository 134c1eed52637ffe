"""Locate the upstream show record for a catalog title and season.

Resolution is a short-circuiting chain of strategies, most trusted first:

1. ``pinned``: an explicit ``(series_id, season) -> external_id`` entry.
2. ``alias``: curated search strings for the title (per-season aliases,
   plus the generic title aliases for a first season). With crosswalk ids a
   hit must carry one of them; without ids the first hit is taken.
3. ``search``: templated queries scored by title similarity. A crosswalk id
   match on any result wins outright (tier ``crosswalk_id``); otherwise the
   best fuzzy score must clear the threshold (tier ``fuzzy``).

Running out of strategies is a normal outcome and yields
``ShowResolution.not_found()``.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import MatchThresholds
from ..models import CrosswalkIds, MediaType, ShowCandidate, ShowResolution
from ..reference_data import ReferenceData, default_reference_data
from ..utils import ordinal_suffix
from .normalizer import compact_title, normalize_title
from .similarity import similarity

LOGGER = logging.getLogger(__name__)

SearchFn = Callable[[str, int], Sequence[ShowCandidate]]
Strategy = Callable[[str, int, CrosswalkIds, Optional[str]], Optional[ShowResolution]]


def related_alias_queries(title: str, table: Mapping[str, Tuple[str, ...]]) -> List[str]:
    """Return the search terms of every alias key related to ``title``.

    A key is related when either normalized form contains the other, so
    "Attack on Titan (TV)" picks up the "attack on titan" entry.
    """
    normalized = normalize_title(title)
    if not normalized:
        return []
    queries: List[str] = []
    for key, terms in table.items():
        normalized_key = normalize_title(key)
        if not normalized_key:
            continue
        if normalized_key in normalized or normalized in normalized_key:
            for term in terms:
                if term not in queries:
                    queries.append(term)
    return queries


def season_query_templates(title: str, season: int) -> List[str]:
    """Generic search strings for ``title`` in ``season``, bare title last."""
    if season <= 1:
        return [title]
    return [
        f"{title} Season {season}",
        f"{title} {season}{ordinal_suffix(season)} Season",
        f"{title} Part {season}",
        title,
    ]


def score_candidate(query: str, candidate: ShowCandidate, thresholds: MatchThresholds) -> float:
    """Score how well ``candidate`` answers ``query``.

    Exact compact-title equality scores ``exact_score``, containment either
    way scores ``containment_score``, anything else scores ``fuzzy_scale``
    times the best similarity against the title or the native title. TV and
    movie entries get a small bonus.
    """
    wanted = compact_title(query)
    title = compact_title(candidate.title)
    native = compact_title(candidate.native_title or "")

    if title and title == wanted:
        score = thresholds.exact_score
    elif title and wanted and (wanted in title or title in wanted):
        score = thresholds.containment_score
    else:
        score = max(similarity(wanted, title), similarity(wanted, native)) * thresholds.fuzzy_scale

    if candidate.media_type is MediaType.TV:
        score += thresholds.tv_bonus
    elif candidate.media_type is MediaType.MOVIE:
        score += thresholds.movie_bonus
    return score


class ShowIdentityResolver:
    """Resolve ``(title, season, crosswalk ids)`` to an upstream show id.

    Args:
        search: Upstream title search, called as ``search(query, limit)``
        reference: Pinned ids and alias tables; the bundled tables by default
        thresholds: Scoring constants
    """

    def __init__(
        self,
        search: SearchFn,
        reference: Optional[ReferenceData] = None,
        thresholds: Optional[MatchThresholds] = None,
    ) -> None:
        self._search = search
        self._reference = reference if reference is not None else default_reference_data()
        self._thresholds = thresholds or MatchThresholds()
        self._strategies: Sequence[Tuple[str, Strategy]] = (
            ("pinned", self._from_pinned),
            ("alias", self._from_aliases),
            ("search", self._from_search),
        )

    @property
    def thresholds(self) -> MatchThresholds:
        return self._thresholds

    def resolve(
        self,
        title: str,
        season: int = 1,
        crosswalk: Optional[CrosswalkIds] = None,
        series_id: Optional[str] = None,
    ) -> ShowResolution:
        ids = crosswalk or CrosswalkIds()
        if not title and not series_id:
            return ShowResolution.not_found()

        for name, strategy in self._strategies:
            resolution = strategy(title, season, ids, series_id)
            if resolution is not None and resolution.found:
                LOGGER.info(
                    "Resolved %r S%s via %s -> %s (%s)",
                    title,
                    season,
                    resolution.tier,
                    resolution.external_id,
                    resolution.title or "n/a",
                )
                return resolution
            LOGGER.debug("Strategy %s found nothing for %r S%s", name, title, season)

        LOGGER.info("No upstream show found for %r S%s", title, season)
        return ShowResolution.not_found()

    def _from_pinned(
        self, title: str, season: int, ids: CrosswalkIds, series_id: Optional[str]
    ) -> Optional[ShowResolution]:
        external_id = self._reference.pinned_id(series_id, season)
        if external_id is None:
            return None
        return ShowResolution(external_id=external_id, tier="pinned")

    def alias_queries(self, title: str, season: int) -> List[str]:
        queries = related_alias_queries(title, self._reference.season_queries(season))
        if season <= 1:
            for query in related_alias_queries(title, self._reference.title_aliases):
                if query not in queries:
                    queries.append(query)
        return queries

    def _from_aliases(
        self, title: str, season: int, ids: CrosswalkIds, series_id: Optional[str]
    ) -> Optional[ShowResolution]:
        if not title:
            return None
        for query in self.alias_queries(title, season):
            results = self._search(query, self._thresholds.alias_search_limit)
            if not results:
                continue
            if ids.has_verifiable_ids:
                verified = next((candidate for candidate in results if ids.matches(candidate)), None)
                if verified is None:
                    LOGGER.debug("Alias %r returned %d results but none carry the crosswalk ids", query, len(results))
                    continue
                return ShowResolution(verified.external_id, "alias", None, verified.title, query)
            first = results[0]
            return ShowResolution(first.external_id, "alias", None, first.title, query)
        return None

    def search_queries(self, title: str, season: int) -> List[str]:
        queries: List[str] = []
        for query in season_query_templates(title, season):
            if query not in queries:
                queries.append(query)
        if season > 1:
            for alias in related_alias_queries(title, self._reference.title_aliases):
                for query in season_query_templates(alias, season):
                    if query not in queries:
                        queries.append(query)
        return queries

    def _from_search(
        self, title: str, season: int, ids: CrosswalkIds, series_id: Optional[str]
    ) -> Optional[ShowResolution]:
        if not title:
            return None
        for query in self.search_queries(title, season):
            resolution = self.best_match(query, self._search(query, self._thresholds.search_limit), ids)
            if resolution is not None:
                return resolution
        return None

    def best_match(
        self,
        query: str,
        results: Iterable[ShowCandidate],
        ids: Optional[CrosswalkIds] = None,
    ) -> Optional[ShowResolution]:
        """Pick the accepted candidate among ``results`` for ``query``, if any.

        Candidates are scored in result order; ties keep the earlier result.
        """
        ids = ids or CrosswalkIds()
        candidates = list(results)
        if not candidates:
            return None

        if ids.has_verifiable_ids:
            for candidate in candidates:
                if ids.matches(candidate):
                    return ShowResolution(candidate.external_id, "crosswalk_id", None, candidate.title, query)
            LOGGER.debug(
                "No id match among %d results for %r (MAL:%s AL:%s)",
                len(candidates),
                query,
                ids.mal_id,
                ids.anilist_id,
            )

        best: Optional[ShowCandidate] = None
        best_score = 0.0
        for candidate in candidates:
            score = score_candidate(query, candidate, self._thresholds)
            LOGGER.debug("  %5.1f %s (%s)", score, candidate.title, candidate.external_id)
            if score > best_score:
                best, best_score = candidate, score

        threshold = self._thresholds.verified_threshold if ids.has_verifiable_ids else self._thresholds.default_threshold
        if best is not None and best_score >= threshold:
            return ShowResolution(best.external_id, "fuzzy", best_score, best.title, query)

        LOGGER.debug("No confident match for %r (best score %.1f, threshold %.1f)", query, best_score, threshold)
        return None
