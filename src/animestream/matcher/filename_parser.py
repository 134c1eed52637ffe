"""Episode extraction from release titles and filenames.

Release names are unstructured, so extraction is an ordered cascade of
rules evaluated with early return. Batch rules run first: a multi-episode
archive must never be read as a single episode. Single-episode rules follow
from the most structurally explicit (``S01E05``) to the least (a bare number
between separators), with numeric bounds on the loose rules so resolution
tags and years are not taken for episode numbers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..models import EpisodeValidation, ParsedFilenameInfo, TorrentRelease

LOGGER = logging.getLogger(__name__)

MAX_BATCH_SPAN = 100
MAX_BRACKETED_EPISODE = 1000
MAX_SEPARATED_EPISODE = 500

_WHITESPACE = re.compile(r"\s+")

Extractor = Callable[[re.Match[str]], Optional[ParsedFilenameInfo]]


@dataclass(frozen=True)
class CascadeRule:
    """A named pattern plus the extractor that turns a match into a result.

    An extractor may return None to reject a match (bounds check failed);
    later matches of the same rule are tried before the cascade moves on.
    """

    name: str
    regex: re.Pattern[str]
    extract: Extractor


def _batch_with_range(match: re.Match[str]) -> ParsedFilenameInfo:
    start = int(match.group(1))
    end = int(match.group(2))
    batch_range = (start, end) if start < end and end - start < MAX_BATCH_SPAN else None
    return ParsedFilenameInfo(is_batch=True, batch_range=batch_range)


def _batch_without_range(_match: re.Match[str]) -> ParsedFilenameInfo:
    return ParsedFilenameInfo(is_batch=True)


def _season_episode(match: re.Match[str]) -> ParsedFilenameInfo:
    return ParsedFilenameInfo(season=int(match.group(1)), episode=int(match.group(2)))


def _episode_only(match: re.Match[str]) -> ParsedFilenameInfo:
    return ParsedFilenameInfo(episode=int(match.group(1)))


def _bounded_episode(upper: int) -> Extractor:
    def extract(match: re.Match[str]) -> Optional[ParsedFilenameInfo]:
        value = int(match.group(1))
        if 0 < value < upper:
            return ParsedFilenameInfo(episode=value)
        return None

    return extract


def _japanese_episode(match: re.Match[str]) -> ParsedFilenameInfo:
    value = match.group(1) or match.group(2)
    return ParsedFilenameInfo(episode=int(value))


BATCH_RULES: Sequence[CascadeRule] = (
    # [01-12], (01~12); brackets are required so "S2 - 05" or "86 - 03" never match
    CascadeRule(
        "bracketed_range",
        re.compile(r"[\[(](\d{1,3})\s*[-~]\s*(\d{1,3})[\])]"),
        _batch_with_range,
    ),
    CascadeRule(
        "range_with_keyword",
        re.compile(r"\b(\d{1,3})\s*[-~]\s*(\d{1,3})\s*(?:END|Complete|Batch|Fin)\b", re.IGNORECASE),
        _batch_with_range,
    ),
    CascadeRule(
        "batch_keyword",
        re.compile(r"\b(?:Complete|Batch|Season\s*Pack)\b|全(?:话|話|集)", re.IGNORECASE),
        _batch_without_range,
    ),
    CascadeRule(
        "volume_or_box",
        re.compile(r"\b(?:Vol(?:ume)?\.?\s*\d+\s*[-~]\s*\d+|BD\s*Box)\b", re.IGNORECASE),
        _batch_without_range,
    ),
)

EPISODE_RULES: Sequence[CascadeRule] = (
    CascadeRule(
        "season_episode",
        re.compile(r"\bS0?(\d{1,2})\s*E0?(\d{1,4})(?:v\d+)?(?!\d)", re.IGNORECASE),
        _season_episode,
    ),
    # "[SubsPlease] Frieren - 05 (1080p).mkv", "Show - 05v2.mkv"
    CascadeRule(
        "dash_episode",
        re.compile(r"\s-\s0?(\d{1,4})(?:v\d+)?(?:\s|\(|\[|\.(?!\d)|$)"),
        _episode_only,
    ),
    CascadeRule(
        "worded_episode",
        re.compile(r"\bE(?:p(?:isode)?)?\.?\s*0?(\d{1,4})(?:v\d+)?(?!\d)", re.IGNORECASE),
        _episode_only,
    ),
    CascadeRule(
        "bracketed_number",
        re.compile(r"[\[(]0?(\d{1,3})(?:v\d+)?[\])]"),
        _bounded_episode(MAX_BRACKETED_EPISODE),
    ),
    CascadeRule(
        "separated_number",
        re.compile(r"[._]0?(\d{1,3})(?:v\d+)?(?=[._])"),
        _bounded_episode(MAX_SEPARATED_EPISODE),
    ),
    CascadeRule(
        "japanese_marker",
        re.compile(r"(?:#|第)\s*0?(\d{1,4})(?:話|回|v\d+)?|(\d{1,4})\s*(?:話|回)"),
        _japanese_episode,
    ),
)

CASCADE: Sequence[CascadeRule] = (*BATCH_RULES, *EPISODE_RULES)


def _first_accepted(rule: CascadeRule, text: str) -> Optional[ParsedFilenameInfo]:
    for match in rule.regex.finditer(text):
        info = rule.extract(match)
        if info is not None:
            return info
    return None


def parse_filename(filename: str, trace: Optional[dict[str, Any]] = None) -> ParsedFilenameInfo:
    """Extract episode/season/batch information from a release name.

    Never raises: an unrecognized name yields an all-empty result.

    Args:
        filename: Torrent title or file name (a path is fine; only the text matters)
        trace: Optional dict that receives the name of the rule that matched

    Returns:
        ParsedFilenameInfo for the first rule in the cascade that accepts the name
    """
    if not filename:
        return ParsedFilenameInfo()

    normalized = _WHITESPACE.sub(" ", filename)
    for rule in CASCADE:
        info = _first_accepted(rule, normalized)
        if info is None:
            continue
        if trace is not None:
            trace["rule"] = rule.name
        return info

    if trace is not None:
        trace["rule"] = None
    return ParsedFilenameInfo()


def validate_release(title: str, episode: int, season: int = 1) -> EpisodeValidation:
    """Decide whether a release title can contain the requested episode.

    Batches are accepted when their range covers the episode or the range is
    unknown (the file is picked later from the listing). Single releases
    must parse to exactly the requested episode; a parsed season must agree.
    """
    info = parse_filename(title)

    if info.is_batch:
        covered = info.covers(episode)
        if covered is None:
            return EpisodeValidation(True, "batch_unknown_range", info)
        if covered:
            return EpisodeValidation(True, "batch_contains_episode", info)
        return EpisodeValidation(False, "batch_episode_out_of_range", info)

    if info.episode is None:
        return EpisodeValidation(False, "no_episode_detected", info)

    if info.season is not None and info.season != season:
        return EpisodeValidation(False, "season_mismatch", info)

    if info.episode == episode:
        return EpisodeValidation(True, "exact_match", info)

    return EpisodeValidation(False, "episode_mismatch", info)


def filter_releases(releases: Iterable[TorrentRelease], episode: int, season: int = 1) -> List[TorrentRelease]:
    """Keep the releases whose titles validate against the requested episode.

    Accepted releases are annotated with the parsed info and the match reason
    so batch file selection can use them later.
    """
    accepted: List[TorrentRelease] = []
    for release in releases:
        validation = validate_release(release.title, episode, season)
        if validation.matches:
            release.episode_info = validation.info
            release.match_reason = validation.reason
            accepted.append(release)
            continue
        LOGGER.debug(
            "Rejected release %r: %s (detected episode=%s season=%s)",
            release.title[:80],
            validation.reason,
            validation.info.episode,
            validation.info.season,
        )
    return accepted
