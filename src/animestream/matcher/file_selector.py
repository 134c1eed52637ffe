"""Pick the file for one episode out of a multi-file torrent listing."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Iterable, List, Optional, Sequence

from ..models import FileSelection, TorrentFileCandidate
from .filename_parser import parse_filename

LOGGER = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({"mkv", "mp4", "avi", "webm", "ts", "m2ts"})

# Openings, endings, previews and other extras shipped alongside episodes.
NON_EPISODE_PATTERN = re.compile(
    r"(?<![a-z])(?:NCOP|NCED|Preview|Special|SP|OVA|Menu|Trailer|PV|CM|Bonus|Extra)s?(?![a-z])",
    re.IGNORECASE,
)


def basename(filename: str) -> str:
    return posixpath.basename(filename.replace("\\", "/"))


def path_segments(filename: str) -> List[str]:
    return [segment for segment in filename.replace("\\", "/").split("/") if segment]


def torrent_root(files: Sequence[TorrentFileCandidate]) -> Optional[str]:
    """Return the top folder every file sits under, or None for a flat listing."""
    roots = set()
    for candidate in files:
        segments = path_segments(candidate.filename)
        if len(segments) < 2:
            return None
        roots.add(segments[0])
    return roots.pop() if len(roots) == 1 else None


def is_video_file(filename: str) -> bool:
    _, _, extension = filename.rpartition(".")
    return extension.lower() in VIDEO_EXTENSIONS


def is_non_episode(filename: str, root: Optional[str] = None) -> bool:
    """Check the basename and every folder below ``root`` against the denylist."""
    segments = path_segments(filename)
    if root is not None and len(segments) > 1 and segments[0] == root:
        segments = segments[1:]
    return any(NON_EPISODE_PATTERN.search(segment) for segment in segments)


def _rank(candidate: TorrentFileCandidate) -> tuple:
    # Largest first; equal sizes fall back to the name so the pick never depends on list order.
    return (-candidate.size_bytes, candidate.filename)


def select_file(
    files: Iterable[TorrentFileCandidate],
    season: int,
    episode: int,
) -> Optional[TorrentFileCandidate]:
    """Return the file that is unambiguously ``season``/``episode``, or None.

    Extras (NCOP, previews, specials and the like) are dropped first, also
    when only a folder below the torrent root names them. Each
    remaining basename is parsed; a file qualifies when its episode equals
    ``episode`` and its season, when the name carries one, equals ``season``.
    Among qualifying files the largest wins.
    """
    listing = list(files)
    root = torrent_root(listing)
    matches: List[TorrentFileCandidate] = []
    for candidate in listing:
        if is_non_episode(candidate.filename, root):
            LOGGER.debug("Skipping extra %s", candidate.filename)
            continue
        name = basename(candidate.filename)
        info = parse_filename(name)
        if info.is_batch or info.episode != episode:
            continue
        if info.season is not None and info.season != season:
            continue
        matches.append(candidate)

    if not matches:
        return None
    matches.sort(key=_rank)
    if len(matches) > 1:
        LOGGER.debug(
            "Multiple files match S%02dE%02d, keeping largest: %s",
            season,
            episode,
            ", ".join(f"{basename(item.filename)} ({item.size_bytes})" for item in matches),
        )
    return matches[0]


def choose_file(
    files: Sequence[TorrentFileCandidate],
    season: int,
    episode: int,
) -> FileSelection:
    """Select the episode file among the video files of a torrent.

    Falls back to the largest video file with ``confident=False`` when no
    file parses to the requested episode, so the caller can warn instead of
    silently playing a guess.
    """
    videos = [candidate for candidate in files if is_video_file(candidate.filename)]
    if not videos:
        return FileSelection(file=None, confident=False, reason="no_video_files")

    selected = select_file(videos, season, episode)
    if selected is not None:
        return FileSelection(file=selected, confident=True, reason="episode_match")

    fallback = sorted(videos, key=_rank)[0]
    LOGGER.warning(
        "No file in the torrent matches S%02dE%02d; falling back to largest video %s",
        season,
        episode,
        basename(fallback.filename),
    )
    return FileSelection(file=fallback, confident=False, reason="no_confident_match")
