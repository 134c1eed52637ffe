"""Release metadata read from torrent titles: quality, source, RAW status."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import quote

from .models import TorrentRelease

UNKNOWN = "Unknown"

# Checked in order; the first match wins.
QUALITY_PATTERNS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    ("4K", re.compile(r"4K|2160p|UHD|3840x2160", re.IGNORECASE)),
    ("1080p", re.compile(r"1080p|1920x1080|1440x1080", re.IGNORECASE)),
    ("720p", re.compile(r"720p|1280x720", re.IGNORECASE)),
    ("480p", re.compile(r"480p|DVD|848x480|640x480", re.IGNORECASE)),
)

SOURCE_PATTERNS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    ("BD", re.compile(r"BD|Blu-?ray|BDMV|Remux", re.IGNORECASE)),
    ("WEB-DL", re.compile(r"WEB-?DL|AMZN|CR|DSNP", re.IGNORECASE)),
    ("WEBRip", re.compile(r"WEB-?Rip", re.IGNORECASE)),
    ("TV", re.compile(r"HDTV|TV-?Rip|BS11|ANIMAX|AT-X", re.IGNORECASE)),
)

QUALITY_ORDER = {"4K": 0, "1080p": 1, "720p": 2, "480p": 3, UNKNOWN: 4}

# Groups that publish untranslated releases.
RAW_GROUPS = (
    "DBD-Raws",
    "Reinforce",
    "Ohys-Raws",
    "Snow-Raws",
    "LowPower-Raws",
    "U3-Web",
    "Moozzi2",
    "VCB-Studio",
    "ASC",
    "Cleo",
    "LoliHouse",
    "Rasetsu",
    "Koi-Raws",
    "shincaps",
)
_RAW_TAG = re.compile(r"\bRAW\b|生肉", re.IGNORECASE)
_JAPANESE_ONLY = re.compile(r"\[JPN?\]|\bJapanese\s+Only\b", re.IGNORECASE)

ANIME_TRACKERS = (
    "http://nyaa.tracker.wf:7777/announce",
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.stealth.si:80/announce",
    "udp://tracker.torrent.eu.org:451/announce",
    "udp://tracker.bittor.pw:1337/announce",
    "udp://public.popcorn-tracker.org:6969/announce",
    "udp://tracker.dler.org:6969/announce",
    "udp://exodus.desync.com:6969/announce",
    "udp://open.demonii.com:1337/announce",
    "http://anidex.moe:6969/announce",
)

_RELEASE_GROUP = re.compile(r"^\[([^\]]+)\]")
_MAGNET_HASH = re.compile(r"urn:btih:([a-fA-F0-9]{40})", re.IGNORECASE)


def detect_quality(title: str) -> str:
    for quality, pattern in QUALITY_PATTERNS:
        if pattern.search(title):
            return quality
    return UNKNOWN


def detect_source(title: str) -> str:
    for source, pattern in SOURCE_PATTERNS:
        if pattern.search(title):
            return source
    return UNKNOWN


def is_raw_release(title: str) -> bool:
    """True when the release ships without subtitles."""
    if any(group in title for group in RAW_GROUPS):
        return True
    return bool(_RAW_TAG.search(title) or _JAPANESE_ONLY.search(title))


def release_group(title: str) -> str:
    match = _RELEASE_GROUP.match(title)
    return match.group(1) if match else UNKNOWN


def info_hash_from_magnet(magnet: str) -> Optional[str]:
    match = _MAGNET_HASH.search(magnet or "")
    return match.group(1).upper() if match else None


def build_magnet(info_hash: str, title: str = "", trackers: Iterable[str] = ANIME_TRACKERS) -> str:
    """Build a magnet URI carrying the display name and anime trackers."""
    parts = [f"magnet:?xt=urn:btih:{info_hash}"]
    if title:
        parts.append(f"dn={quote(title, safe='')}")
    parts.extend(f"tr={quote(tracker, safe='')}" for tracker in trackers)
    return "&".join(parts)


def format_size(size_bytes: int) -> str:
    if size_bytes >= 1024**3:
        return f"{size_bytes / 1024**3:.2f} GB"
    if size_bytes >= 1024**2:
        return f"{size_bytes / 1024**2:.1f} MB"
    return f"{round(size_bytes / 1024)} KB"


def stream_quality(source_name: str | None, url: str) -> str:
    """Best-effort quality label for a direct stream."""
    text = f"{source_name or ''} {url}".lower()
    if re.search(r"2160p|4k|uhd", text):
        return "4K"
    if re.search(r"1080p|fhd|fullhd", text):
        return "1080p"
    if re.search(r"720p|hd", text):
        return "720p"
    if re.search(r"480p|sd", text):
        return "480p"
    return "HD"


def make_release(
    title: str,
    info_hash: str,
    provider: str,
    *,
    magnet: str | None = None,
    seeders: int = 0,
    size: str | None = None,
    published: str | None = None,
) -> TorrentRelease:
    """Build a ``TorrentRelease`` with every title-derived field filled in."""
    normalized_hash = info_hash.upper()
    return TorrentRelease(
        title=title,
        info_hash=normalized_hash,
        magnet=magnet or build_magnet(normalized_hash, title),
        provider=provider,
        quality=detect_quality(title),
        source=detect_source(title),
        is_raw=is_raw_release(title),
        release_group=release_group(title),
        seeders=seeders,
        size=size,
        published=published,
    )


def quality_rank(release: TorrentRelease) -> Tuple[int, int]:
    return (QUALITY_ORDER.get(release.quality, QUALITY_ORDER[UNKNOWN]), -release.seeders)


def sort_releases(releases: Iterable[TorrentRelease], *, preferred_provider: str | None = None) -> List[TorrentRelease]:
    """Order releases RAW first, then preferred provider, quality, seeders."""

    def key(release: TorrentRelease) -> tuple:
        preferred = preferred_provider is not None and release.provider == preferred_provider
        return (not release.is_raw, not preferred, *quality_rank(release))

    return sorted(releases, key=key)


def dedupe_releases(releases: Iterable[TorrentRelease]) -> List[TorrentRelease]:
    """Drop releases whose info hash was already seen, keeping the first."""
    seen: set[str] = set()
    unique: List[TorrentRelease] = []
    for release in releases:
        if release.info_hash in seen:
            continue
        seen.add(release.info_hash)
        unique.append(release)
    return unique
