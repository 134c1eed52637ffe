from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


class MediaType(str, Enum):
    TV = "TV"
    MOVIE = "Movie"
    OVA = "OVA"
    ONA = "ONA"
    SPECIAL = "Special"
    UNKNOWN = "Unknown"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "MediaType":
        if not value:
            return cls.UNKNOWN
        lowered = value.strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class EpisodeLocator:
    series_id: str
    season: int
    episode: int

    def __post_init__(self) -> None:
        if self.season < 1:
            raise ValueError(f"season must be >= 1, got {self.season}")
        if self.episode < 1:
            raise ValueError(f"episode must be >= 1, got {self.episode}")


@dataclass(frozen=True, slots=True)
class SeasonRange:
    season: int
    absolute_start: int
    absolute_end: int

    def __contains__(self, absolute_episode: object) -> bool:
        if not isinstance(absolute_episode, int):
            return False
        return self.absolute_start <= absolute_episode <= self.absolute_end

    @property
    def length(self) -> int:
        return self.absolute_end - self.absolute_start + 1


@dataclass(frozen=True, slots=True)
class ParsedFilenameInfo:
    """What the filename cascade could tell about a release.

    ``episode is None`` means the episode could not be determined. A batch
    with ``batch_range is None`` is a multi-episode archive of unknown span.
    """

    episode: Optional[int] = None
    season: Optional[int] = None
    is_batch: bool = False
    batch_range: Optional[Tuple[int, int]] = None

    @property
    def kind(self) -> str:
        if self.is_batch:
            return "batch"
        if self.episode is not None:
            return "episode"
        return "unknown"

    def covers(self, episode: int) -> Optional[bool]:
        """Return whether a batch range contains ``episode`` (None when unknown)."""
        if self.batch_range is None:
            return None
        start, end = self.batch_range
        return start <= episode <= end


@dataclass(frozen=True, slots=True)
class CrosswalkIds:
    mal_id: Optional[int] = None
    anilist_id: Optional[int] = None
    kitsu_id: Optional[int] = None
    anidb_id: Optional[int] = None
    imdb_id: Optional[str] = None

    @property
    def has_verifiable_ids(self) -> bool:
        return self.mal_id is not None or self.anilist_id is not None

    def matches(self, candidate: "ShowCandidate") -> bool:
        if self.mal_id is not None and candidate.mal_id == self.mal_id:
            return True
        if self.anilist_id is not None and candidate.anilist_id == self.anilist_id:
            return True
        return False


@dataclass(frozen=True, slots=True)
class ShowCandidate:
    external_id: str
    title: str
    native_title: Optional[str] = None
    media_type: MediaType = MediaType.UNKNOWN
    mal_id: Optional[int] = None
    anilist_id: Optional[int] = None
    episode_count: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ShowResolution:
    external_id: Optional[str]
    tier: Optional[str] = None
    score: Optional[float] = None
    title: Optional[str] = None
    query: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.external_id is not None

    @classmethod
    def not_found(cls) -> "ShowResolution":
        return cls(external_id=None)


@dataclass(frozen=True, slots=True)
class TorrentFileCandidate:
    filename: str
    size_bytes: int
    download_handle: Any = None


@dataclass(frozen=True, slots=True)
class FileSelection:
    file: Optional[TorrentFileCandidate]
    confident: bool
    reason: str


@dataclass(frozen=True, slots=True)
class EpisodeValidation:
    matches: bool
    reason: str
    info: ParsedFilenameInfo


@dataclass(slots=True)
class TorrentRelease:
    title: str
    info_hash: str
    magnet: str
    provider: str
    quality: str = "Unknown"
    source: str = "Unknown"
    is_raw: bool = False
    release_group: str = "Unknown"
    seeders: int = 0
    size: Optional[str] = None
    published: Optional[str] = None
    episode_info: Optional[ParsedFilenameInfo] = None
    match_reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StreamSource:
    url: str
    quality: str
    provider: str
    translation: str
    headers: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class StreamRequest:
    base_id: str
    season: int = 1
    episode: int = 1
    media_type: str = "series"

    @property
    def locator(self) -> EpisodeLocator:
        return EpisodeLocator(self.base_id, self.season, self.episode)


@dataclass(slots=True)
class StreamResult:
    request: StreamRequest
    resolution: ShowResolution
    absolute_episode: int
    streams: List[StreamSource] = field(default_factory=list)
    torrents: List[TorrentRelease] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.streams and not self.torrents
