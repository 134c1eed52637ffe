"""Pydantic models for upstream API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..models import MediaType, ShowCandidate
from ..utils import coerce_int


class AllAnimeShowEdge(BaseModel):
    """A show row from the AllAnime ``shows`` search query."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str | None = None
    english_name: str | None = Field(default=None, alias="englishName")
    native_name: str | None = Field(default=None, alias="nativeName")
    type: str | None = None
    score: float | None = None
    status: str | None = None
    episode_count: int | str | None = Field(default=None, alias="episodeCount")
    mal_id: int | str | None = Field(default=None, alias="malId")
    anilist_id: int | str | None = Field(default=None, alias="aniListId")

    @property
    def title(self) -> str:
        return self.english_name or self.name or ""

    def to_candidate(self) -> ShowCandidate:
        return ShowCandidate(
            external_id=self.id,
            title=self.title,
            native_title=self.native_name,
            media_type=MediaType.from_value(self.type),
            mal_id=coerce_int(self.mal_id),
            anilist_id=coerce_int(self.anilist_id),
            episode_count=coerce_int(self.episode_count),
        )


class AllAnimeSourceUrl(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_url: str | None = Field(default=None, alias="sourceUrl")
    source_name: str | None = Field(default=None, alias="sourceName")
    priority: float | None = None


class AllAnimeEpisode(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    episode_string: str | None = Field(default=None, alias="episodeString")
    source_urls: list[AllAnimeSourceUrl] = Field(default_factory=list, alias="sourceUrls")


class AllAnimeShowDetails(BaseModel):
    """Subset of the AllAnime ``show`` query used for episode bounds."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str | None = None
    english_name: str | None = Field(default=None, alias="englishName")
    type: str | None = None
    status: str | None = None
    episode_count: int | str | None = Field(default=None, alias="episodeCount")
    available_episodes_detail: dict[str, list[str | int]] = Field(
        default_factory=dict, alias="availableEpisodesDetail"
    )

    @property
    def available_episodes(self) -> int | None:
        """Highest released episode number (sub first, then dub)."""
        released = self.available_episodes_detail.get("sub") or self.available_episodes_detail.get("dub") or []
        numbers = [value for value in (coerce_int(item) for item in released) if value is not None]
        return max(numbers) if numbers else None


class ArmMapping(BaseModel):
    """One entry of the arm (anime relations mapping) id crosswalk."""

    model_config = ConfigDict(extra="ignore")

    anilist: int | str | None = None
    myanimelist: int | str | None = None
    kitsu: int | str | None = None
    anidb: int | str | None = None
    imdb: str | None = None


class CinemetaMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    type: str | None = None


class CinemetaResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    meta: CinemetaMeta | None = None


class ToshoJsonItem(BaseModel):
    """A torrent row from the AnimeTosho JSON feed."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    info_hash: str | None = None
    magnet_uri: str | None = None
    seeders: int | None = 0
    leechers: int | None = 0
    total_size: int | None = 0
    timestamp: int | None = None
    anidb_eid: int | None = None


class AniListTitle(BaseModel):
    model_config = ConfigDict(extra="ignore")

    romaji: str | None = None
    english: str | None = None
    native: str | None = None

    @property
    def preferred(self) -> str | None:
        return self.english or self.romaji or self.native


class AniListMedia(BaseModel):
    """The ``Media`` node of an AniList lookup by MyAnimeList id."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    mal_id: int | None = Field(default=None, alias="idMal")
    title: AniListTitle = Field(default_factory=AniListTitle)
