"""Upstream clients: show search and episode sources, id crosswalk, title lookups, torrent feeds."""

from .allanime import AllAnimeClient, decode_source_url
from .anilist import AniListClient
from .base import HttpProvider, UpstreamError, UpstreamNotFoundError
from .cinemeta import CinemetaClient
from .crosswalk import CrosswalkClient
from .feeds import ANIMETOSHO, FEEDS, NYAA, FeedDefinition, TorrentFeedClient

__all__ = [
    "ANIMETOSHO",
    "AllAnimeClient",
    "AniListClient",
    "CinemetaClient",
    "CrosswalkClient",
    "FEEDS",
    "FeedDefinition",
    "HttpProvider",
    "NYAA",
    "TorrentFeedClient",
    "UpstreamError",
    "UpstreamNotFoundError",
    "decode_source_url",
]
