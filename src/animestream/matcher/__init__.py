"""Episode identity resolution and torrent-file disambiguation.

This package provides the matching core of animestream:
- Title normalization and edit-distance similarity
- Episode/season/batch extraction from release names
- Catalog season to absolute episode conversion
- Upstream show lookup by title, aliases and crosswalk ids
- Episode file selection inside multi-file torrents

Public API:
- parse_filename: Extract episode information from a release name
- to_absolute: Map a catalog season/episode to the upstream episode number
- ShowIdentityResolver: Find the upstream show for a title and season
- select_file / choose_file: Pick the episode file from a torrent listing

Example:
    from animestream.matcher import ShowIdentityResolver, to_absolute

    resolver = ShowIdentityResolver(client.search_shows)
    resolution = resolver.resolve("Frieren", season=1)
    if resolution.found:
        episode = to_absolute("tt22248376", 1, 5)
"""

from .absolute_episode import to_absolute
from .file_selector import choose_file, select_file
from .filename_parser import filter_releases, parse_filename, validate_release
from .normalizer import compact_title, normalize_title
from .show_resolver import ShowIdentityResolver, score_candidate
from .similarity import edit_distance, similarity

__all__ = [
    "ShowIdentityResolver",
    "choose_file",
    "compact_title",
    "edit_distance",
    "filter_releases",
    "normalize_title",
    "parse_filename",
    "score_candidate",
    "select_file",
    "similarity",
    "to_absolute",
    "validate_release",
]
