"""Parse catalog ids of the form ``tt0388629:21:5``, ``mal-5114`` or ``kitsu:1:1:5``."""

from __future__ import annotations

import re
from typing import Optional, Tuple
from urllib.parse import unquote

from .models import StreamRequest

IMDB = "imdb"
MAL = "mal"
KITSU = "kitsu"

_IMDB_ID = re.compile(r"^tt\d+$")
_MAL_ID = re.compile(r"^mal-(\d+)$")
_KITSU_PREFIX = "kitsu"


def _position(value: Optional[str], label: str, raw: str) -> int:
    if value is None or value == "":
        return 1
    if not value.isdigit() or int(value) < 1:
        raise ValueError(f"Invalid {label} {value!r} in id {raw!r}")
    return int(value)


def parse_stream_id(raw: str, media_type: str = "series") -> StreamRequest:
    """Split a request id into base id, season and episode.

    Season and episode default to 1 when absent. Percent-encoded separators
    (``%3A``) are accepted.

    Raises:
        ValueError: If the base id is not an IMDb, MAL or Kitsu id, or a
            season/episode is not a positive integer
    """
    decoded = unquote(raw or "").strip()
    parts = decoded.split(":")
    if parts[0] == _KITSU_PREFIX:
        if len(parts) < 2 or not parts[1].isdigit():
            raise ValueError(f"Invalid kitsu id {raw!r}")
        base_id = f"{_KITSU_PREFIX}:{parts[1]}"
        rest = parts[2:]
    else:
        base_id = parts[0]
        rest = parts[1:]
        if not (_IMDB_ID.match(base_id) or _MAL_ID.match(base_id)):
            raise ValueError(f"Unsupported id {raw!r}; expected tt…, mal-… or kitsu:…")
    if len(rest) > 2:
        raise ValueError(f"Too many components in id {raw!r}")

    season = _position(rest[0] if rest else None, "season", raw)
    episode = _position(rest[1] if len(rest) > 1 else None, "episode", raw)
    return StreamRequest(base_id=base_id, season=season, episode=episode, media_type=media_type)


def id_source(base_id: str) -> Tuple[str, str]:
    """Return ``(kind, value)`` for a base id, e.g. ``("mal", "5114")``."""
    if _IMDB_ID.match(base_id):
        return IMDB, base_id
    match = _MAL_ID.match(base_id)
    if match:
        return MAL, match.group(1)
    if base_id.startswith(f"{_KITSU_PREFIX}:"):
        return KITSU, base_id.split(":", 1)[1]
    raise ValueError(f"Unsupported id {base_id!r}")
