"""Title canonicalization for comparisons.

Two forms are produced:

- ``normalize_title`` is the human-readable canonical form: lowercase ASCII
  words separated by single spaces, with bracketed annotations, season
  phrasing and trailing language markers removed. It is used for alias-table
  lookups and for building torrent-feed queries.
- ``compact_title`` only folds case, transliterates and drops every
  non-alphanumeric character. It keeps season words intact, so
  "Jujutsu Kaisen Season 2" never compacts to the same key as the first
  season. The show resolver scores candidates on this form.
"""

from __future__ import annotations

import functools
import re

from unidecode import unidecode

_BRACKETED = re.compile(r"\[[^\[\]]*\]|\([^()]*\)|\{[^{}]*\}")
_NON_WORD = re.compile(r"[^a-z0-9\s]+")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_ORDINAL_WORDS = "first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth|final"

# Applied repeatedly until nothing changes so the result is a fixed point.
_SEASON_MARKERS = (
    re.compile(r"\bseason\s*\d+\b"),
    re.compile(r"\b\d+\s*(?:st|nd|rd|th)\s+season\b"),
    re.compile(rf"\b(?:{_ORDINAL_WORDS})\s+season\b"),
    re.compile(r"\bs\d{1,2}\b"),
    re.compile(r"\s(?:dub|dubbed|sub|subbed|raw|uncensored)$"),
    re.compile(r"\s(?:tv|ova|ona)$"),
)


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _strip_season_markers(text: str) -> str:
    while True:
        stripped = text
        for pattern in _SEASON_MARKERS:
            stripped = _collapse(pattern.sub(" ", stripped))
        if stripped == text:
            return stripped
        text = stripped


@functools.lru_cache(maxsize=4096)
def normalize_title(title: str) -> str:
    """Return the canonical comparison form of ``title``.

    >>> normalize_title("Shingeki no Kyojin (TV) Season 2")
    'shingeki no kyojin'
    """
    if not title:
        return ""
    text = unidecode(title).lower()
    previous = None
    while previous != text:
        previous = text
        text = _BRACKETED.sub(" ", text)
    text = _NON_WORD.sub(" ", text.replace("_", " "))
    text = _collapse(text)
    return _strip_season_markers(text)


@functools.lru_cache(maxsize=4096)
def compact_title(title: str) -> str:
    """Return ``title`` lowercased with every non-alphanumeric character removed."""
    if not title:
        return ""
    return _NON_ALNUM.sub("", unidecode(title).lower())
