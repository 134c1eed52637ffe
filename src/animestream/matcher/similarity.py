"""Edit-distance similarity scoring.

The resolver thresholds (60 / 75 and the 0.9 scale factor) were tuned
against the plain Levenshtein metric with unit costs, which is what
rapidfuzz computes here.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Return the Levenshtein distance between ``a`` and ``b``.

    Insertions, deletions and substitutions all cost 1.
    """
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Return the normalized similarity of two strings on a 0-100 scale.

    ``100 * (1 - distance / max(len(a), len(b)))``; two empty strings are
    identical (100), one empty string against a non-empty one scores 0.
    """
    if not a and not b:
        return 100.0
    return 100.0 * Levenshtein.normalized_similarity(a, b)
