"""Similarity primitives over normalized merchant names.

Public API:
    - :func:`jaccard_similarity`: token-set overlap ratio used by the fuzzy
      refund match.
    - :func:`levenshtein_distance`: classic edit distance. Not consulted by the
      matcher; exposed for callers that want a character-level comparison.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def jaccard_similarity(a: str, b: str) -> float:
    """Return ``|A ∩ B| / |A ∪ B|`` over the whitespace-separated words of
    ``a`` and ``b``.

    The result lies in ``[0, 1]`` and is symmetric. Two empty inputs yield
    ``0.0`` rather than an undefined ratio.
    """

    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def levenshtein_distance(a: str, b: str) -> int:
    """Return the minimum number of single-character insertions, deletions and
    substitutions turning ``a`` into ``b``."""

    return Levenshtein.distance(a, b)


__all__ = ["jaccard_similarity", "levenshtein_distance"]
