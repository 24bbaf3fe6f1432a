"""Cosine similarity between embedding vectors."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np

EPSILON = 1e-8


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Mismatched lengths score 0.0 rather than raising. The epsilon in the
    denominator keeps zero vectors at 0.0 instead of dividing by zero.
    """
    if len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb)) + EPSILON
    return float(np.dot(va, vb) / denom)


def rank_by_similarity(
    query: Sequence[float],
    vectors: Mapping[str, Sequence[float]],
    threshold: float,
    limit: int,
) -> list[tuple[str, float]]:
    """Score every cached vector, drop those below threshold, best first, at most ``limit``."""
    scored = [(key, cosine_similarity(query, vec)) for key, vec in vectors.items()]
    kept = [(key, score) for key, score in scored if score >= threshold]
    kept.sort(key=lambda item: item[1], reverse=True)
    return kept[:limit]
