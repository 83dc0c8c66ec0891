"""
Vector Similarity

Cosine similarity helpers shared by the in-memory store and the suggestion
collector.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from scipy.spatial.distance import cdist


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def similarity_to_many(
    query: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> np.ndarray:
    """Cosine similarity of one query vector against each row of `vectors`."""
    if len(vectors) == 0:
        return np.zeros(0, dtype=np.float64)
    q = np.asarray([query], dtype=np.float64)
    arr = np.asarray(vectors, dtype=np.float64)
    if not np.any(q):
        return np.zeros(len(arr), dtype=np.float64)
    scores = 1 - cdist(q, arr, metric="cosine")[0]
    # Zero-norm rows come back as NaN
    return np.nan_to_num(scores, nan=0.0)


def compute_similarity_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Compute pairwise cosine similarity matrix.

    Args:
        vectors: List of embedding vectors (n x d)

    Returns:
        n x n similarity matrix where S[i,j] = cosine_sim(v[i], v[j])
    """
    arr = np.array(vectors, dtype=np.float64)
    # cdist returns distance (1 - similarity), so we subtract from 1
    similarity = 1 - cdist(arr, arr, metric="cosine")
    similarity = np.nan_to_num(similarity, nan=0.0)
    np.fill_diagonal(similarity, 1.0)
    return similarity
