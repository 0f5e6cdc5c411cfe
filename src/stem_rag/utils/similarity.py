# src/stem_rag/utils/similarity.py
"""Vector similarity helpers shared by the query cache and the document store."""

import math
from typing import Sequence, Union

import numpy as np

Vector = Union[Sequence[float], np.ndarray]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine similarity of two embeddings.

    Fails closed: vectors of different length, empty vectors, zero vectors and
    anything that would produce NaN or infinity all score 0.0.
    """
    try:
        vec_a = np.asarray(a, dtype=np.float64)
        vec_b = np.asarray(b, dtype=np.float64)
    except (TypeError, ValueError):
        return 0.0

    if vec_a.ndim != 1 or vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0

    with np.errstate(all="ignore"):
        norm_a = np.linalg.norm(vec_a)
        norm_b = np.linalg.norm(vec_b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    if not math.isfinite(similarity):
        return 0.0
    return similarity
