"""Embedding-based redundancy removal over ranked chunks."""

from __future__ import annotations

from typing import Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity; ``0.0`` for mismatched lengths or a zero-norm vector."""
    vec_a = np.asarray(a, dtype="float64").ravel()
    vec_b = np.asarray(b, dtype="float64").ravel()
    if vec_a.shape != vec_b.shape:
        return 0.0
    norm_a = float(np.linalg.norm(vec_a))
    norm_b = float(np.linalg.norm(vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def remove_redundant(
    chunks: Sequence[T],
    embeddings: Sequence[Sequence[float]] | np.ndarray,
    threshold: float,
) -> list[T]:
    """Keep each chunk unless it is too similar to an already-kept one.

    ``chunks`` must already be in ranked order, so the dropped member of a
    near-duplicate pair is always the lower-ranked one.
    """
    if len(chunks) != len(embeddings):
        raise ValueError(
            f"Expected one embedding per chunk, got {len(embeddings)} for {len(chunks)} chunks"
        )
    kept: list[T] = []
    kept_vectors: list[Sequence[float]] = []
    for chunk, vector in zip(chunks, embeddings):
        if any(cosine_similarity(vector, other) > threshold for other in kept_vectors):
            continue
        kept.append(chunk)
        kept_vectors.append(vector)
    return kept
