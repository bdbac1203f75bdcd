"""Text embedding backends and the serialized ``Embedder`` wrapper."""

from __future__ import annotations

import hashlib
import threading
from functools import lru_cache
from typing import Iterable, Sequence

import numpy as np

from ghost_librarian.config import (
    DEFAULT_EMBEDDING_BACKEND,
    DEFAULT_EMBEDDING_DIM,
    DEFAULT_MODEL_NAME,
    Settings,
)
from ghost_librarian.errors import EmbeddingError


def embed_texts(
    texts: Iterable[str],
    *,
    backend: str = DEFAULT_EMBEDDING_BACKEND,
    model_name: str = DEFAULT_MODEL_NAME,
    dim: int | None = None,
) -> np.ndarray:
    text_list = [text for text in texts]
    if not text_list:
        return np.zeros((0, dim or DEFAULT_EMBEDDING_DIM), dtype="float32")
    if backend == "hash":
        return _hash_embed_texts(text_list, dim or DEFAULT_EMBEDDING_DIM)
    if backend == "sentence-transformers":
        model = _load_sentence_transformer(model_name)
        vectors = model.encode(text_list, normalize_embeddings=True)
        return np.asarray(vectors, dtype="float32")
    raise ValueError(f"Unsupported embedding backend: {backend}")


def get_embedding_dim(
    *,
    backend: str = DEFAULT_EMBEDDING_BACKEND,
    model_name: str = DEFAULT_MODEL_NAME,
    dim: int | None = None,
) -> int:
    if backend == "hash":
        return dim or DEFAULT_EMBEDDING_DIM
    if backend == "sentence-transformers":
        model = _load_sentence_transformer(model_name)
        return int(model.get_sentence_embedding_dimension())
    raise ValueError(f"Unsupported embedding backend: {backend}")


def _hash_to_vector(text: str, dim: int) -> np.ndarray:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    seed = int.from_bytes(digest[:4], "little")
    rng = np.random.default_rng(seed)
    vec = rng.normal(size=(dim,)).astype("float32")
    norm = np.linalg.norm(vec)
    if norm == 0:
        return vec
    return vec / norm


def _hash_embed_texts(texts: Iterable[str], dim: int) -> np.ndarray:
    vectors = [_hash_to_vector(text, dim) for text in texts]
    return np.vstack(vectors) if vectors else np.zeros((0, dim), dtype="float32")


@lru_cache(maxsize=2)
def _load_sentence_transformer(model_name: str):
    try:
        from sentence_transformers import SentenceTransformer
    except ImportError as exc:
        raise RuntimeError(
            "sentence-transformers is not installed; run 'pip install -e .[models]'"
        ) from exc
    return SentenceTransformer(model_name)


class Embedder:
    """One embedding model shared by a process.

    Calls are serialized with a lock: the underlying model is a single
    stateful resource and only one inference may be in flight.
    """

    def __init__(
        self,
        *,
        backend: str = DEFAULT_EMBEDDING_BACKEND,
        model_name: str = DEFAULT_MODEL_NAME,
        dim: int | None = None,
    ) -> None:
        self.backend = backend
        self.model_name = model_name
        self.dim = dim
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Embedder":
        return cls(
            backend=settings.embedding_backend,
            model_name=settings.model_name,
            dim=settings.embedding_dim,
        )

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        text_list = list(texts)
        with self._lock:
            try:
                vectors = embed_texts(
                    text_list,
                    backend=self.backend,
                    model_name=self.model_name,
                    dim=self.dim,
                )
            except Exception as exc:
                raise EmbeddingError(
                    f"Embedding generation failed ({self.backend}): {exc}"
                ) from exc
        if len(vectors) != len(text_list):
            raise EmbeddingError(
                f"Embedding backend returned {len(vectors)} vectors for {len(text_list)} texts"
            )
        return vectors

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]

    def dimension(self) -> int:
        with self._lock:
            try:
                return get_embedding_dim(
                    backend=self.backend, model_name=self.model_name, dim=self.dim
                )
            except Exception as exc:
                raise EmbeddingError(
                    f"Could not resolve embedding dimension ({self.backend}): {exc}"
                ) from exc
