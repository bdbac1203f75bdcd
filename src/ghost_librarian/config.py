"""Configuration for ghost_librarian.

Environment variables are read once by ``load_settings``; everything below the
entry-point scripts receives explicit ``Settings`` / ``DistillConfig`` values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_CONTEXT_BUDGET = 3000
DEFAULT_TOP_K = 20
DEFAULT_DEDUP_THRESHOLD = 0.85

DEFAULT_STORE_BACKEND = "faiss"
STORE_BACKENDS = {"faiss", "memory"}

DEFAULT_EMBEDDING_BACKEND = "sentence-transformers"
DEFAULT_MODEL_NAME = "intfloat/multilingual-e5-small"
DEFAULT_EMBEDDING_DIM = 384
DEFAULT_EMBEDDING_BATCH_SIZE = 32
DEFAULT_CHUNK_SIZE = 2000

DEFAULT_OLLAMA_HOST = "http://localhost"
DEFAULT_OLLAMA_PORT = 11434
DEFAULT_OLLAMA_MODEL = "llama3"
DEFAULT_OLLAMA_TIMEOUT = 120.0


def _env_path(key: str, default: Path) -> Path:
    return Path(os.getenv(key, str(default))).expanduser()


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, default))
    except (TypeError, ValueError):
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, default))
    except (TypeError, ValueError):
        return default


def _env_str(key: str, default: str) -> str:
    return os.getenv(key, "").strip() or default


@dataclass(frozen=True)
class DistillConfig:
    """Knobs for a single distillation pipeline."""

    context_budget: int = DEFAULT_CONTEXT_BUDGET
    top_k: int = DEFAULT_TOP_K
    dedup_threshold: float = DEFAULT_DEDUP_THRESHOLD

    def __post_init__(self) -> None:
        if self.context_budget <= 0:
            raise ValueError("context_budget must be positive")
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")
        if not 0.0 < self.dedup_threshold <= 1.0:
            raise ValueError("dedup_threshold must be in (0, 1]")


@dataclass(frozen=True)
class Settings:
    data_dir: Path = PROJECT_ROOT / "data"
    store_backend: str = DEFAULT_STORE_BACKEND
    embedding_backend: str = DEFAULT_EMBEDDING_BACKEND
    model_name: str = DEFAULT_MODEL_NAME
    embedding_dim: int = DEFAULT_EMBEDDING_DIM
    embedding_batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    context_budget: int = DEFAULT_CONTEXT_BUDGET
    top_k: int = DEFAULT_TOP_K
    dedup_threshold: float = DEFAULT_DEDUP_THRESHOLD
    ollama_host: str = DEFAULT_OLLAMA_HOST
    ollama_port: int = DEFAULT_OLLAMA_PORT
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_timeout: float = DEFAULT_OLLAMA_TIMEOUT

    def __post_init__(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unsupported store backend: {self.store_backend} "
                f"(expected one of {', '.join(sorted(STORE_BACKENDS))})"
            )
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "library.db"

    @property
    def index_path(self) -> Path:
        return self.data_dir / "indexes" / "library.faiss"

    @property
    def memory_store_dir(self) -> Path:
        return self.data_dir / "memory"

    @property
    def ollama_url(self) -> str:
        return f"{self.ollama_host.rstrip('/')}:{self.ollama_port}"

    def distill_config(self, context_budget: int | None = None) -> DistillConfig:
        return DistillConfig(
            context_budget=(
                context_budget if context_budget is not None else self.context_budget
            ),
            top_k=self.top_k,
            dedup_threshold=self.dedup_threshold,
        )

    def ensure_data_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.index_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    return Settings(
        data_dir=_env_path("GHOST_DATA_DIR", PROJECT_ROOT / "data"),
        store_backend=_env_str("GHOST_STORE", DEFAULT_STORE_BACKEND).lower(),
        embedding_backend=_env_str(
            "GHOST_EMBEDDING_BACKEND", DEFAULT_EMBEDDING_BACKEND
        ),
        model_name=_env_str("GHOST_EMBED_MODEL", DEFAULT_MODEL_NAME),
        embedding_dim=_env_int("GHOST_EMBED_DIM", DEFAULT_EMBEDDING_DIM),
        embedding_batch_size=_env_int(
            "GHOST_EMBED_BATCH_SIZE", DEFAULT_EMBEDDING_BATCH_SIZE
        ),
        chunk_size=_env_int("GHOST_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        context_budget=_env_int("GHOST_CONTEXT_BUDGET", DEFAULT_CONTEXT_BUDGET),
        top_k=_env_int("GHOST_TOP_K", DEFAULT_TOP_K),
        dedup_threshold=_env_float("GHOST_DEDUP_THRESHOLD", DEFAULT_DEDUP_THRESHOLD),
        ollama_host=_env_str("GHOST_OLLAMA_HOST", DEFAULT_OLLAMA_HOST),
        ollama_port=_env_int("GHOST_OLLAMA_PORT", DEFAULT_OLLAMA_PORT),
        ollama_model=_env_str("GHOST_MODEL", DEFAULT_OLLAMA_MODEL),
        ollama_timeout=_env_float("GHOST_OLLAMA_TIMEOUT", DEFAULT_OLLAMA_TIMEOUT),
    )
