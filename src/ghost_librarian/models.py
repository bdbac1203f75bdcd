"""Shared data models for ghost_librarian."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np

UNKNOWN_SECTION = "(unknown)"
NO_HEADING_SECTION = "(no heading)"


@dataclass(frozen=True)
class Candidate:
    """A single hit returned by a retrieval gateway."""

    score: float
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredChunk:
    text: str
    section: str
    filename: str
    score: float


@dataclass(frozen=True)
class PackResult:
    context: str
    original_tokens: int
    distilled_tokens: int
    chunks_packed: int
    truncated: bool


@dataclass(frozen=True)
class DistillResult:
    context: str
    original_tokens: int
    distilled_tokens: int
    compression_ratio: float
    chunks_retrieved: int
    chunks_after_dedup: int

    @classmethod
    def empty(cls) -> "DistillResult":
        return cls(
            context="",
            original_tokens=0,
            distilled_tokens=0,
            compression_ratio=0.0,
            chunks_retrieved=0,
            chunks_after_dedup=0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_tokens": self.original_tokens,
            "distilled_tokens": self.distilled_tokens,
            "compression_ratio": self.compression_ratio,
            "chunks_retrieved": self.chunks_retrieved,
            "chunks_after_dedup": self.chunks_after_dedup,
        }


@dataclass(frozen=True)
class VectorPoint:
    point_id: str
    vector: np.ndarray
    payload: dict[str, Any]


@dataclass(frozen=True)
class LoadedDocument:
    source_path: str
    source_type: str
    filename: str
    text: str
    pages_total: int | None = None


@dataclass(frozen=True)
class ChunkSpan:
    text: str
    section: str
    start_offset: int
    end_offset: int


@dataclass
class IngestSummary:
    filename: str
    chunks_added: int
    estimated_tokens: int
    elapsed_ms: float


@dataclass
class IndexSummary:
    vectors_indexed: int
    dim: int
    index_path: str
    elapsed_ms: float
