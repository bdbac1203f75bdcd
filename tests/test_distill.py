from typing import Sequence

import numpy as np
import pytest

from ghost_librarian.config import DistillConfig
from ghost_librarian.distill import Distiller, distill
from ghost_librarian.embeddings import Embedder
from ghost_librarian.errors import EmbeddingError, RetrievalError
from ghost_librarian.models import Candidate, DistillResult, VectorPoint
from ghost_librarian.retrieval import MemoryGateway, RetrievalGateway


class _FakeEmbedder:
    def __init__(self, vectors: dict[str, list[float]] | None = None, fail_on_call: int | None = None) -> None:
        self.vectors = vectors or {}
        self.fail_on_call = fail_on_call
        self.calls: list[list[str]] = []

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        self.calls.append(list(texts))
        if self.fail_on_call == len(self.calls):
            raise EmbeddingError("backend down")
        return np.asarray(
            [self.vectors.get(text, [1.0, 0.0, 0.0]) for text in texts], dtype="float32"
        )


class _FakeGateway(RetrievalGateway):
    name = "fake"

    def __init__(self, candidates: list[Candidate] | None = None, error: Exception | None = None) -> None:
        self.candidates = candidates or []
        self.error = error
        self.limits: list[int] = []

    def search(self, vector, limit: int) -> list[Candidate]:
        self.limits.append(limit)
        if self.error is not None:
            raise self.error
        return self.candidates[:limit]

    def upsert(self, points) -> int:
        return 0

    def delete_by_filename(self, filename: str) -> int:
        return 0

    def list_filenames(self) -> list[tuple[str, int]]:
        return []

    def count(self) -> int:
        return len(self.candidates)


def _candidate(score: float, text: str, section: str = "Intro") -> Candidate:
    return Candidate(score=score, payload={"text": text, "section": section, "filename": "notes.md"})


def test_empty_retrieval_short_circuits() -> None:
    embedder = _FakeEmbedder()
    gateway = _FakeGateway([])
    result = Distiller(embedder, gateway).distill("anything")

    assert result == DistillResult(
        context="",
        original_tokens=0,
        distilled_tokens=0,
        compression_ratio=0.0,
        chunks_retrieved=0,
        chunks_after_dedup=0,
    )
    assert len(embedder.calls) == 1
    assert gateway.limits == [20]


def test_distill_dedups_and_keeps_highest_scored() -> None:
    embedder = _FakeEmbedder(
        {
            "retrieval augmented generation basics": [1.0, 0.0, 0.0],
            "retrieval augmented generation basics again": [1.0, 0.0, 0.0],
            "vector stores hold embeddings": [0.0, 1.0, 0.0],
        }
    )
    gateway = _FakeGateway(
        [
            _candidate(0.6, "retrieval augmented generation basics again", "Copy"),
            _candidate(0.9, "retrieval augmented generation basics", "Original"),
            _candidate(0.5, "vector stores hold embeddings", "Stores"),
        ]
    )
    result = Distiller(embedder, gateway, DistillConfig(top_k=5)).distill("generation")

    assert result.chunks_retrieved == 3
    assert result.chunks_after_dedup == 2
    assert result.context.startswith("[Original] ")
    assert "[Copy]" not in result.context
    assert "[Stores] vector stores hold embeddings" in result.context
    assert gateway.limits == [5]


def test_chunk_embeddings_requested_in_ranked_order() -> None:
    embedder = _FakeEmbedder(
        {"low": [1.0, 0.0, 0.0], "high": [0.0, 1.0, 0.0], "mid": [0.0, 0.0, 1.0]}
    )
    gateway = _FakeGateway([_candidate(0.1, "low"), _candidate(0.9, "high"), _candidate(0.5, "mid")])
    Distiller(embedder, gateway).distill("query")

    assert len(embedder.calls) == 2
    assert embedder.calls[0] == ["query"]
    assert embedder.calls[1] == ["high", "mid", "low"]


def test_malformed_payloads_use_defaults() -> None:
    embedder = _FakeEmbedder()
    gateway = _FakeGateway([Candidate(score=0.8, payload={"text": "orphan chunk text"})])
    result = distill("orphan", embedder, gateway)
    assert result.context == "[(unknown)] orphan chunk text"
    assert result.chunks_after_dedup == 1


def test_retrieval_failure_is_fatal() -> None:
    gateway = _FakeGateway(error=RetrievalError("store unreachable"))
    with pytest.raises(RetrievalError):
        Distiller(_FakeEmbedder(), gateway).distill("query")


@pytest.mark.parametrize("failing_call", [1, 2])
def test_embedding_failure_is_fatal(failing_call: int) -> None:
    embedder = _FakeEmbedder(fail_on_call=failing_call)
    gateway = _FakeGateway([_candidate(0.9, "some text")])
    with pytest.raises(EmbeddingError):
        Distiller(embedder, gateway).distill("query")


def test_budget_limits_context() -> None:
    long_text = " ".join(f"word{idx}" for idx in range(500))
    embedder = _FakeEmbedder(
        {long_text: [1.0, 0.0, 0.0], "second chunk": [0.0, 1.0, 0.0]}
    )
    gateway = _FakeGateway([_candidate(0.9, long_text), _candidate(0.8, "second chunk")])
    result = Distiller(embedder, gateway, DistillConfig(context_budget=100)).distill("word1")

    assert result.chunks_after_dedup == 2
    assert "second chunk" not in result.context
    # floor(100 / 1.3) = 76 words plus the section label
    assert len(result.context.split()) == 77
    assert result.compression_ratio > 0.0


def test_distill_end_to_end_with_memory_gateway() -> None:
    embedder = Embedder(backend="hash", dim=16)
    texts = [
        "Context distillation removes filler phrases from retrieved chunks.",
        "Vector stores keep embeddings for nearest neighbour search.",
    ]
    vectors = embedder.embed(texts)
    gateway = MemoryGateway()
    gateway.upsert(
        [
            VectorPoint(
                point_id=f"p{idx}",
                vector=vector,
                payload={"text": text, "section": f"S{idx}", "filename": "notes.md"},
            )
            for idx, (text, vector) in enumerate(zip(texts, vectors))
        ]
    )

    result = Distiller(embedder, gateway).distill(texts[0])

    assert result.chunks_retrieved == 2
    assert result.chunks_after_dedup <= result.chunks_retrieved
    assert result.context.startswith("[S0] Context distillation removes filler phrases")
    assert result.distilled_tokens <= result.original_tokens
