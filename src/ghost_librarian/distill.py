"""Context distillation: hybrid search, dedup, compression and budget packing."""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

import numpy as np

from ghost_librarian.config import DistillConfig
from ghost_librarian.dedup import remove_redundant
from ghost_librarian.models import DistillResult
from ghost_librarian.packing import build_result, pack_context
from ghost_librarian.retrieval import RetrievalGateway
from ghost_librarian.scoring import extract_terms, rank_chunks, score_candidates
from ghost_librarian.telemetry import configure_logging, log_event, stage_timer


class SupportsEmbed(Protocol):
    def embed(self, texts: Sequence[str]) -> np.ndarray: ...


class Distiller:
    """Turns a query into a compact, deduplicated, budget-bounded context.

    Each ``distill`` call makes exactly two embedder calls (the query, then all
    retrieved texts in one batch) and one gateway search. Embedding and
    retrieval errors propagate unchanged; no partial result is produced.
    """

    def __init__(
        self,
        embedder: SupportsEmbed,
        gateway: RetrievalGateway,
        config: DistillConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.embedder = embedder
        self.gateway = gateway
        self.config = config or DistillConfig()
        self.logger = logger or configure_logging()

    def distill(self, query: str) -> DistillResult:
        start = time.perf_counter()
        timings: dict[str, float] = {}

        with stage_timer(timings, "embed_query_ms"):
            query_vector = self.embedder.embed([query])[0]
        with stage_timer(timings, "search_ms"):
            candidates = self.gateway.search(query_vector, self.config.top_k)

        if not candidates:
            log_event(
                self.logger,
                "distill_empty",
                store=self.gateway.name,
                top_k=self.config.top_k,
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )
            return DistillResult.empty()

        with stage_timer(timings, "score_ms"):
            ranked = rank_chunks(score_candidates(candidates, extract_terms(query)))
        with stage_timer(timings, "embed_chunks_ms"):
            chunk_vectors = self.embedder.embed([chunk.text for chunk in ranked])
        with stage_timer(timings, "dedup_ms"):
            kept = remove_redundant(ranked, chunk_vectors, self.config.dedup_threshold)
        with stage_timer(timings, "pack_ms"):
            packed = pack_context(kept, self.config.context_budget)

        result = build_result(
            packed, chunks_retrieved=len(ranked), chunks_after_dedup=len(kept)
        )
        log_event(
            self.logger,
            "distill_complete",
            store=self.gateway.name,
            budget=self.config.context_budget,
            top_k=self.config.top_k,
            dedup_threshold=self.config.dedup_threshold,
            chunks_packed=packed.chunks_packed,
            truncated=packed.truncated,
            stage_timing_ms=timings,
            elapsed_ms=(time.perf_counter() - start) * 1000,
            **result.to_dict(),
        )
        return result


def distill(
    query: str,
    embedder: SupportsEmbed,
    gateway: RetrievalGateway,
    config: DistillConfig | None = None,
) -> DistillResult:
    return Distiller(embedder, gateway, config).distill(query)
