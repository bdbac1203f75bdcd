"""Ingestion pipeline: load, normalize, chunk, embed and store a document."""

from __future__ import annotations

import time
from pathlib import Path
from uuid import uuid4

from ghost_librarian.compression import estimate_tokens
from ghost_librarian.config import DEFAULT_CHUNK_SIZE, DEFAULT_EMBEDDING_BATCH_SIZE
from ghost_librarian.embeddings import Embedder
from ghost_librarian.errors import IngestError
from ghost_librarian.ingestion.chunking import chunk_markdown
from ghost_librarian.ingestion.loaders import load_document
from ghost_librarian.ingestion.normalization import normalize_text
from ghost_librarian.models import IngestSummary, VectorPoint
from ghost_librarian.retrieval import RetrievalGateway
from ghost_librarian.telemetry import configure_logging, log_event


def ingest_file(
    path: Path,
    *,
    embedder: Embedder,
    gateway: RetrievalGateway,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
) -> IngestSummary:
    start = time.perf_counter()
    logger = configure_logging()
    doc = load_document(path)
    text = normalize_text(doc.text)
    if not text:
        raise IngestError(f"Document is empty after normalization: {path}")

    spans = chunk_markdown(text, chunk_size=chunk_size)
    if not spans:
        raise IngestError(f"No chunks produced from document: {path}")

    batch_size = max(1, batch_size)
    points: list[VectorPoint] = []
    for batch_start in range(0, len(spans), batch_size):
        batch = spans[batch_start : batch_start + batch_size]
        vectors = embedder.embed([span.text for span in batch])
        for offset, (span, vector) in enumerate(zip(batch, vectors)):
            points.append(
                VectorPoint(
                    point_id=str(uuid4()),
                    vector=vector,
                    payload={
                        "filename": doc.filename,
                        "section": span.section,
                        "chunk_index": batch_start + offset,
                        "text": span.text,
                    },
                )
            )
        log_event(
            logger,
            "ingest_batch",
            document=doc.filename,
            batch_start=batch_start,
            batch_end=batch_start + len(batch),
            total_chunks=len(spans),
        )

    written = gateway.upsert(points)
    elapsed_ms = (time.perf_counter() - start) * 1000
    summary = IngestSummary(
        filename=doc.filename,
        chunks_added=written,
        estimated_tokens=estimate_tokens(text),
        elapsed_ms=elapsed_ms,
    )
    log_event(
        logger,
        "ingest_complete",
        store=gateway.name,
        source_type=doc.source_type,
        document=summary.filename,
        chunks_added=summary.chunks_added,
        estimated_tokens=summary.estimated_tokens,
        elapsed_ms=summary.elapsed_ms,
    )
    return summary
