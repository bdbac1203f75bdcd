"""FAISS index build helpers for the SQLite-backed library."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path

import faiss
import numpy as np

from ghost_librarian.models import IndexSummary
from ghost_librarian.storage import (
    compute_points_snapshot_hash,
    deactivate_index_manifests,
    get_active_index_manifest,
    get_all_vectors,
    insert_index_manifest,
)
from ghost_librarian.telemetry import configure_logging, log_event

HNSW_NEIGHBORS = 32
HNSW_EF_SEARCH = 64


def new_index(dim: int) -> faiss.Index:
    """Cosine ANN index: HNSW over inner product, vectors L2-normalized on add."""
    hnsw = faiss.IndexHNSWFlat(dim, HNSW_NEIGHBORS, faiss.METRIC_INNER_PRODUCT)
    hnsw.hnsw.efSearch = HNSW_EF_SEARCH
    return faiss.IndexIDMap2(hnsw)


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    normalized = np.ascontiguousarray(matrix, dtype="float32").copy()
    if len(normalized):
        faiss.normalize_L2(normalized)
    return normalized


def build_vector_index(conn: sqlite3.Connection, index_path: Path) -> IndexSummary:
    """Rebuild the index from every stored point and activate a new manifest."""
    start = time.perf_counter()
    logger = configure_logging()
    ids, matrix = get_all_vectors(conn)
    dim = int(matrix.shape[1]) if len(ids) else 0
    snapshot = compute_points_snapshot_hash(conn)

    index_path.parent.mkdir(parents=True, exist_ok=True)
    if len(ids):
        index = new_index(dim)
        index.add_with_ids(normalize_rows(matrix), ids)
        faiss.write_index(index, str(index_path))
    elif index_path.exists():
        index_path.unlink()

    deactivate_index_manifests(conn)
    insert_index_manifest(
        conn,
        dim=dim,
        point_count=len(ids),
        snapshot_hash=snapshot,
        faiss_path=str(index_path),
        active=1,
    )
    conn.commit()
    elapsed_ms = (time.perf_counter() - start) * 1000
    log_event(
        logger,
        "index_build",
        vectors_indexed=len(ids),
        dim=dim,
        index_path=str(index_path),
        elapsed_ms=elapsed_ms,
    )
    return IndexSummary(
        vectors_indexed=len(ids),
        dim=dim,
        index_path=str(index_path),
        elapsed_ms=elapsed_ms,
    )


def index_is_current(conn: sqlite3.Connection, index_path: Path) -> bool:
    manifest = get_active_index_manifest(conn)
    if manifest is None:
        return False
    if manifest["faiss_path"] != str(index_path):
        return False
    if manifest["snapshot_hash"] != compute_points_snapshot_hash(conn):
        return False
    if int(manifest["point_count"]) > 0 and not index_path.exists():
        return False
    return True
