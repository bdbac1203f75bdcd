"""Retrieval gateways: brute-force in-memory store and FAISS-indexed store.

Both variants implement ``RetrievalGateway``; ``create_gateway`` picks one from
``Settings.store_backend``.
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, Sequence

import faiss
import numpy as np

from ghost_librarian.config import Settings
from ghost_librarian.errors import RetrievalError
from ghost_librarian.indexing import build_vector_index, index_is_current, normalize_rows
from ghost_librarian.models import Candidate, VectorPoint
from ghost_librarian.storage import (
    connect,
    count_points,
    delete_points_by_filename,
    fetch_payloads_by_vector_ids,
    get_active_index_manifest,
    insert_points,
    list_filenames,
    migrate_schema,
    require_schema,
)


class RetrievalGateway(ABC):
    name: str = "base"

    @abstractmethod
    def search(self, vector: Sequence[float] | np.ndarray, limit: int) -> list[Candidate]:
        """Return up to ``limit`` candidates, most similar first."""

    @abstractmethod
    def upsert(self, points: Sequence[VectorPoint]) -> int:
        ...

    @abstractmethod
    def delete_by_filename(self, filename: str) -> int:
        ...

    @abstractmethod
    def list_filenames(self) -> list[tuple[str, int]]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


class MemoryGateway(RetrievalGateway):
    """Brute-force cosine search over a numpy matrix.

    With a ``path`` the store is loaded from and saved to
    ``vectors.npy`` + ``payloads.json`` in that directory after every write.
    """

    name = "memory"

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._point_ids: list[str] = []
        self._payloads: list[dict[str, Any]] = []
        self._vectors = np.zeros((0, 0), dtype="float32")
        if path is not None:
            self._load()

    @property
    def _vectors_file(self) -> Path:
        assert self.path is not None
        return self.path / "vectors.npy"

    @property
    def _payloads_file(self) -> Path:
        assert self.path is not None
        return self.path / "payloads.json"

    def _load(self) -> None:
        if not self._vectors_file.exists() or not self._payloads_file.exists():
            return
        try:
            vectors = np.load(self._vectors_file)
            records = json.loads(self._payloads_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RetrievalError(f"Failed to load memory store at {self.path}: {exc}") from exc
        if len(records) != len(vectors):
            raise RetrievalError(
                f"Memory store at {self.path} is inconsistent: "
                f"{len(vectors)} vectors, {len(records)} payloads"
            )
        self._vectors = np.asarray(vectors, dtype="float32")
        self._point_ids = [str(record.get("point_id", "")) for record in records]
        self._payloads = [
            record.get("payload") if isinstance(record.get("payload"), dict) else {}
            for record in records
        ]

    def _save(self) -> None:
        if self.path is None:
            return
        records = [
            {"point_id": point_id, "payload": payload}
            for point_id, payload in zip(self._point_ids, self._payloads)
        ]
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            np.save(self._vectors_file, self._vectors)
            self._payloads_file.write_text(
                json.dumps(records, ensure_ascii=False, default=str), encoding="utf-8"
            )
        except OSError as exc:
            raise RetrievalError(f"Failed to save memory store at {self.path}: {exc}") from exc

    def search(self, vector: Sequence[float] | np.ndarray, limit: int) -> list[Candidate]:
        if not self._point_ids or limit <= 0:
            return []
        query = np.asarray(vector, dtype="float32").ravel()
        if query.shape[0] != self._vectors.shape[1]:
            raise RetrievalError(
                f"Query dimension {query.shape[0]} does not match store dimension "
                f"{self._vectors.shape[1]}"
            )
        row_norms = np.linalg.norm(self._vectors, axis=1)
        query_norm = float(np.linalg.norm(query))
        denom = row_norms * query_norm
        dots = self._vectors @ query
        sims = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
        order = np.argsort(-sims, kind="stable")[:limit]
        return [
            Candidate(score=float(sims[idx]), payload=dict(self._payloads[idx]))
            for idx in order
        ]

    def upsert(self, points: Sequence[VectorPoint]) -> int:
        if not points:
            return 0
        rows = [np.asarray(point.vector, dtype="float32").ravel() for point in points]
        dims = {row.shape[0] for row in rows}
        if self._point_ids:
            dims.add(self._vectors.shape[1])
        if len(dims) != 1:
            raise RetrievalError(f"Mixed vector dimensions: {sorted(dims)}")

        vectors = list(self._vectors) if self._point_ids else []
        positions = {point_id: idx for idx, point_id in enumerate(self._point_ids)}
        for point, row in zip(points, rows):
            idx = positions.get(point.point_id)
            if idx is None:
                positions[point.point_id] = len(self._point_ids)
                self._point_ids.append(point.point_id)
                self._payloads.append(dict(point.payload))
                vectors.append(row)
            else:
                self._payloads[idx] = dict(point.payload)
                vectors[idx] = row
        self._vectors = np.vstack(vectors).astype("float32")
        self._save()
        return len(points)

    def delete_by_filename(self, filename: str) -> int:
        keep = [
            idx
            for idx, payload in enumerate(self._payloads)
            if payload.get("filename") != filename
        ]
        deleted = len(self._payloads) - len(keep)
        if not deleted:
            return 0
        self._point_ids = [self._point_ids[idx] for idx in keep]
        self._payloads = [self._payloads[idx] for idx in keep]
        if keep:
            self._vectors = self._vectors[keep]
        else:
            self._vectors = np.zeros((0, 0), dtype="float32")
        self._save()
        return deleted

    def list_filenames(self) -> list[tuple[str, int]]:
        counts = Counter(
            payload["filename"]
            for payload in self._payloads
            if isinstance(payload.get("filename"), str)
        )
        return sorted(counts.items())

    def count(self) -> int:
        return len(self._point_ids)


def _filter_faiss_hits(ids: np.ndarray, scores: np.ndarray) -> list[tuple[float, int]]:
    """Drop the ``-1`` padding FAISS returns when fewer than ``k`` hits exist."""
    hits: list[tuple[float, int]] = []
    for vector_id, score in zip(ids.tolist(), scores.tolist(), strict=False):
        if vector_id < 0:
            continue
        hits.append((float(score), int(vector_id)))
    return hits


class FaissGateway(RetrievalGateway):
    """Points in SQLite, cosine ANN search through a FAISS HNSW index."""

    name = "faiss"

    def __init__(self, db_path: Path, index_path: Path) -> None:
        self.db_path = db_path
        self.index_path = index_path
        self._index: faiss.Index | None = None
        self._index_id: str | None = None
        try:
            with connect(self.db_path) as conn:
                migrate_schema(conn)
                conn.commit()
        except sqlite3.Error as exc:
            raise RetrievalError(f"Failed to open library at {db_path}: {exc}") from exc

    def _load_index(self, conn: sqlite3.Connection) -> faiss.Index:
        if not index_is_current(conn, self.index_path):
            build_vector_index(conn, self.index_path)
        manifest = get_active_index_manifest(conn)
        index_id = manifest["index_id"] if manifest is not None else None
        if self._index is None or self._index_id != index_id:
            self._index = faiss.read_index(str(self.index_path))
            self._index_id = index_id
        return self._index

    def search(self, vector: Sequence[float] | np.ndarray, limit: int) -> list[Candidate]:
        if limit <= 0:
            return []
        query = normalize_rows(np.asarray(vector, dtype="float32").reshape(1, -1))
        try:
            with connect(self.db_path) as conn:
                require_schema(conn)
                if count_points(conn) == 0:
                    return []
                index = self._load_index(conn)
                if query.shape[1] != index.d:
                    raise RetrievalError(
                        f"Query dimension {query.shape[1]} does not match index dimension {index.d}"
                    )
                scores, ids = index.search(query, limit)
                hits = _filter_faiss_hits(ids[0], scores[0])
                payloads = fetch_payloads_by_vector_ids(
                    conn, [vector_id for _, vector_id in hits]
                )
        except (sqlite3.Error, RuntimeError, OSError) as exc:
            raise RetrievalError(f"Vector search failed: {exc}") from exc
        return [
            Candidate(score=score, payload=payloads[vector_id])
            for score, vector_id in hits
            if vector_id in payloads
        ]

    def upsert(self, points: Sequence[VectorPoint]) -> int:
        if not points:
            return 0
        try:
            with connect(self.db_path) as conn:
                require_schema(conn)
                written = insert_points(conn, points)
                build_vector_index(conn, self.index_path)
                conn.commit()
        except (sqlite3.Error, RuntimeError, OSError) as exc:
            raise RetrievalError(f"Failed to upsert points: {exc}") from exc
        return written

    def delete_by_filename(self, filename: str) -> int:
        try:
            with connect(self.db_path) as conn:
                require_schema(conn)
                deleted = delete_points_by_filename(conn, filename)
                if deleted:
                    build_vector_index(conn, self.index_path)
                conn.commit()
        except (sqlite3.Error, RuntimeError, OSError) as exc:
            raise RetrievalError(f"Failed to delete points for {filename}: {exc}") from exc
        return deleted

    def list_filenames(self) -> list[tuple[str, int]]:
        try:
            with connect(self.db_path) as conn:
                require_schema(conn)
                return list_filenames(conn)
        except (sqlite3.Error, RuntimeError) as exc:
            raise RetrievalError(f"Failed to list documents: {exc}") from exc

    def count(self) -> int:
        try:
            with connect(self.db_path) as conn:
                require_schema(conn)
                return count_points(conn)
        except (sqlite3.Error, RuntimeError) as exc:
            raise RetrievalError(f"Failed to count points: {exc}") from exc


def create_gateway(settings: Settings) -> RetrievalGateway:
    if settings.store_backend == "memory":
        return MemoryGateway(settings.memory_store_dir)
    if settings.store_backend == "faiss":
        return FaissGateway(settings.db_path, settings.index_path)
    raise ValueError(f"Unsupported store backend: {settings.store_backend}")
