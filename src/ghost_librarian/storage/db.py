"""SQLite schema and data access helpers for the FAISS-backed library."""

from __future__ import annotations

import hashlib
import json
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar
from uuid import uuid4

import numpy as np

from ghost_librarian.models import VectorPoint

SCHEMA_VERSION = 1
_REQUIRED_TABLES = {
    "schema_meta",
    "points",
    "index_manifests",
    "runs",
}


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=5.0)
    _configure_connection(conn)
    return conn


def _configure_connection(conn: sqlite3.Connection) -> None:
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA temp_store = MEMORY")
    conn.execute("PRAGMA busy_timeout = 5000")


_RETRY_ATTEMPTS = 3
_RETRY_BASE_DELAY = 0.05

T = TypeVar("T")


def _retry_locked(operation: Callable[[], T]) -> T:
    """Run a write, backing off while another connection holds the lock."""
    for attempt in range(_RETRY_ATTEMPTS):
        try:
            return operation()
        except sqlite3.OperationalError as exc:
            message = str(exc).lower()
            retryable = "locked" in message or "busy" in message
            if not retryable or attempt == _RETRY_ATTEMPTS - 1:
                raise
            time.sleep(_RETRY_BASE_DELAY * (2**attempt))
    raise sqlite3.OperationalError("retry attempts exhausted")


def _execute_with_retry(
    conn: sqlite3.Connection, sql: str, params: tuple | list = ()
) -> sqlite3.Cursor:
    return _retry_locked(lambda: conn.execute(sql, params))


def _ensure_schema_version(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_meta (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            schema_version INTEGER NOT NULL
        )
        """
    )
    row = conn.execute("SELECT schema_version FROM schema_meta WHERE id = 1").fetchone()
    if row is None:
        conn.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (SCHEMA_VERSION,),
        )
        return
    current = int(row["schema_version"])
    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )
    if current < SCHEMA_VERSION:
        conn.execute(
            "UPDATE schema_meta SET schema_version = ? WHERE id = 1",
            (SCHEMA_VERSION,),
        )


def migrate_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS points (
            vector_id INTEGER PRIMARY KEY AUTOINCREMENT,
            point_id TEXT NOT NULL UNIQUE,
            filename TEXT NOT NULL,
            section TEXT,
            chunk_index INTEGER,
            payload TEXT NOT NULL,
            vector BLOB NOT NULL,
            dim INTEGER NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS index_manifests (
            index_id TEXT PRIMARY KEY,
            dim INTEGER NOT NULL,
            point_count INTEGER NOT NULL,
            snapshot_hash TEXT NOT NULL,
            faiss_path TEXT NOT NULL,
            created_at TEXT NOT NULL,
            active INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS runs (
            run_id TEXT PRIMARY KEY,
            query TEXT NOT NULL,
            stats TEXT,
            latency_ms REAL,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_points_filename ON points(filename);
        CREATE INDEX IF NOT EXISTS idx_index_manifests_active ON index_manifests(active);
        """
    )
    _ensure_schema_version(conn)


def require_schema(conn: sqlite3.Connection) -> None:
    tables = {
        row["name"]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')"
        ).fetchall()
    }
    missing = sorted(_REQUIRED_TABLES - tables)
    if missing:
        raise RuntimeError(
            "Database schema is not initialized. "
            f"Missing tables: {', '.join(missing)}."
        )
    row = conn.execute("SELECT schema_version FROM schema_meta WHERE id = 1").fetchone()
    if row is None:
        raise RuntimeError("Database schema metadata missing.")
    current = int(row["schema_version"])
    if current != SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is incompatible with required {SCHEMA_VERSION}."
        )


def _vector_to_blob(vector: np.ndarray) -> bytes:
    return np.asarray(vector, dtype="float32").ravel().tobytes()


def insert_points(conn: sqlite3.Connection, points: Iterable[VectorPoint]) -> int:
    created_at = datetime.now(timezone.utc).isoformat()
    rows = []
    for point in points:
        vector = np.asarray(point.vector, dtype="float32").ravel()
        rows.append(
            (
                point.point_id,
                str(point.payload.get("filename", "")),
                point.payload.get("section"),
                point.payload.get("chunk_index"),
                json.dumps(point.payload, default=str),
                _vector_to_blob(vector),
                int(vector.shape[0]),
                created_at,
            )
        )
    if not rows:
        return 0
    sql = """
        INSERT OR REPLACE INTO points
            (point_id, filename, section, chunk_index, payload, vector, dim, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """
    _retry_locked(lambda: conn.executemany(sql, rows))
    return len(rows)


def delete_points_by_filename(conn: sqlite3.Connection, filename: str) -> int:
    cursor = _execute_with_retry(
        conn, "DELETE FROM points WHERE filename = ?", (filename,)
    )
    return int(cursor.rowcount)


def list_filenames(conn: sqlite3.Connection) -> list[tuple[str, int]]:
    rows = conn.execute(
        """
        SELECT filename, COUNT(*) AS chunks
        FROM points
        GROUP BY filename
        ORDER BY filename
        """
    ).fetchall()
    return [(row["filename"], int(row["chunks"])) for row in rows]


def count_points(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) AS total FROM points").fetchone()
    return int(row["total"]) if row else 0


def get_all_vectors(conn: sqlite3.Connection) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(vector_ids, matrix)`` ordered by ``vector_id``."""
    rows = conn.execute(
        "SELECT vector_id, vector, dim FROM points ORDER BY vector_id"
    ).fetchall()
    if not rows:
        return np.zeros((0,), dtype="int64"), np.zeros((0, 0), dtype="float32")
    dims = {int(row["dim"]) for row in rows}
    if len(dims) != 1:
        raise RuntimeError(
            f"Stored vectors have mixed dimensions: {sorted(dims)}"
        )
    ids = np.asarray([row["vector_id"] for row in rows], dtype="int64")
    matrix = np.vstack(
        [np.frombuffer(row["vector"], dtype="float32") for row in rows]
    )
    return ids, matrix


def fetch_payloads_by_vector_ids(
    conn: sqlite3.Connection, vector_ids: list[int]
) -> dict[int, dict[str, Any]]:
    if not vector_ids:
        return {}
    placeholders = ",".join(["?"] * len(vector_ids))
    rows = conn.execute(
        f"SELECT vector_id, payload FROM points WHERE vector_id IN ({placeholders})",
        vector_ids,
    ).fetchall()
    payloads: dict[int, dict[str, Any]] = {}
    for row in rows:
        payloads[int(row["vector_id"])] = _decode_payload(row["payload"])
    return payloads


def _decode_payload(raw: str | None) -> dict[str, Any]:
    try:
        payload = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


def compute_points_snapshot_hash(conn: sqlite3.Connection) -> str:
    digest = hashlib.sha256()
    rows = conn.execute("SELECT vector_id FROM points ORDER BY vector_id").fetchall()
    for row in rows:
        digest.update(str(row["vector_id"]).encode("utf-8"))
        digest.update(b"|")
    return digest.hexdigest()


def deactivate_index_manifests(conn: sqlite3.Connection) -> None:
    _execute_with_retry(conn, "UPDATE index_manifests SET active = 0 WHERE active = 1")


def insert_index_manifest(
    conn: sqlite3.Connection,
    *,
    dim: int,
    point_count: int,
    snapshot_hash: str,
    faiss_path: str,
    active: int = 1,
) -> str:
    index_id = f"idx_{uuid4()}"
    _execute_with_retry(
        conn,
        """
        INSERT INTO index_manifests (
            index_id,
            dim,
            point_count,
            snapshot_hash,
            faiss_path,
            created_at,
            active
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            index_id,
            dim,
            point_count,
            snapshot_hash,
            faiss_path,
            datetime.now(timezone.utc).isoformat(),
            active,
        ),
    )
    return index_id


def get_active_index_manifest(conn: sqlite3.Connection) -> sqlite3.Row | None:
    return conn.execute(
        "SELECT * FROM index_manifests WHERE active = 1 ORDER BY created_at DESC LIMIT 1"
    ).fetchone()


def log_run(
    conn: sqlite3.Connection,
    *,
    query: str,
    stats: dict[str, Any],
    latency_ms: float,
) -> None:
    _execute_with_retry(
        conn,
        """
        INSERT INTO runs (run_id, query, stats, latency_ms, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            str(uuid4()),
            query,
            json.dumps(stats),
            latency_ms,
            datetime.now(timezone.utc).isoformat(),
        ),
    )
