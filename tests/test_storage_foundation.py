import json
from pathlib import Path

import numpy as np
import pytest

from ghost_librarian.indexing import build_vector_index, index_is_current
from ghost_librarian.models import VectorPoint
from ghost_librarian.storage import (
    connect,
    count_points,
    delete_points_by_filename,
    fetch_payloads_by_vector_ids,
    get_active_index_manifest,
    get_all_vectors,
    insert_points,
    list_filenames,
    log_run,
    migrate_schema,
    require_schema,
)


def _point(point_id: str, filename: str, vector: list[float]) -> VectorPoint:
    return VectorPoint(
        point_id=point_id,
        vector=np.asarray(vector, dtype="float32"),
        payload={"filename": filename, "section": "Intro", "chunk_index": 0, "text": point_id},
    )


def test_require_schema_fails_before_migration(tmp_path: Path) -> None:
    with connect(tmp_path / "library.db") as conn:
        with pytest.raises(RuntimeError):
            require_schema(conn)
        migrate_schema(conn)
        require_schema(conn)


def test_insert_list_and_delete_points(tmp_path: Path) -> None:
    with connect(tmp_path / "library.db") as conn:
        migrate_schema(conn)
        insert_points(
            conn,
            [
                _point("p1", "b.md", [1.0, 0.0]),
                _point("p2", "a.md", [0.0, 1.0]),
                _point("p3", "b.md", [1.0, 1.0]),
            ],
        )
        assert count_points(conn) == 3
        assert list_filenames(conn) == [("a.md", 1), ("b.md", 2)]

        ids, matrix = get_all_vectors(conn)
        assert ids.tolist() == sorted(ids.tolist())
        assert matrix.shape == (3, 2)

        payloads = fetch_payloads_by_vector_ids(conn, ids.tolist())
        assert {payload["text"] for payload in payloads.values()} == {"p1", "p2", "p3"}

        assert delete_points_by_filename(conn, "b.md") == 2
        assert list_filenames(conn) == [("a.md", 1)]


def test_insert_points_replaces_same_point_id(tmp_path: Path) -> None:
    with connect(tmp_path / "library.db") as conn:
        migrate_schema(conn)
        insert_points(conn, [_point("p1", "a.md", [1.0, 0.0])])
        insert_points(conn, [_point("p1", "renamed.md", [0.0, 1.0])])
        assert count_points(conn) == 1
        assert list_filenames(conn) == [("renamed.md", 1)]


def test_index_manifest_tracks_point_snapshot(tmp_path: Path) -> None:
    index_path = tmp_path / "indexes" / "library.faiss"
    with connect(tmp_path / "library.db") as conn:
        migrate_schema(conn)
        assert index_is_current(conn, index_path) is False

        insert_points(conn, [_point("p1", "a.md", [1.0, 0.0, 0.0])])
        summary = build_vector_index(conn, index_path)
        assert summary.vectors_indexed == 1
        assert summary.dim == 3
        assert index_path.exists()
        assert index_is_current(conn, index_path) is True

        insert_points(conn, [_point("p2", "a.md", [0.0, 1.0, 0.0])])
        assert index_is_current(conn, index_path) is False

        delete_points_by_filename(conn, "a.md")
        summary = build_vector_index(conn, index_path)
        assert summary.vectors_indexed == 0
        assert not index_path.exists()
        manifest = get_active_index_manifest(conn)
        assert manifest is not None
        assert int(manifest["point_count"]) == 0


def test_log_run_records_stats(tmp_path: Path) -> None:
    with connect(tmp_path / "library.db") as conn:
        migrate_schema(conn)
        log_run(conn, query="what is distillation?", stats={"chunks_retrieved": 4}, latency_ms=12.5)
        conn.commit()
        row = conn.execute("SELECT query, stats, latency_ms FROM runs").fetchone()
    assert row["query"] == "what is distillation?"
    assert json.loads(row["stats"]) == {"chunks_retrieved": 4}
    assert row["latency_ms"] == pytest.approx(12.5)
