"""SQLite storage helpers."""

from .db import (
    compute_points_snapshot_hash,
    connect,
    count_points,
    deactivate_index_manifests,
    delete_points_by_filename,
    fetch_payloads_by_vector_ids,
    get_active_index_manifest,
    get_all_vectors,
    insert_index_manifest,
    insert_points,
    list_filenames,
    log_run,
    migrate_schema,
    require_schema,
)

__all__ = [
    "compute_points_snapshot_hash",
    "connect",
    "count_points",
    "deactivate_index_manifests",
    "delete_points_by_filename",
    "fetch_payloads_by_vector_ids",
    "get_active_index_manifest",
    "get_all_vectors",
    "insert_index_manifest",
    "insert_points",
    "list_filenames",
    "log_run",
    "migrate_schema",
    "require_schema",
]
