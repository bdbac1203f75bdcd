"""Document ingestion."""

from .pipeline import ingest_file

__all__ = ["ingest_file"]
