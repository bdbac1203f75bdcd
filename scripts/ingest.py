"""Script to add a document to the library."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

try:
    from ghost_librarian.config import load_settings
    from ghost_librarian.embeddings import Embedder
    from ghost_librarian.errors import GhostLibrarianError
    from ghost_librarian.ingestion import ingest_file
    from ghost_librarian.retrieval import create_gateway
except ModuleNotFoundError:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from ghost_librarian.config import load_settings  # type: ignore[reportMissingImports]
    from ghost_librarian.embeddings import Embedder  # type: ignore[reportMissingImports]
    from ghost_librarian.errors import GhostLibrarianError  # type: ignore[reportMissingImports]
    from ghost_librarian.ingestion import ingest_file  # type: ignore[reportMissingImports]
    from ghost_librarian.retrieval import create_gateway  # type: ignore[reportMissingImports]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Add a document to the library (supports .md, .txt, .pdf)"
    )
    parser.add_argument("path", type=Path, help="Path to the document file")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Chunk size in characters (default from GHOST_CHUNK_SIZE or 2000)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = load_settings()
    if not args.path.exists():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    settings.ensure_data_dirs()
    try:
        summary = ingest_file(
            args.path,
            embedder=Embedder.from_settings(settings),
            gateway=create_gateway(settings),
            chunk_size=(
                args.chunk_size if args.chunk_size is not None else settings.chunk_size
            ),
            batch_size=settings.embedding_batch_size,
        )
    except (GhostLibrarianError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(
        f"Successfully indexed {summary.chunks_added} chunks from {summary.filename} "
        f"({summary.estimated_tokens} tokens est.)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
