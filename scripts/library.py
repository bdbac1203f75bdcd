"""Library management: list, delete, stats and health check."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

try:
    from ghost_librarian.config import Settings, load_settings
    from ghost_librarian.embeddings import Embedder
    from ghost_librarian.errors import GhostLibrarianError
    from ghost_librarian.generation import health_check, list_models
    from ghost_librarian.retrieval import RetrievalGateway, create_gateway
except ModuleNotFoundError:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from ghost_librarian.config import Settings, load_settings  # type: ignore[reportMissingImports]
    from ghost_librarian.embeddings import Embedder  # type: ignore[reportMissingImports]
    from ghost_librarian.errors import GhostLibrarianError  # type: ignore[reportMissingImports]
    from ghost_librarian.generation import (  # type: ignore[reportMissingImports]
        health_check,
        list_models,
    )
    from ghost_librarian.retrieval import (  # type: ignore[reportMissingImports]
        RetrievalGateway,
        create_gateway,
    )

EMPTY_HINT = "No documents indexed. Add one with: python scripts/ingest.py <path>"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the local document library")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("list", help="List all indexed documents")
    delete = commands.add_parser("delete", help="Delete an indexed document by filename")
    delete.add_argument("filename", type=str, help="Filename as shown by `list`")
    commands.add_parser("stats", help="Show index statistics")
    commands.add_parser("check", help="Health check for Ollama and the store")
    return parser.parse_args()


def cmd_list(gateway: RetrievalGateway) -> int:
    files = gateway.list_filenames()
    if not files:
        print(EMPTY_HINT)
        return 0
    print("Indexed documents:\n")
    for filename, chunks in files:
        print(f"  {filename}  ({chunks} chunks)")
    print(f"\n  Total: {len(files)} document(s)")
    return 0


def cmd_delete(gateway: RetrievalGateway, filename: str) -> int:
    deleted = gateway.delete_by_filename(filename)
    if deleted > 0:
        print(f"Deleted {deleted} chunks for: {filename}")
    else:
        print(f"No chunks found for: {filename}")
        print("Use `python scripts/library.py list` to see indexed documents.")
    return 0


def cmd_stats(gateway: RetrievalGateway, settings: Settings) -> int:
    points = gateway.count()
    if points == 0:
        print(EMPTY_HINT)
        return 0
    print("Ghost Library Stats")
    print(f"  Store:       {gateway.name} ({settings.data_dir})")
    print(f"  Documents:   {len(gateway.list_filenames())}")
    print(f"  Chunks:      {points} indexed")
    return 0


def cmd_check(gateway: RetrievalGateway, settings: Settings) -> int:
    print("Ollama ...  ", end="")
    if health_check(settings):
        print("OK")
        try:
            models = list_models(settings)
        except GhostLibrarianError as exc:
            print(f"  Could not list models: {exc}")
        else:
            if models:
                print(f"  Models: {', '.join(models)}")
            else:
                print(f"  No models found, run: ollama pull {settings.ollama_model}")
    else:
        print("UNREACHABLE, run: ollama serve")
    print(f"Store  ...  OK ({gateway.count()} chunks)")
    embedder = Embedder.from_settings(settings)
    print(f"Embedder ...  OK ({embedder.backend}, {embedder.dimension()} dims)")
    return 0


def main() -> int:
    args = parse_args()
    settings = load_settings()
    try:
        gateway = create_gateway(settings)
        if args.command == "list":
            return cmd_list(gateway)
        if args.command == "delete":
            return cmd_delete(gateway, args.filename)
        if args.command == "stats":
            return cmd_stats(gateway, settings)
        return cmd_check(gateway, settings)
    except GhostLibrarianError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
