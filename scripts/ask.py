"""Script to ask a question using context distillation and a local LLM."""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sqlite3
import sys
import time

try:
    from ghost_librarian.config import Settings, load_settings
    from ghost_librarian.distill import Distiller
    from ghost_librarian.embeddings import Embedder
    from ghost_librarian.errors import GhostLibrarianError
    from ghost_librarian.generation import ask_with_context, health_check
    from ghost_librarian.models import DistillResult
    from ghost_librarian.retrieval import create_gateway
    from ghost_librarian.storage import connect, log_run, migrate_schema
except ModuleNotFoundError:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from ghost_librarian.config import Settings, load_settings  # type: ignore[reportMissingImports]
    from ghost_librarian.distill import Distiller  # type: ignore[reportMissingImports]
    from ghost_librarian.embeddings import Embedder  # type: ignore[reportMissingImports]
    from ghost_librarian.errors import GhostLibrarianError  # type: ignore[reportMissingImports]
    from ghost_librarian.generation import (  # type: ignore[reportMissingImports]
        ask_with_context,
        health_check,
    )
    from ghost_librarian.models import DistillResult  # type: ignore[reportMissingImports]
    from ghost_librarian.retrieval import create_gateway  # type: ignore[reportMissingImports]
    from ghost_librarian.storage import (  # type: ignore[reportMissingImports]
        connect,
        log_run,
        migrate_schema,
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ask a question using context distillation + local LLM"
    )
    parser.add_argument("query", type=str, help="Your question")
    parser.add_argument(
        "-m",
        "--model",
        type=str,
        default=None,
        help="LLM model to use (default: llama3, override with GHOST_MODEL)",
    )
    parser.add_argument(
        "-b",
        "--budget",
        type=int,
        default=None,
        help="Context budget in tokens (default: 3000)",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Number of chunks to retrieve before dedup (default: 20)",
    )
    parser.add_argument(
        "--context-only",
        action="store_true",
        help="Print the distilled context instead of generating an answer",
    )
    return parser.parse_args()


def print_stats(result: DistillResult) -> None:
    print("--- Distillation Stats ---")
    print(f"  Chunks retrieved:   {result.chunks_retrieved}")
    print(f"  After dedup:        {result.chunks_after_dedup}")
    print(f"  Original tokens:    {result.original_tokens}")
    print(f"  Distilled tokens:   {result.distilled_tokens}")
    print(f"  Compression:        {result.compression_ratio * 100:.1f}%")
    print("--------------------------\n")


def record_run(settings: Settings, query: str, result: DistillResult, latency_ms: float) -> None:
    """Append the run to the library database; a failed write only warns."""
    try:
        with connect(settings.db_path) as conn:
            migrate_schema(conn)
            log_run(conn, query=query, stats=result.to_dict(), latency_ms=latency_ms)
            conn.commit()
    except (sqlite3.Error, OSError, RuntimeError) as exc:
        print(f"Warning: could not record run: {exc}", file=sys.stderr)


def main() -> int:
    args = parse_args()
    settings = load_settings()
    if args.top_k is not None:
        settings = replace(settings, top_k=args.top_k)

    if not args.context_only and not health_check(settings):
        print("Ollama is not reachable.\nStart it with: ollama serve", file=sys.stderr)
        return 1

    start = time.perf_counter()
    try:
        distiller = Distiller(
            Embedder.from_settings(settings),
            create_gateway(settings),
            settings.distill_config(args.budget),
        )
        print("Distilling context...\n")
        result = distiller.distill(args.query)
    except (GhostLibrarianError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    latency_ms = (time.perf_counter() - start) * 1000

    record_run(settings, args.query, result, latency_ms)

    if not result.context:
        print(
            "No relevant documents found. Add documents first with: "
            "python scripts/ingest.py <path>"
        )
        return 0

    print_stats(result)
    if args.context_only:
        print(result.context)
        return 0

    print("Generating answer...\n")
    try:
        ask_with_context(
            args.query,
            result.context,
            settings,
            model=args.model,
            on_token=lambda fragment: print(fragment, end="", flush=True),
        )
    except GhostLibrarianError as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        return 1
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
