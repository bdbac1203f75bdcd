"""Budget-aware packing of compressed chunks and result aggregation."""

from __future__ import annotations

from typing import Iterable

from ghost_librarian.compression import (
    compress_text,
    estimate_tokens,
    truncate_to_tokens,
)
from ghost_librarian.models import DistillResult, PackResult, ScoredChunk

# Below this many leftover tokens a partial chunk is not worth emitting.
MIN_TRUNCATION_TOKENS = 50
ENTRY_SEPARATOR = "\n\n"


def format_entry(section: str, text: str) -> str:
    return f"[{section}] {text}"


def pack_context(chunks: Iterable[ScoredChunk], budget: int) -> PackResult:
    """Greedily fill ``budget`` tokens with compressed chunks, in order.

    The first chunk that does not fit is truncated (when more than
    ``MIN_TRUNCATION_TOKENS`` remain) or dropped, and packing stops there.
    ``original_tokens`` counts only the chunks attempted up to that point.
    """
    entries: list[str] = []
    original_tokens = 0
    accumulated = 0
    truncated = False

    for chunk in chunks:
        original_tokens += estimate_tokens(chunk.text)
        compressed = compress_text(chunk.text)
        compressed_tokens = estimate_tokens(compressed)

        if accumulated + compressed_tokens <= budget:
            entries.append(format_entry(chunk.section, compressed))
            accumulated += compressed_tokens
            continue

        remaining = budget - accumulated
        if remaining > MIN_TRUNCATION_TOKENS:
            entries.append(
                format_entry(chunk.section, truncate_to_tokens(compressed, remaining))
            )
            truncated = True
        break

    context = ENTRY_SEPARATOR.join(entries)
    return PackResult(
        context=context,
        original_tokens=original_tokens,
        distilled_tokens=estimate_tokens(context),
        chunks_packed=len(entries),
        truncated=truncated,
    )


def build_result(
    packed: PackResult, *, chunks_retrieved: int, chunks_after_dedup: int
) -> DistillResult:
    if packed.original_tokens > 0:
        ratio = 1.0 - packed.distilled_tokens / packed.original_tokens
    else:
        ratio = 0.0
    return DistillResult(
        context=packed.context,
        original_tokens=packed.original_tokens,
        distilled_tokens=packed.distilled_tokens,
        compression_ratio=ratio,
        chunks_retrieved=chunks_retrieved,
        chunks_after_dedup=chunks_after_dedup,
    )
