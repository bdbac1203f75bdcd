"""Hybrid relevance scoring: vector similarity blended with keyword relevance."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Sequence

from ghost_librarian.compression import trim_token
from ghost_librarian.models import UNKNOWN_SECTION, Candidate, ScoredChunk

VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
# Measured in UTF-8 bytes, so a single CJK character is long enough.
MIN_TERM_BYTES = 3


def extract_terms(query: str) -> list[str]:
    """Lowercased, punctuation-trimmed query words longer than two bytes.

    Order is preserved and duplicates are kept, so a repeated term weighs more
    in ``keyword_score``.
    """
    terms: list[str] = []
    for word in query.split():
        term = trim_token(word.lower())
        if len(term.encode("utf-8")) >= MIN_TERM_BYTES:
            terms.append(term)
    return terms


def keyword_score(text: str, terms: Sequence[str]) -> float:
    """Per-chunk term-frequency score in ``[0, 1]``.

    The ``ln(1 + count) + 1`` factor is computed from the chunk's own counts,
    not from corpus document frequencies.
    """
    if not terms:
        return 0.0
    words = [trim_token(word) for word in text.lower().split()]
    total_words = len(words)
    if total_words == 0:
        return 0.0

    score = 0.0
    for term in terms:
        count = sum(1 for word in words if word == term)
        tf = count / total_words
        pseudo_idf = math.log(1 + count) + 1
        score += tf * pseudo_idf
    return min(score / len(terms), 1.0)


def hybrid_score(vector_similarity: float, keyword: float) -> float:
    return VECTOR_WEIGHT * vector_similarity + KEYWORD_WEIGHT * keyword


def _payload_str(payload: Mapping[str, Any], key: str, default: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else default


def score_candidates(
    candidates: Iterable[Candidate], terms: Sequence[str]
) -> list[ScoredChunk]:
    scored: list[ScoredChunk] = []
    for candidate in candidates:
        payload = candidate.payload if isinstance(candidate.payload, Mapping) else {}
        text = _payload_str(payload, "text", "")
        scored.append(
            ScoredChunk(
                text=text,
                section=_payload_str(payload, "section", UNKNOWN_SECTION),
                filename=_payload_str(payload, "filename", ""),
                score=hybrid_score(float(candidate.score), keyword_score(text, terms)),
            )
        )
    return scored


def rank_chunks(chunks: Iterable[ScoredChunk]) -> list[ScoredChunk]:
    # sorted() is stable with reverse=True, so ties keep retrieval order.
    return sorted(chunks, key=lambda chunk: chunk.score, reverse=True)
