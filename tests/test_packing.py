import pytest

from ghost_librarian.compression import estimate_tokens
from ghost_librarian.models import PackResult, ScoredChunk
from ghost_librarian.packing import build_result, pack_context


def _words(prefix: str, count: int) -> str:
    return " ".join(f"{prefix}{idx}" for idx in range(count))


def _chunk(section: str, text: str, score: float = 0.5) -> ScoredChunk:
    return ScoredChunk(text=text, section=section, filename="doc.md", score=score)


def test_second_chunk_dropped_when_remaining_budget_is_small() -> None:
    # 46 stopword-free words -> ceil(46 * 1.3) = 60 tokens each
    first = _chunk("A", _words("alpha", 46))
    second = _chunk("B", _words("beta", 46))
    assert estimate_tokens(first.text) == 60

    packed = pack_context([first, second], budget=100)

    assert packed.chunks_packed == 1
    assert packed.truncated is False
    assert packed.context == f"[A] {first.text}"
    assert packed.original_tokens == 120
    assert packed.distilled_tokens == estimate_tokens(packed.context)


def test_final_chunk_truncated_when_enough_budget_remains() -> None:
    first = _chunk("A", _words("alpha", 46))
    second = _chunk("B", _words("beta", 200))

    packed = pack_context([first, second], budget=200)

    entries = packed.context.split("\n\n")
    assert len(entries) == 2
    assert packed.truncated is True
    assert entries[1].startswith("[B] beta0 beta1")
    # remaining = 140 -> floor(140 / 1.3) = 107 words plus the section label
    assert len(entries[1].split()) == 108


def test_unattempted_chunks_do_not_count_toward_original_tokens() -> None:
    chunks = [_chunk(name, _words(name, 46)) for name in ("a", "b", "c")]
    packed = pack_context(chunks, budget=100)
    assert packed.original_tokens == 120


def test_chunk_that_exactly_fills_budget_is_included() -> None:
    chunk = _chunk("A", _words("alpha", 46))
    packed = pack_context([chunk], budget=60)
    assert packed.chunks_packed == 1
    assert packed.truncated is False


def test_entries_are_compressed_and_labelled() -> None:
    chunks = [
        _chunk("Intro", "The cache is not invalidated"),
        _chunk("Usage", "In order to run the tool, install it"),
    ]
    packed = pack_context(chunks, budget=3000)
    assert packed.context == "[Intro] cache not invalidated\n\n[Usage] run tool, install"
    assert packed.original_tokens == estimate_tokens(chunks[0].text) + estimate_tokens(
        chunks[1].text
    )


def test_pack_context_empty_input() -> None:
    packed = pack_context([], budget=3000)
    assert packed == PackResult(
        context="", original_tokens=0, distilled_tokens=0, chunks_packed=0, truncated=False
    )


def test_build_result_ratio() -> None:
    packed = PackResult(
        context="x", original_tokens=100, distilled_tokens=40, chunks_packed=1, truncated=False
    )
    result = build_result(packed, chunks_retrieved=5, chunks_after_dedup=3)
    assert result.compression_ratio == pytest.approx(0.6)
    assert result.chunks_retrieved == 5
    assert result.chunks_after_dedup == 3


def test_build_result_zero_and_negative_ratio() -> None:
    empty = PackResult(
        context="", original_tokens=0, distilled_tokens=0, chunks_packed=0, truncated=False
    )
    assert build_result(empty, chunks_retrieved=0, chunks_after_dedup=0).compression_ratio == 0.0

    grown = PackResult(
        context="[s] a", original_tokens=2, distilled_tokens=3, chunks_packed=1, truncated=False
    )
    assert build_result(grown, chunks_retrieved=1, chunks_after_dedup=1).compression_ratio == pytest.approx(-0.5)
