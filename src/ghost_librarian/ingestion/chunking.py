"""Markdown-aware chunking."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ghost_librarian.ingestion.sections import heading_text
from ghost_librarian.models import NO_HEADING_SECTION, ChunkSpan

_WORD_RE = re.compile(r"\S+")


@dataclass(frozen=True)
class _Block:
    start: int
    end: int
    heading: str | None = None


def _blocks(text: str) -> list[_Block]:
    """Paragraphs separated by blank lines; heading lines are blocks of their own."""
    blocks: list[_Block] = []
    para_start: int | None = None
    para_end = 0
    pos = 0
    for line in text.splitlines(keepends=True):
        line_start = pos
        pos += len(line)
        content = line.rstrip("\r\n")
        if not content.strip():
            if para_start is not None:
                blocks.append(_Block(para_start, para_end))
                para_start = None
            continue
        heading = heading_text(content)
        if heading is not None:
            if para_start is not None:
                blocks.append(_Block(para_start, para_end))
                para_start = None
            blocks.append(_Block(line_start, line_start + len(content), heading))
            continue
        if para_start is None:
            para_start = line_start
        para_end = line_start + len(content)
    if para_start is not None:
        blocks.append(_Block(para_start, para_end))
    return blocks


def _split_long(text: str, block: _Block, chunk_size: int) -> list[_Block]:
    pieces: list[_Block] = []
    piece_start: int | None = None
    piece_end = block.start
    for match in _WORD_RE.finditer(text, block.start, block.end):
        start, end = match.start(), match.end()
        if end - start > chunk_size:
            if piece_start is not None:
                pieces.append(_Block(piece_start, piece_end))
                piece_start = None
            for cursor in range(start, end, chunk_size):
                pieces.append(_Block(cursor, min(cursor + chunk_size, end)))
            continue
        if piece_start is not None and end - piece_start > chunk_size:
            pieces.append(_Block(piece_start, piece_end))
            piece_start = None
        if piece_start is None:
            piece_start = start
        piece_end = end
    if piece_start is not None:
        pieces.append(_Block(piece_start, piece_end))
    return pieces


def chunk_markdown(text: str, *, chunk_size: int = 2000) -> list[ChunkSpan]:
    """Greedily pack paragraphs into chunks of at most ``chunk_size`` characters.

    A heading always opens a new chunk and labels every chunk after it until
    the next heading; content before the first heading is ``(no heading)``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    spans: list[ChunkSpan] = []
    current: list[_Block] = []
    section = NO_HEADING_SECTION
    current_section = section

    def flush() -> None:
        if not current:
            return
        start, end = current[0].start, current[-1].end
        chunk = text[start:end].strip()
        if chunk:
            spans.append(
                ChunkSpan(
                    text=chunk,
                    section=current_section,
                    start_offset=start,
                    end_offset=end,
                )
            )
        current.clear()

    for block in _blocks(text):
        if block.heading is not None:
            flush()
            section = block.heading
            current_section = section
            current.append(block)
            continue
        if block.end - block.start > chunk_size:
            pieces = _split_long(text, block, chunk_size)
        else:
            pieces = [block]
        for piece in pieces:
            if current and piece.end - current[0].start > chunk_size:
                flush()
            if not current:
                current_section = section
            current.append(piece)
    flush()
    return spans
