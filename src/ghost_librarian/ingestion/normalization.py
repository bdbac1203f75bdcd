"""Text normalization helpers for ingestion.

Normalization runs before section extraction and chunking, so line structure
(markdown headings, blank-line paragraph breaks) and case are preserved.
"""

from __future__ import annotations

import re
import unicodedata


_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_INLINE_WHITESPACE_RE = re.compile(r"[ \t]+")


def normalize_text(text: str) -> str:
    """Normalize document text.

    Steps:
    - NFKC normalization to reduce unicode variants.
    - Strip control characters other than tab and newlines.
    - Collapse runs of spaces/tabs, trim every line and the whole text.
    """
    normalized = unicodedata.normalize("NFKC", text)
    normalized = _CONTROL_RE.sub("", normalized)
    normalized = _INLINE_WHITESPACE_RE.sub(" ", normalized)
    lines = [line.strip() for line in normalized.splitlines()]
    return "\n".join(lines).strip()
