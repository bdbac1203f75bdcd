"""Markdown heading detection."""

from __future__ import annotations

import re

HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")


def heading_text(line: str) -> str | None:
    """Return the title of an ATX heading line, or ``None`` for body text."""
    match = HEADING_RE.match(line.strip())
    return match.group(2).strip() if match else None
