"""Locate a task's source quote inside the cleaned document text."""

from __future__ import annotations

import re
from collections.abc import Sequence

from src.extraction.models import SourceLocation
from src.ingestion.models import DocumentSection

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def _find_offset(quote: str, text: str) -> int:
    offset = text.find(quote)
    if offset != -1:
        return offset

    offset = text.lower().find(quote.lower())
    if offset != -1:
        return offset

    # Whitespace-insensitive: the model may re-flow line breaks inside a quote.
    words = quote.split()
    if not words:
        return -1
    pattern = r"\s+".join(re.escape(word) for word in words)
    match = re.search(pattern, text, re.IGNORECASE)
    return match.start() if match else -1


def _matching_section(
    quote: str, offset: int, sections: Sequence[DocumentSection]
) -> DocumentSection | None:
    lowered = " ".join(quote.lower().split())
    for section in sections:
        if lowered and lowered in " ".join(section.content.lower().split()):
            return section
    for section in sections:
        if section.start_offset <= offset < section.end_offset:
            return section
    return None


def locate_quote(
    quote: str,
    text: str,
    sections: Sequence[DocumentSection] | None = None,
) -> SourceLocation | None:
    """Return where *quote* appears in *text*, or ``None`` if it cannot be found."""
    if not quote or not quote.strip():
        return None

    offset = _find_offset(quote.strip(), text)
    if offset == -1:
        return None

    before = text[:offset]
    location = SourceLocation(
        char_offset=offset,
        line_number=before.count("\n") + 1,
        paragraph_index=len(_PARAGRAPH_BREAK_RE.findall(before)),
    )

    section = _matching_section(quote, offset, sections or [])
    if section is not None:
        location.page = section.page
        location.section = section.title
    return location
