"""Tests for locating source quotes in cleaned text."""

from __future__ import annotations

from src.extraction.location import locate_quote
from src.ingestion.models import DocumentSection

TEXT = "Launch review\n\nAlex to confirm access.\nPriya books the venue.\n\nSam sends the\nagenda."


class TestLocateQuote:
    def test_exact_match(self) -> None:
        location = locate_quote("Priya books the venue.", TEXT)
        assert location is not None
        assert location.char_offset == TEXT.index("Priya")
        assert location.line_number == 4
        assert location.paragraph_index == 1

    def test_case_insensitive(self) -> None:
        location = locate_quote("alex TO confirm access", TEXT)
        assert location is not None
        assert location.char_offset == TEXT.index("Alex")

    def test_whitespace_insensitive(self) -> None:
        location = locate_quote("Sam sends the agenda.", TEXT)
        assert location is not None
        assert location.line_number == 6
        assert location.paragraph_index == 2

    def test_not_found(self) -> None:
        assert locate_quote("Nobody said this.", TEXT) is None
        assert locate_quote("  ", TEXT) is None

    def test_section_and_page(self) -> None:
        sections = [
            DocumentSection(title="Page 1", content="Launch review", start_offset=0, end_offset=13, page=1),
            DocumentSection(
                title="Page 2",
                content=TEXT[15:],
                start_offset=15,
                end_offset=len(TEXT),
                page=2,
            ),
        ]
        location = locate_quote("Priya books the venue.", TEXT, sections)
        assert location is not None
        assert location.page == 2
        assert location.section == "Page 2"
