"""Document parsers for plain text, PDF, DOCX and email input.

Every parser returns a :class:`ParsedDocument` (text, optional sections,
metadata) or raises :class:`ParseError`. PDF extraction is tiered: pypdf
first, then pdfplumber, then PyMuPDF. A document only fails once every
strategy has produced no text.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from email import policy
from email.parser import BytesParser

import docx
from pypdf import PdfReader

from src.errors import InputError, ParseError
from src.events import EventSink, default_sink
from src.extraction.dates import isoformat_utc
from src.ingestion.email_thread import (
    DEFAULT_SUBJECT,
    clean_email_body,
    reconstruct_thread,
    thread_to_document,
)
from src.ingestion.models import DocumentSection, ParsedDocument
from src.ingestion.text_cleaning import html_to_text, word_count
from src.pipeline_config import InputType, PipelineConfig

logger = logging.getLogger(__name__)

SCANNED_PDF_HINT = (
    "The PDF may be image-based (a scanned document without a text layer), "
    "use a non-standard encoding, or be corrupted."
)


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------


def parse_text(text: str) -> ParsedDocument:
    """Wrap already-extracted text in a :class:`ParsedDocument`."""
    if not text or not text.strip():
        raise InputError("Text input is empty")
    return ParsedDocument(text=text, metadata={"word_count": word_count(text)})


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


def _pages_to_document(pages: list[str], metadata: dict) -> ParsedDocument:
    sections: list[DocumentSection] = []
    parts: list[str] = []
    offset = 0
    for index, page_text in enumerate(pages, start=1):
        content = page_text.strip()
        if not content:
            continue
        if parts:
            offset += 2
        sections.append(
            DocumentSection(
                title=f"Page {index}",
                content=content,
                start_offset=offset,
                end_offset=offset + len(content),
                page=index,
            )
        )
        parts.append(content)
        offset += len(content)

    text = "\n\n".join(parts)
    return ParsedDocument(
        text=text,
        sections=sections or None,
        metadata={**metadata, "page_count": len(pages), "word_count": word_count(text)},
    )


def _iso_date(value: object) -> str | None:
    if isinstance(value, datetime):
        return isoformat_utc(value if value.tzinfo else value.replace(tzinfo=UTC))
    return None


def _extract_with_pypdf(raw: bytes) -> ParsedDocument:
    reader = PdfReader(io.BytesIO(raw))
    pages = [page.extract_text() or "" for page in reader.pages]
    metadata: dict[str, str | None] = {}
    info = reader.metadata
    if info is not None:
        metadata = {"author": info.author, "subject": info.subject or info.title}
        try:
            metadata["created_date"] = _iso_date(info.creation_date)
        except ValueError:
            # Malformed /CreationDate; the text is still usable.
            logger.debug("Ignoring unparseable PDF creation date %r", info.get("/CreationDate"))
    return _pages_to_document(pages, {k: v for k, v in metadata.items() if v})


def _extract_with_pdfplumber(raw: bytes) -> ParsedDocument:
    import pdfplumber

    with pdfplumber.open(io.BytesIO(raw)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
        info = pdf.metadata or {}
    metadata = {"author": info.get("Author"), "subject": info.get("Subject") or info.get("Title")}
    return _pages_to_document(pages, {k: v for k, v in metadata.items() if v})


def _extract_with_pymupdf(raw: bytes) -> ParsedDocument:
    import fitz  # PyMuPDF

    with fitz.open(stream=raw, filetype="pdf") as doc:
        pages = [page.get_text() or "" for page in doc]
        info = doc.metadata or {}
    metadata = {"author": info.get("author"), "subject": info.get("subject") or info.get("title")}
    return _pages_to_document(pages, {k: v for k, v in metadata.items() if v})


PDF_STRATEGIES: list[tuple[str, Callable[[bytes], ParsedDocument]]] = [
    ("pypdf", _extract_with_pypdf),
    ("pdfplumber", _extract_with_pdfplumber),
    ("pymupdf", _extract_with_pymupdf),
]


def parse_pdf(raw: bytes, events: EventSink | None = None) -> ParsedDocument:
    """Extract text from a PDF, trying each strategy in :data:`PDF_STRATEGIES`.

    A strategy fails when it raises or returns no text. The first strategy that
    yields text wins.

    Raises:
        ParseError: Every strategy failed. ``attempts`` lists each strategy
            with the reason it failed.
    """
    sink = events or default_sink()
    attempts: list[tuple[str, str]] = []

    for name, strategy in PDF_STRATEGIES:
        try:
            document = strategy(raw)
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
        else:
            if document.text.strip():
                sink.emit("pdf.strategy_succeeded", strategy=name, pages=document.metadata.get("page_count"))
                return document
            reason = "no text extracted"
        attempts.append((name, reason))
        sink.emit("pdf.strategy_failed", level=logging.WARNING, strategy=name, reason=reason)

    details = "; ".join(f"{name}: {reason}" for name, reason in attempts)
    raise ParseError(
        f"Unable to extract text from PDF. {SCANNED_PDF_HINT} Attempts: {details}",
        attempts=attempts,
    )


# ---------------------------------------------------------------------------
# DOCX
# ---------------------------------------------------------------------------


def _heading_level(style_name: str) -> int | None:
    if style_name == "Title":
        return 0
    if style_name.startswith("Heading"):
        suffix = style_name.removeprefix("Heading").strip()
        return int(suffix) if suffix.isdigit() else 1
    return None


def parse_docx(raw: bytes) -> ParsedDocument:
    """Extract paragraph text from a Word document.

    Heading paragraphs open a new section; the section's content is the body
    text up to the next heading.
    """
    try:
        document = docx.Document(io.BytesIO(raw))
    except Exception as exc:
        raise ParseError(f"DOCX parsing failed: {exc}", attempts=[("python-docx", str(exc))]) from exc

    lines: list[str] = []
    sections: list[DocumentSection] = []
    body: list[str] = []
    offset = 0

    def close_section() -> None:
        if sections:
            section = sections[-1]
            section.content = "\n".join(body)
            section.end_offset = offset - 1 if body else section.end_offset

    for paragraph in document.paragraphs:
        text = paragraph.text.strip()
        if not text:
            continue
        style_name = paragraph.style.name if paragraph.style is not None else ""
        level = _heading_level(style_name or "")
        if level is not None:
            close_section()
            body = []
            sections.append(
                DocumentSection(
                    title=text,
                    content="",
                    start_offset=offset,
                    end_offset=offset + len(text),
                    level=level,
                )
            )
        else:
            body.append(text)
        lines.append(text)
        offset += len(text) + 1
    close_section()

    text = "\n".join(lines)
    if not text.strip():
        raise ParseError("DOCX document contains no text", attempts=[("python-docx", "no text extracted")])

    core = document.core_properties
    metadata = {
        "author": core.author or None,
        "subject": core.subject or core.title or None,
        "created_date": _iso_date(core.created),
        "word_count": word_count(text),
    }
    return ParsedDocument(
        text=text,
        sections=sections or None,
        metadata={k: v for k, v in metadata.items() if v is not None},
    )


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


def parse_eml(raw: bytes) -> ParsedDocument:
    """Parse a single message without reconstructing its thread.

    The text is ``"Subject: <subject>\\n\\n<cleaned body>"``.
    """
    try:
        msg = BytesParser(policy=policy.default).parsebytes(raw)
        part = msg.get_body(preferencelist=("plain", "html"))
        body = part.get_content() if part is not None else ""
        if part is not None and part.get_content_type() == "text/html":
            body = html_to_text(body)
    except (ValueError, LookupError, TypeError) as exc:
        raise ParseError(f"Email parsing failed: {exc}", attempts=[("email", str(exc))]) from exc

    subject = str(msg.get("Subject", "") or "").strip() or DEFAULT_SUBJECT
    text = f"Subject: {subject}\n\n{clean_email_body(body)}"

    created = None
    if msg.get("Date"):
        try:
            created = isoformat_utc(msg["Date"].datetime)
        except (AttributeError, TypeError, ValueError):
            created = None

    return ParsedDocument(
        text=text,
        metadata={
            "author": str(msg.get("From", "") or "") or None,
            "subject": subject,
            "created_date": created,
            "word_count": word_count(text),
        },
    )


def parse_email(
    raw: bytes,
    *,
    config: PipelineConfig,
    fallback_date: datetime | None = None,
    events: EventSink | None = None,
) -> ParsedDocument:
    """Parse email input, reconstructing the thread unless disabled in *config*."""
    if not config.parse_email_threads:
        return parse_eml(raw)
    thread = reconstruct_thread(
        raw,
        max_depth=config.max_email_depth,
        fallback_date=fallback_date,
        events=events,
    )
    return thread_to_document(thread)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def parse_document(
    input_type: InputType,
    *,
    text: str | None = None,
    data: bytes | None = None,
    config: PipelineConfig | None = None,
    fallback_date: datetime | None = None,
    events: EventSink | None = None,
) -> ParsedDocument:
    """Dispatch to the parser for *input_type*.

    Args:
        input_type: Declared kind of the input.
        text: Source text, required for ``InputType.TEXT``.
        data: Raw bytes, required for every other input type.
        config: Run configuration (email threading and depth ceiling).
        fallback_date: Date for email messages without a ``Date`` header.
        events: Sink for non-fatal diagnostics.

    Raises:
        InputError: The text or bytes required by *input_type* are missing.
        ParseError: The parser could not extract any text.
    """
    config = config or PipelineConfig()
    try:
        kind = InputType(input_type)
    except ValueError as exc:
        msg = f"Unknown input type: {input_type!r}. Supported: {[t.value for t in InputType]}"
        raise InputError(msg) from exc

    if kind == InputType.TEXT:
        if text is None:
            raise InputError("Text input requires text content")
        return parse_text(text)

    if not data:
        raise InputError(f"{kind.value.upper()} input requires file bytes")

    dispatch: dict[InputType, Callable[[bytes], ParsedDocument]] = {
        InputType.PDF: lambda raw: parse_pdf(raw, events=events),
        InputType.DOCX: parse_docx,
        InputType.EML: lambda raw: parse_email(
            raw, config=config, fallback_date=fallback_date, events=events
        ),
    }

    document = dispatch[kind](data)
    logger.info(
        "Parsed %s input: %d characters, %d sections",
        kind.value,
        len(document.text),
        len(document.sections or []),
    )
    return document
