"""Reconstruct a chronological thread from one raw email and its nested messages.

Forwarded chains usually arrive as a single ``.eml`` whose earlier messages are
attached as ``message/rfc822`` parts. :func:`reconstruct_thread` walks those
attachments recursively, cleans each body of quoted history and signatures,
and produces one :class:`EmailThread` whose ``combined_text`` feeds the rest of
the extraction pipeline.
"""

from __future__ import annotations

import email.errors
import logging
import re
import uuid
from datetime import UTC, datetime
from email import policy
from email.message import EmailMessage as MIMEMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime

from src.errors import EmailDepthExceededError, ParseError
from src.events import EventSink, default_sink
from src.extraction.dates import isoformat_utc
from src.ingestion.models import (
    DocumentSection,
    EmailAddress,
    EmailAttachment,
    EmailMessage,
    EmailThread,
    ParsedDocument,
    ThreadMetadata,
)
from src.ingestion.text_cleaning import html_to_text, word_count

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "(No Subject)"
UNKNOWN_SENDER = "unknown@unknown.com"

_EMBEDDED_MESSAGE_TYPES = ("message/rfc822", "message/global")

_REPLY_MARKERS = [
    re.compile(r"^On\b[^\n]*(?:\n[^\n]*)?wrote:", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^From:.*(?:\n.*)?Sent:", re.MULTILINE),
    re.compile(r"-{5}\s*Original Message\s*-{5}", re.IGNORECASE),
    re.compile(r"^_{20,}", re.MULTILINE),
]

SIGNATURE_MARKERS = [
    "--",
    "Best regards",
    "Kind regards",
    "Regards",
    "Sincerely",
    "Thanks",
    "Cheers",
    "Sent from my",
    "Get Outlook for",
]
_SIGNATURE_RES = [re.compile(r"^[ \t]*" + re.escape(marker), re.MULTILINE) for marker in SIGNATURE_MARKERS]

_SUBJECT_PREFIX_RE = re.compile(r"^\s*(?:re|fwd?|fw)\s*:\s*", re.IGNORECASE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")

_NESTED_PARSE_ERRORS = (ValueError, LookupError, TypeError, IndexError, email.errors.MessageError)


# ---------------------------------------------------------------------------
# Body and subject cleaning
# ---------------------------------------------------------------------------


def clean_email_body(body: str) -> str:
    """Strip quoted replies, trailing signatures and ``>``-quoted lines from *body*.

    The body is cut at the earliest reply marker. A signature marker only cuts
    when its last occurrence lies past the middle of the remaining text, so a
    "Thanks" in the opening line does not discard the message.
    """
    text = body.replace("\r\n", "\n").replace("\r", "\n")

    cut = len(text)
    for marker in _REPLY_MARKERS:
        match = marker.search(text)
        if match and match.start() < cut:
            cut = match.start()
    text = text[:cut]

    for marker in _SIGNATURE_RES:
        matches = list(marker.finditer(text))
        if not matches:
            continue
        last = matches[-1].start()
        if last > len(text) / 2:
            text = text[:last]

    lines = [line for line in text.split("\n") if not line.lstrip().startswith(">")]
    text = "\n".join(lines)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def clean_subject(subject: str) -> str:
    """Remove leading ``Re:``/``Fwd:``/``Fw:`` tokens, repeatedly and in any case."""
    cleaned = subject
    while True:
        stripped = _SUBJECT_PREFIX_RE.sub("", cleaned, count=1)
        if stripped == cleaned:
            return cleaned.strip()
        cleaned = stripped


# ---------------------------------------------------------------------------
# MIME helpers
# ---------------------------------------------------------------------------


def _strip_angle(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip().strip("<>").strip()
    return stripped or None


def _parse_addresses(values: list[str]) -> list[EmailAddress]:
    addresses = []
    for name, address in getaddresses([str(v) for v in values if v]):
        if not address:
            continue
        addresses.append(EmailAddress(address=address, name=name or None))
    return addresses


def _message_date(msg: MIMEMessage, fallback: datetime) -> datetime:
    raw = msg.get("Date")
    if not raw:
        return fallback
    try:
        parsed = parsedate_to_datetime(str(raw))
    except (TypeError, ValueError, IndexError):
        return fallback
    if parsed is None:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _message_body(msg: MIMEMessage) -> str:
    part = msg.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""
    try:
        content = part.get_content()
    except LookupError:
        # Unknown charset; decode as UTF-8 rather than lose the body.
        content = part.get_payload(decode=True) or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if part.get_content_type() == "text/html":
        return html_to_text(content)
    return content


def _is_embedded_message(part: MIMEMessage) -> bool:
    if part.get_content_type() in _EMBEDDED_MESSAGE_TYPES:
        return True
    filename = part.get_filename() or ""
    return filename.lower().endswith(".eml")


def _embedded_message(part: MIMEMessage) -> MIMEMessage:
    if part.get_content_type() in _EMBEDDED_MESSAGE_TYPES:
        payload = part.get_payload()
        if isinstance(payload, list):
            return payload[0]
        if isinstance(payload, MIMEMessage):
            return payload
        raise ValueError("embedded message part has no message payload")
    raw = part.get_payload(decode=True)
    if not raw:
        raise ValueError(f"attachment {part.get_filename()!r} is empty")
    return BytesParser(policy=policy.default).parsebytes(raw)


def _attachment_parts(msg: MIMEMessage) -> list[MIMEMessage]:
    if not msg.is_multipart():
        return []
    return list(msg.iter_attachments())


# ---------------------------------------------------------------------------
# Reconstruction
# ---------------------------------------------------------------------------


def _convert(
    msg: MIMEMessage,
    *,
    depth: int,
    fallback_date: datetime,
    attachments: list[EmailAttachment],
) -> EmailMessage:
    message_id = _strip_angle(msg.get("Message-ID")) or f"generated-{uuid.uuid4().hex}"
    senders = _parse_addresses(msg.get_all("From", []))
    references = str(msg.get("References", "") or "").split()
    raw_body = _message_body(msg)

    return EmailMessage(
        message_id=message_id,
        subject=str(msg.get("Subject", "") or "").strip() or DEFAULT_SUBJECT,
        sender=senders[0] if senders else EmailAddress(address=UNKNOWN_SENDER),
        date=_message_date(msg, fallback_date),
        body=clean_email_body(raw_body),
        raw_body=raw_body,
        in_reply_to=_strip_angle(msg.get("In-Reply-To")),
        references=[ref for ref in (_strip_angle(r) for r in references) if ref],
        to=_parse_addresses(msg.get_all("To", [])),
        cc=_parse_addresses(msg.get_all("Cc", [])),
        is_attachment=depth > 0,
        depth=depth,
        attachments=attachments,
    )


def _collect(
    msg: MIMEMessage,
    *,
    depth: int,
    max_depth: int,
    fallback_date: datetime,
    sink: EventSink,
    out: list[EmailMessage],
) -> None:
    if depth > max_depth:
        raise EmailDepthExceededError(
            f"Nested email depth {depth} exceeds the limit of {max_depth}",
            stage="parse",
        )

    nested: list[MIMEMessage] = []
    attachments: list[EmailAttachment] = []
    for part in _attachment_parts(msg):
        if _is_embedded_message(part):
            try:
                nested.append(_embedded_message(part))
            except _NESTED_PARSE_ERRORS as exc:
                sink.emit(
                    "email.nested_parse_failed",
                    level=logging.WARNING,
                    depth=depth + 1,
                    error=str(exc),
                )
            continue
        payload = part.get_payload(decode=True) or b""
        attachments.append(
            EmailAttachment(
                filename=part.get_filename() or "attachment",
                content_type=part.get_content_type(),
                size=len(payload),
            )
        )

    out.append(_convert(msg, depth=depth, fallback_date=fallback_date, attachments=attachments))

    for child in nested:
        before = len(out)
        try:
            _collect(
                child,
                depth=depth + 1,
                max_depth=max_depth,
                fallback_date=fallback_date,
                sink=sink,
                out=out,
            )
        except _NESTED_PARSE_ERRORS as exc:
            # Drop whatever the failed subtree had already contributed.
            del out[before:]
            sink.emit(
                "email.nested_parse_failed",
                level=logging.WARNING,
                depth=depth + 1,
                error=str(exc),
            )


def _participants(messages: list[EmailMessage]) -> list[EmailAddress]:
    """Unique addresses in first-seen order, compared case-insensitively.

    An address keeps the first non-empty display name seen for it, so a later
    name only fills in when every earlier occurrence was nameless.
    """
    seen: dict[str, EmailAddress] = {}
    for message in messages:
        for person in [message.sender, *message.to, *message.cc]:
            key = person.address.lower()
            existing = seen.get(key)
            if existing is None:
                seen[key] = person
            elif not existing.name and person.name:
                seen[key] = EmailAddress(address=existing.address, name=person.name)
    return list(seen.values())


def _orphans(messages: list[EmailMessage]) -> list[str]:
    orphaned: list[str] = []
    for message in messages:
        if not message.in_reply_to:
            continue
        others = {m.message_id for m in messages if m is not message}
        if message.in_reply_to not in others and message.in_reply_to not in orphaned:
            orphaned.append(message.in_reply_to)
    return orphaned


def render_message(message: EmailMessage) -> str:
    """Header block plus cleaned body, as it appears in ``combined_text``."""
    lines = [f"--- Message from {message.sender.display} on {isoformat_utc(message.date)} ---"]
    if message.subject:
        lines.append(f"Subject: {message.subject}")
    lines.append(message.body)
    return "\n".join(lines)


def build_thread(messages: list[EmailMessage]) -> EmailThread:
    """Assemble an :class:`EmailThread` from already-parsed messages."""
    if not messages:
        raise ValueError("a thread needs at least one message")

    ordered = sorted(messages, key=lambda m: m.date)
    root = next((m for m in ordered if not m.in_reply_to), ordered[0])
    orphaned = _orphans(ordered)

    return EmailThread(
        root_message_id=root.message_id,
        subject=clean_subject(root.subject) or DEFAULT_SUBJECT,
        messages=ordered,
        participants=_participants(ordered),
        start_date=ordered[0].date,
        last_date=ordered[-1].date,
        message_count=len(ordered),
        combined_text="\n\n".join(render_message(m) for m in ordered),
        metadata=ThreadMetadata(
            threading_complete=not orphaned,
            orphaned_messages=orphaned,
            is_single_message=len(ordered) == 1,
        ),
    )


def reconstruct_thread(
    raw: bytes,
    *,
    max_depth: int = 10,
    fallback_date: datetime | None = None,
    events: EventSink | None = None,
) -> EmailThread:
    """Parse a raw message and every message nested in it into one thread.

    Args:
        raw: RFC 5322 bytes of the outermost message.
        max_depth: Deepest nesting level accepted; deeper raises
            :class:`EmailDepthExceededError`.
        fallback_date: Date used for messages without a parseable ``Date``
            header. Defaults to the current time.
        events: Sink for skipped nested messages.

    Raises:
        ParseError: The outermost message itself cannot be read.
        EmailDepthExceededError: Nesting goes deeper than *max_depth*.
    """
    sink = events or default_sink()
    fallback = fallback_date or datetime.now(UTC)
    if fallback.tzinfo is None:
        fallback = fallback.replace(tzinfo=UTC)

    messages: list[EmailMessage] = []
    try:
        root = BytesParser(policy=policy.default).parsebytes(raw)
        _collect(root, depth=0, max_depth=max_depth, fallback_date=fallback, sink=sink, out=messages)
    except _NESTED_PARSE_ERRORS as exc:
        raise ParseError(f"Email parsing failed: {exc}", attempts=[("email", str(exc))]) from exc

    thread = build_thread(messages)
    logger.info(
        "Reconstructed thread %r: %d messages, %d participants",
        thread.subject,
        thread.message_count,
        len(thread.participants),
    )
    return thread


def thread_to_document(thread: EmailThread) -> ParsedDocument:
    """Expose a thread as a :class:`ParsedDocument`, one section per message."""
    sections = []
    offset = 0
    for message in thread.messages:
        block = render_message(message)
        sections.append(
            DocumentSection(
                title=f"{message.sender.display}: {message.subject}",
                content=message.body,
                start_offset=offset,
                end_offset=offset + len(block),
            )
        )
        offset += len(block) + 2

    return ParsedDocument(
        text=thread.combined_text,
        sections=sections,
        metadata={
            "author": thread.messages[0].sender.display,
            "subject": thread.subject,
            "created_date": isoformat_utc(thread.start_date),
            "word_count": word_count(thread.combined_text),
            "thread": {
                "message_count": thread.message_count,
                "participants": [p.address for p in thread.participants],
                "threading_complete": thread.metadata.threading_complete,
                "orphaned_messages": list(thread.metadata.orphaned_messages),
                "is_single_message": thread.metadata.is_single_message,
            },
        },
    )
