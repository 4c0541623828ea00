"""Data models for document ingestion and email thread reconstruction."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class DocumentSection:
    """A titled region of a parsed document (a PDF page, a DOCX heading, an email)."""

    title: str
    content: str
    start_offset: int = 0
    end_offset: int = 0
    page: int | None = None
    level: int | None = None


@dataclass
class ParsedDocument:
    """Uniform parser output: plain text plus optional structure and metadata."""

    text: str
    sections: list[DocumentSection] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A slice of normalized text sent to one candidate-extraction call."""

    content: str
    start_offset: int
    end_offset: int
    chunk_index: int = 0


@dataclass(frozen=True)
class EmailAddress:
    """A mailbox as it appears in a From/To/Cc header."""

    address: str
    name: str | None = None

    @property
    def display(self) -> str:
        return self.name or self.address


@dataclass
class EmailAttachment:
    """A non-message attachment, recorded for reference only."""

    filename: str
    content_type: str
    size: int


@dataclass
class EmailMessage:
    """One message of a thread, with its body stripped of quotes and signatures."""

    message_id: str
    subject: str
    sender: EmailAddress
    date: datetime
    body: str
    raw_body: str
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)
    to: list[EmailAddress] = field(default_factory=list)
    cc: list[EmailAddress] = field(default_factory=list)
    is_attachment: bool = False
    depth: int = 0
    attachments: list[EmailAttachment] = field(default_factory=list)


@dataclass
class ThreadMetadata:
    threading_complete: bool
    orphaned_messages: list[str] = field(default_factory=list)
    is_single_message: bool = False


@dataclass
class EmailThread:
    """A reconstructed conversation, messages in chronological order."""

    root_message_id: str
    subject: str
    messages: list[EmailMessage]
    participants: list[EmailAddress]
    start_date: datetime
    last_date: datetime
    message_count: int
    combined_text: str
    metadata: ThreadMetadata
