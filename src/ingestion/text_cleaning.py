"""Text normalization applied to every document before chunking."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_SPACE_RUN_RE = re.compile(r" {2,}")
_BLANK_LINES_RE = re.compile(r"\n{2,}")
_ELLIPSIS_RE = re.compile(r"\.{4,}")
_BANG_RE = re.compile(r"!{2,}")
_QUESTION_RE = re.compile(r"\?{2,}")
_WRAP_HYPHEN_RE = re.compile(r"(?<=\w)-\n(?=\w)")


def normalize_text(text: str) -> str:
    """Normalize whitespace and punctuation noise.

    - CRLF (and bare CR) line endings become LF.
    - ``-\\n`` line-wrap hyphenation between two word characters is removed
      (common in PDF text); dash rules such as ``---`` keep their line break.
    - Tabs become spaces and runs of spaces collapse to one.
    - Runs of blank lines collapse to a single blank line.
    - ``....`` becomes ``...``; repeated ``!`` and ``?`` collapse to one.

    The function is idempotent: ``normalize_text(normalize_text(x)) == normalize_text(x)``.
    """
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")

    previous = None
    while cleaned != previous:
        previous = cleaned
        cleaned = _WRAP_HYPHEN_RE.sub("", cleaned)

    cleaned = cleaned.replace("\t", " ")
    cleaned = _SPACE_RUN_RE.sub(" ", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)

    cleaned = _ELLIPSIS_RE.sub("...", cleaned)
    cleaned = _BANG_RE.sub("!", cleaned)
    cleaned = _QUESTION_RE.sub("?", cleaned)

    return cleaned.strip()


def word_count(text: str) -> int:
    return len(text.split())


_BLOCK_TAGS = ["p", "div", "br", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote"]


def html_to_text(html: str) -> str:
    """Convert an HTML email body to plain text.

    Scripts and styles are dropped; block-level elements end with a line break
    so paragraphs survive as separate lines.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.append("\n")
    text = soup.get_text()
    text = text.replace("\xa0", " ")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
