"""Deterministic confidence scoring for extracted tasks."""

from __future__ import annotations

BASE_SCORE = 0.5
OWNER_BONUS = 0.3
DUE_DATE_BONUS = 0.3
VAGUE_PENALTY = -0.4
SPECIFIC_BONUS = 0.2
DETAILED_QUOTE_BONUS = 0.2
DETAILED_QUOTE_MIN_LENGTH = 50

VAGUE_VERBS: tuple[str, ...] = (
    "look into",
    "consider",
    "think about",
    "explore",
    "investigate",
    "maybe",
    "perhaps",
    "possibly",
)


def contains_vague_verb(title: str) -> bool:
    """Return True if *title* contains any vague verb (case-insensitive)."""
    lowered = title.lower()
    return any(verb in lowered for verb in VAGUE_VERBS)


def calculate_confidence(
    title: str,
    owner_raw: str | None = None,
    due_date_raw: str | None = None,
    source_quote: str | None = None,
) -> float:
    """Score a task in [0, 1] from its final field values.

    Base 0.5; +0.3 with an owner; +0.3 with a due date; -0.4 when the title
    is vague, else +0.2; +0.2 when the source quote is longer than 50 chars.
    """
    score = BASE_SCORE
    if owner_raw and owner_raw.strip():
        score += OWNER_BONUS
    if due_date_raw and due_date_raw.strip():
        score += DUE_DATE_BONUS
    score += VAGUE_PENALTY if contains_vague_verb(title or "") else SPECIFIC_BONUS
    if source_quote and len(source_quote) > DETAILED_QUOTE_MIN_LENGTH:
        score += DETAILED_QUOTE_BONUS
    return round(max(0.0, min(1.0, score)), 4)
