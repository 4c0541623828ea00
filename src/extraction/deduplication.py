"""Near-duplicate task detection and merging."""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from rapidfuzz.distance import Levenshtein

from src.events import EventSink, default_sink
from src.extraction.models import Task
from src.pipeline_config import DedupPolicy

DEDUP_SIMILARITY_THRESHOLD = 0.85
OWNER_SIMILARITY_THRESHOLD = 0.8

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_ARTICLES = frozenset({"a", "an", "the"})


def normalize_title(title: str) -> str:
    """Lower-case, drop punctuation and articles, collapse whitespace."""
    words = _PUNCTUATION_RE.sub(" ", title.lower()).split()
    return " ".join(word for word in words if word not in _ARTICLES)


def string_similarity(a: str, b: str) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``; two empty strings are identical."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def are_duplicates(a: Task, b: Task) -> bool:
    if string_similarity(normalize_title(a.title), normalize_title(b.title)) < DEDUP_SIMILARITY_THRESHOLD:
        return False

    if a.owner_raw and b.owner_raw:
        owner_similarity = string_similarity(a.owner_raw.strip().lower(), b.owner_raw.strip().lower())
        if owner_similarity < OWNER_SIMILARITY_THRESHOLD:
            return False

    if a.due_date_iso and b.due_date_iso and a.due_date_iso != b.due_date_iso:
        return False

    return True


def merge_tasks(a: Task, b: Task) -> Task:
    """Reconcile two duplicates field by field.

    Fields come from the higher-confidence task (``a`` on a tie) and fall back
    to the other task where empty. Tags are unioned in first-seen order and the
    longer source quote is kept.
    """
    primary, secondary = (a, b) if a.confidence >= b.confidence else (b, a)

    tags = list(dict.fromkeys([*primary.tags, *secondary.tags]))
    quote = primary.source_quote
    if len(secondary.source_quote) > len(quote):
        quote = secondary.source_quote

    return replace(
        primary,
        description=primary.description or secondary.description,
        owner_raw=primary.owner_raw or secondary.owner_raw,
        owner_normalized=primary.owner_normalized or secondary.owner_normalized,
        due_date_raw=primary.due_date_raw or secondary.due_date_raw,
        due_date_iso=primary.due_date_iso or secondary.due_date_iso,
        priority=primary.priority or secondary.priority,
        source_location=primary.source_location or secondary.source_location,
        source_quote=quote,
        tags=tags,
        integration_state={**secondary.integration_state, **primary.integration_state},
    )


def deduplicate_tasks(
    tasks: list[Task],
    policy: DedupPolicy = DedupPolicy.REPRESENTATIVE,
    events: EventSink | None = None,
) -> list[Task]:
    """Collapse near-duplicate tasks, preserving first-occurrence order.

    Each unmerged task is compared with every later unmerged task. Under
    ``REPRESENTATIVE`` the group is represented by its highest-confidence
    member, unchanged; under ``FIELD_MERGE`` duplicates are folded in with
    :func:`merge_tasks`.
    """
    sink = events or default_sink()
    merged = [False] * len(tasks)
    result: list[Task] = []

    for i, task in enumerate(tasks):
        if merged[i]:
            continue
        best = task
        for j in range(i + 1, len(tasks)):
            if merged[j] or not are_duplicates(task, tasks[j]):
                continue
            merged[j] = True
            candidate = tasks[j]
            if policy == DedupPolicy.FIELD_MERGE:
                best = merge_tasks(best, candidate)
            elif candidate.confidence > best.confidence:
                best = candidate
            sink.emit("dedup.merged", level=logging.DEBUG, kept=best.title, dropped=candidate.title)
        result.append(best)

    return result
