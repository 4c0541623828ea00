"""Turn raw model text into the fixed shapes the pipeline works with.

Models answer with a bare array, ``{"tasks": [...]}`` (or ``data`` /
``result``), or a single bare object. :func:`coerce_records` is the one place
that shape is detected.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from src.errors import ModelResponseError
from src.events import EventSink, default_sink
from src.extraction.models import CandidateTask, MeetingMinutes, StakeholderSummary

RECORD_LIST_KEYS = ("tasks", "data", "result")


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [ln for ln in lines if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    return text.strip()


def parse_json_response(raw: str) -> Any:
    """Decode a model response as JSON, tolerating Markdown code fences.

    Raises:
        ModelResponseError: The text is not valid JSON.
    """
    text = strip_code_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ModelResponseError(f"Model response is not valid JSON: {exc.msg} at position {exc.pos}") from exc


def is_degenerate(raw: str) -> bool:
    """Blank, ``{}`` and ``[]`` responses carry nothing and count as failures."""
    text = strip_code_fences(raw)
    return text.replace(" ", "").replace("\n", "") in ("", "{}", "[]")


def coerce_records(data: Any) -> list[dict[str, Any]]:
    """Normalize any accepted response shape to a list of record dicts."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        for key in RECORD_LIST_KEYS:
            if isinstance(data.get(key), list):
                return [item for item in data[key] if isinstance(item, dict)]
        return [data]
    return []


def coerce_candidates(data: Any, events: EventSink | None = None) -> list[CandidateTask]:
    """Validate each record as a :class:`CandidateTask`, skipping malformed ones."""
    sink = events or default_sink()
    candidates: list[CandidateTask] = []
    for index, record in enumerate(coerce_records(data)):
        try:
            candidates.append(CandidateTask.model_validate(record))
        except ValidationError as exc:
            sink.emit(
                "response.record_skipped",
                level=logging.WARNING,
                index=index,
                errors=exc.error_count(),
            )
    return candidates


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _optional_string(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_record(data: Any) -> dict[str, Any]:
    records = coerce_records(data)
    return records[0] if records else {}


def coerce_summary(data: Any) -> StakeholderSummary:
    record = _first_record(data)
    return StakeholderSummary(
        decisions=_string_list(record.get("decisions")),
        risks=_string_list(record.get("risks")),
        asks=_string_list(record.get("asks")),
        key_points=_string_list(record.get("keyPoints", record.get("key_points"))),
    )


def coerce_minutes(data: Any) -> MeetingMinutes:
    record = _first_record(data)
    return MeetingMinutes(
        title=_optional_string(record.get("title")),
        date=_optional_string(record.get("date")),
        participants=_string_list(record.get("participants")),
        agenda=_string_list(record.get("agenda")),
        notes=_optional_string(record.get("notes")),
        next_steps=_string_list(record.get("nextSteps", record.get("next_steps"))),
    )
