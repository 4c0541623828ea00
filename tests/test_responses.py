"""Tests for model response decoding and shape coercion."""

from __future__ import annotations

import pytest

from src.errors import ModelResponseError
from src.events import RecordingEventSink
from src.extraction.models import Priority, TaskStatus
from src.extraction.responses import (
    coerce_candidates,
    coerce_minutes,
    coerce_records,
    coerce_summary,
    is_degenerate,
    parse_json_response,
)


class TestParseJsonResponse:
    def test_plain_json(self) -> None:
        assert parse_json_response('{"tasks": []}') == {"tasks": []}

    def test_code_fenced_json(self) -> None:
        assert parse_json_response('```json\n[{"title": "x"}]\n```') == [{"title": "x"}]

    def test_invalid_json_raises_model_error(self) -> None:
        with pytest.raises(ModelResponseError):
            parse_json_response("Sure! Here are your tasks:")


class TestIsDegenerate:
    @pytest.mark.parametrize("raw", ["", "   ", "{}", "[]", "{ }", "```json\n{}\n```"])
    def test_degenerate(self, raw: str) -> None:
        assert is_degenerate(raw)

    def test_empty_task_list_is_not_degenerate(self) -> None:
        assert not is_degenerate('{"tasks": []}')


class TestCoerceRecords:
    def test_bare_array(self) -> None:
        assert coerce_records([{"a": 1}, {"b": 2}]) == [{"a": 1}, {"b": 2}]

    @pytest.mark.parametrize("key", ["tasks", "data", "result"])
    def test_wrapped_array(self, key: str) -> None:
        assert coerce_records({key: [{"a": 1}]}) == [{"a": 1}]

    def test_bare_object_promoted(self) -> None:
        assert coerce_records({"title": "Ship"}) == [{"title": "Ship"}]

    def test_non_dict_items_dropped(self) -> None:
        assert coerce_records([{"a": 1}, "junk", 3, None]) == [{"a": 1}]

    def test_scalar(self) -> None:
        assert coerce_records("nope") == []
        assert coerce_records(None) == []


class TestCoerceCandidates:
    def test_camel_case_fields(self) -> None:
        [candidate] = coerce_candidates(
            {
                "tasks": [
                    {
                        "title": "Confirm access",
                        "owner": "Alex",
                        "dueDate": "Feb 10",
                        "priority": "p0",
                        "status": "new",
                        "sourceQuote": "Alex to confirm access by Feb 10.",
                        "confidence": "0.9",
                    }
                ]
            },
            RecordingEventSink(),
        )
        assert candidate.owner == "Alex"
        assert candidate.due_date == "Feb 10"
        assert candidate.priority is Priority.P0
        assert candidate.status is TaskStatus.NEW
        assert candidate.source_quote == "Alex to confirm access by Feb 10."
        assert candidate.confidence == 0.9

    def test_lenient_values(self) -> None:
        [candidate] = coerce_candidates(
            [{"title": "  ", "owner": "null", "priority": "urgent", "status": "in progress", "confidence": 7, "tags": "a, b"}],
            RecordingEventSink(),
        )
        assert candidate.title is None
        assert candidate.owner is None
        assert candidate.priority is None
        assert candidate.status is TaskStatus.IN_PROGRESS
        assert candidate.confidence == 1.0
        assert candidate.tags == ["a", "b"]

    def test_invalid_record_skipped_with_event(self) -> None:
        sink = RecordingEventSink()
        candidates = coerce_candidates([{"title": "ok", "sourceQuote": "ok"}, {"title": {"nested": True}}], sink)
        assert len(candidates) == 1
        assert sink.names() == ["response.record_skipped"]

    def test_to_task_defaults(self) -> None:
        [candidate] = coerce_candidates([{"sourceQuote": "Do it."}], RecordingEventSink())
        task = candidate.to_task()
        assert task.title == "Untitled Task"
        assert task.status is TaskStatus.NEW
        assert task.confidence == 0.5
        assert task.id == "" and task.run_id == ""


class TestCoerceSummaryAndMinutes:
    def test_summary_defaults(self) -> None:
        summary = coerce_summary({"decisions": ["Ship Friday"], "keyPoints": "One point"})
        assert summary.decisions == ["Ship Friday"]
        assert summary.risks == []
        assert summary.asks == []
        assert summary.key_points == ["One point"]

    def test_summary_from_garbage(self) -> None:
        summary = coerce_summary(["not", "a", "dict"])
        assert summary.decisions == [] and summary.key_points == []

    def test_minutes(self) -> None:
        minutes = coerce_minutes(
            {
                "title": "Launch sync",
                "date": None,
                "participants": ["Alex", "Priya"],
                "agenda": ["Budget"],
                "notes": "",
                "nextSteps": ["Book venue"],
            }
        )
        assert minutes.title == "Launch sync"
        assert minutes.date is None
        assert minutes.participants == ["Alex", "Priya"]
        assert minutes.notes is None
        assert minutes.next_steps == ["Book venue"]

    def test_minutes_missing_fields(self) -> None:
        minutes = coerce_minutes({})
        assert minutes.title is None
        assert minutes.participants == [] and minutes.agenda == [] and minutes.next_steps == []
