"""Tests for Settings, PipelineConfig, enums, errors and the event sinks."""

from __future__ import annotations

import logging

import pytest

from src.config import Settings
from src.errors import (
    EmailDepthExceededError,
    ExtractionError,
    InputError,
    ModelError,
    ModelRetriesExhaustedError,
    ParseError,
)
from src.events import EventSink, LoggingEventSink, RecordingEventSink
from src.pipeline_config import DedupPolicy, InputType, PipelineConfig, RetryPolicy

# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestInputType:
    def test_values(self) -> None:
        assert [t.value for t in InputType] == ["text", "pdf", "docx", "eml"]

    def test_from_string(self) -> None:
        assert InputType("eml") is InputType.EML

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            InputType("xlsx")

    def test_is_str_subclass(self) -> None:
        """Enum values behave as plain strings for JSON serialization."""
        assert isinstance(InputType.PDF, str)


class TestDedupPolicy:
    def test_values(self) -> None:
        assert DedupPolicy.REPRESENTATIVE.value == "representative"
        assert DedupPolicy.FIELD_MERGE.value == "field_merge"


# ---------------------------------------------------------------------------
# RetryPolicy / PipelineConfig tests
# ---------------------------------------------------------------------------


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.initial_delay == 1.0
        assert policy.backoff_factor == 2.0
        assert policy.max_delay == 5.0

    def test_delay_capped(self) -> None:
        policy = RetryPolicy(initial_delay=2.0, backoff_factor=3.0, max_delay=10.0)
        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(2) == 6.0
        assert policy.delay_for(3) == 10.0


class TestPipelineConfig:
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        assert cfg.max_chunk_size == 4000
        assert cfg.chunk_overlap == 200
        assert cfg.temperature == 0.1
        assert cfg.parse_email_threads is True
        assert cfg.max_email_depth == 10
        assert cfg.extraction_workers == 1
        assert cfg.extract_meeting_minutes is True
        assert cfg.dedup_policy is DedupPolicy.REPRESENTATIVE
        assert cfg.retry == RetryPolicy()

    def test_immutable(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.max_chunk_size = 10  # type: ignore[misc]

    def test_from_settings(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            chunk_size=1000,
            chunk_overlap=50,
            llm_temperature=0.3,
            parse_email_threads=False,
            max_email_depth=4,
            extraction_workers=0,
            extract_meeting_minutes=False,
            retry_max_attempts=5,
            retry_initial_delay_seconds=0.5,
        )
        cfg = PipelineConfig.from_settings(settings)
        assert cfg.max_chunk_size == 1000
        assert cfg.chunk_overlap == 50
        assert cfg.temperature == 0.3
        assert cfg.parse_email_threads is False
        assert cfg.max_email_depth == 4
        assert cfg.extraction_workers == 1
        assert cfg.extract_meeting_minutes is False
        assert cfg.retry.max_attempts == 5
        assert cfg.retry.initial_delay == 0.5


class TestSettings:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "1234")
        monkeypatch.setenv("LLM_PROVIDER", "ollama")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.chunk_size == 1234
        assert settings.llm_provider == "ollama"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_hierarchy(self) -> None:
        assert issubclass(InputError, ExtractionError)
        assert issubclass(EmailDepthExceededError, ParseError)
        assert issubclass(ModelRetriesExhaustedError, ModelError)

    def test_str_includes_stage(self) -> None:
        err = ParseError("no text", attempts=[("pypdf", "empty")])
        assert str(err) == "no text"
        err.stage = "parse"
        assert str(err) == "[parse] no text"
        assert err.attempts == [("pypdf", "empty")]


# ---------------------------------------------------------------------------
# Event sinks
# ---------------------------------------------------------------------------


class TestEventSinks:
    def test_recording_sink(self) -> None:
        sink = RecordingEventSink()
        sink.emit("date.unresolved", level=logging.WARNING, phrase="someday")
        assert isinstance(sink, EventSink)
        assert sink.names() == ["date.unresolved"]
        [event] = sink.find("date.unresolved")
        assert event.level == logging.WARNING
        assert event.fields == {"phrase": "someday"}

    def test_logging_sink(self, caplog: pytest.LogCaptureFixture) -> None:
        sink = LoggingEventSink(logging.getLogger("test.events"))
        with caplog.at_level(logging.INFO, logger="test.events"):
            sink.emit("chunking.completed", chunks=2)
            sink.emit("stage.started", level=logging.DEBUG, stage="parse")
        assert [record.getMessage() for record in caplog.records] == ["chunking.completed chunks=2"]
