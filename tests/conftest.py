"""Shared fixtures: an in-memory model capability and a recording event sink."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from typing import Any

import pytest

from src.events import RecordingEventSink

CANDIDATE_MARKER = "Extract ALL potential tasks"
VALIDATION_MARKER = "Review and validate these candidate tasks"
SUMMARY_MARKER = "extract a stakeholder summary"
MINUTES_MARKER = "Extract meeting information"

EMPTY_SUMMARY = {"decisions": [], "risks": [], "asks": [], "keyPoints": []}
EMPTY_MINUTES = {"title": None, "date": None, "participants": [], "agenda": [], "notes": None, "nextSteps": []}


class ScriptedModel:
    """Answers each kind of prompt from its own queue of scripted replies.

    A reply is a string (returned verbatim), an exception instance (raised), or
    any other value (returned as JSON). The last reply of a queue repeats once
    the queue is exhausted.
    """

    name = "scripted"

    def __init__(self, **routes: list[Any]) -> None:
        self.routes: dict[str, list[Any]] = {
            "candidates": [{"tasks": []}],
            "validation": [{"tasks": []}],
            "summary": [EMPTY_SUMMARY],
            "minutes": [EMPTY_MINUTES],
        }
        self.routes.update(routes)
        self.prompts: list[tuple[str, str]] = []
        self.temperatures: list[float] = []
        self._lock = threading.Lock()

    @staticmethod
    def route_for(prompt: str) -> str:
        if CANDIDATE_MARKER in prompt:
            return "candidates"
        if VALIDATION_MARKER in prompt:
            return "validation"
        if SUMMARY_MARKER in prompt:
            return "summary"
        if MINUTES_MARKER in prompt:
            return "minutes"
        return "other"

    def calls(self, route: str) -> list[str]:
        return [prompt for name, prompt in self.prompts if name == route]

    def complete(self, prompt: str, *, system: str | None = None, temperature: float = 0.1) -> str:
        route = self.route_for(prompt)
        with self._lock:
            self.prompts.append((route, prompt))
            self.temperatures.append(temperature)
            queue = self.routes.get(route, [""])
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(prompt)
        if isinstance(reply, str):
            return reply
        return json.dumps(reply)


@pytest.fixture
def scripted_model() -> Callable[..., ScriptedModel]:
    """Factory: ``scripted_model(candidates=[...], validation=[...])``."""
    return ScriptedModel


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    delays: list[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
