"""Injectable event sink for pipeline observability.

Pipeline code reports what happened through :class:`EventSink` rather than
writing log lines directly, so tests can assert on emitted events without
parsing log output. :class:`LoggingEventSink` forwards everything to the
standard ``logging`` module and is the default in production.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("src.pipeline")


@dataclass(frozen=True)
class PipelineEvent:
    """A single emitted event."""

    name: str
    level: int = logging.INFO
    fields: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EventSink(Protocol):
    def emit(self, name: str, *, level: int = logging.INFO, **fields: Any) -> None: ...


class LoggingEventSink:
    """Writes every event to a standard logger as ``name key=value ...``."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self.logger = target or logger

    def emit(self, name: str, *, level: int = logging.INFO, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        details = " ".join(f"{key}={value!r}" for key, value in fields.items())
        self.logger.log(level, "%s %s", name, details)


class RecordingEventSink:
    """Keeps events in memory. Thread-safe, since chunk extraction may fan out."""

    def __init__(self) -> None:
        self.events: list[PipelineEvent] = []
        self._lock = threading.Lock()

    def emit(self, name: str, *, level: int = logging.INFO, **fields: Any) -> None:
        with self._lock:
            self.events.append(PipelineEvent(name=name, level=level, fields=dict(fields)))

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def find(self, name: str) -> list[PipelineEvent]:
        return [event for event in self.events if event.name == name]


def default_sink() -> EventSink:
    return LoggingEventSink()
