"""Retrying JSON client wrapped around a :class:`ModelCapability`."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from src.errors import ModelError, ModelResponseError, ModelRetriesExhaustedError
from src.events import EventSink, default_sink
from src.extraction.responses import is_degenerate, parse_json_response
from src.llm.base import CompletionOptions, ModelCapability
from src.pipeline_config import RetryPolicy

logger = logging.getLogger(__name__)


class ModelClient:
    """Calls the model with exponential backoff and decodes its JSON answer.

    Every attempt that raises :class:`ModelError`, returns a degenerate payload
    (blank, ``{}`` or ``[]``) or returns invalid JSON is retried until the
    policy's attempts run out, then :class:`ModelRetriesExhaustedError` is
    raised from the last failure.

    Counters are shared by every call made through one client, which may run
    on several threads when chunks are extracted concurrently.
    """

    def __init__(
        self,
        model: ModelCapability,
        retry_policy: RetryPolicy | None = None,
        events: EventSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy()
        self.events = events or default_sink()
        self._sleep = sleep
        self._lock = threading.Lock()
        self.call_count = 0
        self.attempt_count = 0

    def complete_json(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.1,
        operation: str = "complete",
    ) -> Any:
        """Run one logical model call and return the decoded JSON value."""
        options = CompletionOptions(system=system, temperature=temperature)
        with self._lock:
            self.call_count += 1

        max_attempts = max(1, self.retry_policy.max_attempts)
        last_error: ModelError | None = None
        started = time.perf_counter()

        for attempt in range(1, max_attempts + 1):
            with self._lock:
                self.attempt_count += 1
            try:
                raw = self.model.complete(prompt, system=options.system, temperature=options.temperature)
                if raw is None or is_degenerate(raw):
                    raise ModelResponseError("Model returned an empty or degenerate response")
                data = parse_json_response(raw)
            except ModelError as exc:
                last_error = exc
                self.events.emit(
                    "model.attempt_failed",
                    level=logging.WARNING,
                    operation=operation,
                    attempt=attempt,
                    error=f"{type(exc).__name__}: {exc.message}",
                )
                if attempt < max_attempts:
                    self._sleep(self.retry_policy.delay_for(attempt))
                continue

            self.events.emit(
                "model.call_completed",
                operation=operation,
                attempts=attempt,
                duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
            )
            return data

        self.events.emit(
            "model.retries_exhausted",
            level=logging.ERROR,
            operation=operation,
            attempts=max_attempts,
        )
        raise ModelRetriesExhaustedError(
            f"Model call '{operation}' failed after {max_attempts} attempts: {last_error}",
            attempts=max_attempts,
        ) from last_error
