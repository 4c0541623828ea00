"""Error taxonomy shared by the parsers, the model client and the orchestrator."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base error for a run; carries the pipeline stage it escaped from."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class InputError(ExtractionError):
    """Required text or bytes are missing for the declared input type."""


class ParseError(ExtractionError):
    """No parsing strategy produced text for the document."""

    def __init__(
        self,
        message: str,
        *,
        attempts: list[tuple[str, str]] | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.attempts = attempts or []


class EmailDepthExceededError(ParseError):
    """Nested message attachments go deeper than the configured ceiling."""


class ModelError(ExtractionError):
    """The model capability failed; retryable."""


class ModelTimeoutError(ModelError):
    """The model call timed out."""


class ModelUnavailableError(ModelError):
    """Transport failure or upstream error status."""


class ModelResponseError(ModelError):
    """Empty, degenerate or non-JSON response payload."""


class ModelRetriesExhaustedError(ModelError):
    """Every attempt of a model call failed."""

    def __init__(self, message: str, *, attempts: int, stage: str | None = None) -> None:
        super().__init__(message, stage=stage)
        self.attempts = attempts
