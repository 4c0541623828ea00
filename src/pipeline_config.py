"""Pipeline configuration: input/dedup enums, retry policy and PipelineConfig."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.config import Settings


class InputType(str, Enum):
    """Kinds of input the extraction pipeline accepts."""

    TEXT = "text"
    PDF = "pdf"
    DOCX = "docx"
    EML = "eml"


class DedupPolicy(str, Enum):
    """How near-duplicate tasks are collapsed.

    ``REPRESENTATIVE`` keeps the highest-confidence record of each group as-is.
    ``FIELD_MERGE`` folds every duplicate into the survivor field by field.
    """

    REPRESENTATIVE = "representative"
    FIELD_MERGE = "field_merge"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff applied to every model call."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 5.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed *attempt* (1-based)."""
        return min(self.initial_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for a single extraction run.

    Defaults mirror :class:`src.config.Settings`, so a run can be configured
    without touching the environment.
    """

    max_chunk_size: int = 4000
    chunk_overlap: int = 200
    temperature: float = 0.1
    parse_email_threads: bool = True
    max_email_depth: int = 10
    extraction_workers: int = 1
    extract_meeting_minutes: bool = True
    dedup_policy: DedupPolicy = DedupPolicy.REPRESENTATIVE
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            max_chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            temperature=settings.llm_temperature,
            parse_email_threads=settings.parse_email_threads,
            max_email_depth=settings.max_email_depth,
            extraction_workers=max(1, settings.extraction_workers),
            extract_meeting_minutes=settings.extract_meeting_minutes,
            retry=RetryPolicy(
                max_attempts=max(1, settings.retry_max_attempts),
                initial_delay=settings.retry_initial_delay_seconds,
                backoff_factor=settings.retry_backoff_factor,
                max_delay=settings.retry_max_delay_seconds,
            ),
        )
