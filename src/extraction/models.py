"""Data models for extracted tasks, summaries and run results."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.pipeline_config import InputType


class Priority(str, Enum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class TaskStatus(str, Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    UNKNOWN = "UNKNOWN"


@dataclass
class SourceLocation:
    """Where a task's source quote sits in the cleaned document text."""

    char_offset: int
    line_number: int
    paragraph_index: int
    page: int | None = None
    section: str | None = None


@dataclass
class Task:
    """A validated action item. ``source_quote`` is never empty."""

    title: str
    source_quote: str
    id: str = ""
    run_id: str = ""
    description: str | None = None
    owner_raw: str | None = None
    owner_normalized: str | None = None
    due_date_raw: str | None = None
    due_date_iso: str | None = None  # ISO-8601 UTC, e.g. "2024-02-10T00:00:00Z"
    priority: Priority | None = None
    status: TaskStatus = TaskStatus.NEW
    confidence: float = 0.5
    source_location: SourceLocation | None = None
    tags: list[str] = field(default_factory=list)
    integration_state: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value if self.priority else None
        data["status"] = self.status.value
        return data


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() in ("null", "none", "n/a"):
            return None
        return stripped
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    # Objects and arrays are left for pydantic to reject.
    return value


class CandidateTask(BaseModel):
    """A task as proposed by the model, before any validation.

    Every field is optional and the parser is lenient: camelCase or snake_case
    keys, numeric strings, unknown priorities and stray fields are all accepted.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str | None = None
    description: str | None = None
    owner: str | None = Field(default=None, validation_alias=AliasChoices("owner", "ownerRaw", "owner_raw"))
    due_date: str | None = Field(
        default=None, validation_alias=AliasChoices("dueDate", "due_date", "dueDateRaw", "due_date_raw")
    )
    due_date_iso: str | None = Field(
        default=None, validation_alias=AliasChoices("dueDateISO", "dueDateIso", "due_date_iso")
    )
    priority: Priority | None = None
    status: TaskStatus | None = None
    source_quote: str | None = Field(
        default=None, validation_alias=AliasChoices("sourceQuote", "source_quote", "quote")
    )
    confidence: float | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "description", "owner", "due_date", "due_date_iso", "source_quote", mode="before")
    @classmethod
    def _clean_strings(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip().upper()
        return text if text in Priority.__members__ else None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        return text if text in TaskStatus.__members__ else TaskStatus.UNKNOWN

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return max(0.0, min(1.0, number))

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        if isinstance(value, list):
            return [str(tag).strip() for tag in value if tag is not None and str(tag).strip()]
        return []

    def to_prompt_dict(self) -> dict[str, Any]:
        """Render in the camelCase shape the prompts describe."""
        return {
            "title": self.title,
            "description": self.description,
            "owner": self.owner,
            "dueDate": self.due_date,
            "priority": self.priority.value if self.priority else None,
            "status": self.status.value if self.status else TaskStatus.NEW.value,
            "sourceQuote": self.source_quote,
            "confidence": self.confidence,
        }

    def to_task(self) -> Task:
        """Convert a validated candidate into a :class:`Task` with placeholder ids."""
        return Task(
            title=self.title or "Untitled Task",
            description=self.description,
            owner_raw=self.owner,
            due_date_raw=self.due_date,
            due_date_iso=self.due_date_iso,
            priority=self.priority,
            status=self.status or TaskStatus.NEW,
            confidence=0.5 if self.confidence is None else self.confidence,
            source_quote=self.source_quote or "",
            tags=list(self.tags),
        )


@dataclass
class ExtractionContext:
    """Per-run context passed into every prompt."""

    reference_time: datetime
    timezone: str
    input_type: InputType
    source_name: str | None = None
    document_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StakeholderSummary:
    decisions: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    asks: list[str] = field(default_factory=list)
    key_points: list[str] = field(default_factory=list)


@dataclass
class MeetingMinutes:
    title: str | None = None
    date: str | None = None
    participants: list[str] = field(default_factory=list)
    agenda: list[str] = field(default_factory=list)
    notes: str | None = None
    next_steps: list[str] = field(default_factory=list)


@dataclass
class RunStats:
    """Statistics accumulated over one run.

    ``model_call_count`` counts logical calls; ``model_attempt_count`` also
    counts retried attempts.
    """

    wall_clock_ms: int = 0
    model_call_count: int = 0
    model_attempt_count: int = 0
    chunk_count: int = 0
    candidate_count: int = 0
    task_count: int = 0


@dataclass
class RunInput:
    """Everything one run needs besides the model capability."""

    input_type: InputType
    reference_time: datetime
    timezone: str = "UTC"
    text: str | None = None
    data: bytes | None = None
    source_name: str | None = None
    run_id: str = ""


@dataclass
class ExtractionResult:
    tasks: list[Task]
    summary: StakeholderSummary
    meeting_minutes: MeetingMinutes | None
    stats: RunStats

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible rendering (enums by value, dates as ISO-8601 UTC)."""
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "summary": asdict(self.summary),
            "meeting_minutes": asdict(self.meeting_minutes) if self.meeting_minutes else None,
            "stats": asdict(self.stats),
        }
