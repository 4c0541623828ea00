"""Extraction orchestrator: document in, validated and deduplicated tasks out.

One run moves through fixed stages, strictly in sequence::

    parse -> clean -> chunk -> candidates -> validation -> postprocess
          -> dedup -> summary -> minutes

Candidate extraction may fan out over chunks on a thread pool; its results
are reassembled in chunk order before validation starts. Any
:class:`ExtractionError` escaping a stage is tagged with the stage name and
re-raised.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import replace

from src.errors import ExtractionError, InputError
from src.events import EventSink, default_sink
from src.extraction.dates import isoformat_utc, resolve_date
from src.extraction.deduplication import deduplicate_tasks
from src.extraction.location import locate_quote
from src.extraction.models import (
    CandidateTask,
    ExtractionContext,
    ExtractionResult,
    MeetingMinutes,
    RunInput,
    RunStats,
    StakeholderSummary,
    Task,
)
from src.extraction.prompts import (
    SUMMARY_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_candidate_prompt,
    build_minutes_prompt,
    build_summary_prompt,
    build_validation_prompt,
)
from src.extraction.responses import coerce_candidates, coerce_minutes, coerce_summary
from src.extraction.scoring import calculate_confidence
from src.ingestion.chunking import chunk_text
from src.ingestion.models import Chunk, ParsedDocument
from src.ingestion.parsers import parse_document
from src.ingestion.text_cleaning import normalize_text
from src.llm.base import ModelCapability
from src.llm.client import ModelClient
from src.pipeline_config import InputType, PipelineConfig

logger = logging.getLogger(__name__)

# Validation runs slightly cooler than candidate extraction.
VALIDATION_TEMPERATURE_FACTOR = 0.8


def _has_quote(candidate: CandidateTask) -> bool:
    return bool(candidate.source_quote and candidate.source_quote.strip())


class ExtractionService:
    """Runs the extraction pipeline against one model capability.

    The service holds no per-run state, so one instance may serve several
    runs, including concurrently.
    """

    def __init__(
        self,
        model: ModelCapability,
        config: PipelineConfig | None = None,
        events: EventSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model = model
        self.config = config or PipelineConfig()
        self.events = events or default_sink()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def process_run(self, run: RunInput) -> ExtractionResult:
        """Execute every stage for *run* and return tasks, summaries and stats."""
        started = time.perf_counter()
        client = ModelClient(self.model, self.config.retry, self.events, sleep=self._sleep)
        stats = RunStats()
        reference_time = run.reference_time

        with self._stage("parse"):
            document = self._parse(run)

        context = ExtractionContext(
            reference_time=reference_time,
            timezone=run.timezone,
            input_type=InputType(run.input_type),
            source_name=run.source_name,
            document_metadata=document.metadata,
        )

        with self._stage("clean"):
            cleaned = normalize_text(document.text)
            if not cleaned:
                raise InputError("Document contains no text after cleaning")

        with self._stage("chunk"):
            chunks = chunk_text(cleaned, self.config.max_chunk_size, self.config.chunk_overlap)
            stats.chunk_count = len(chunks)
            self.events.emit("chunking.completed", chunks=len(chunks), characters=len(cleaned))

        with self._stage("candidates"):
            candidates = self._extract_candidates(client, chunks, context)
            stats.candidate_count = len(candidates)

        with self._stage("validation"):
            tasks = self._validate(client, candidates, context)

        with self._stage("postprocess"):
            tasks = [self._postprocess(task, run, context, cleaned, document) for task in tasks]

        with self._stage("dedup"):
            before = len(tasks)
            tasks = deduplicate_tasks(tasks, self.config.dedup_policy, self.events)
            logger.info("Deduplicated %d tasks to %d", before, len(tasks))

        with self._stage("summary"):
            summary = self._summarize(client, cleaned, tasks, context)

        minutes: MeetingMinutes | None = None
        if self.config.extract_meeting_minutes:
            with self._stage("minutes"):
                minutes = self._extract_minutes(client, cleaned)

        stats.task_count = len(tasks)
        stats.model_call_count = client.call_count
        stats.model_attempt_count = client.attempt_count
        stats.wall_clock_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Run %s finished: %d tasks from %d chunks, %d model calls in %d ms",
            run.run_id or "-",
            stats.task_count,
            stats.chunk_count,
            stats.model_call_count,
            stats.wall_clock_ms,
        )
        return ExtractionResult(tasks=tasks, summary=summary, meeting_minutes=minutes, stats=stats)

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        self.events.emit("stage.started", level=logging.DEBUG, stage=name)
        started = time.perf_counter()
        try:
            yield
        except ExtractionError as exc:
            if exc.stage is None:
                exc.stage = name
            self.events.emit("stage.failed", level=logging.ERROR, stage=name, error=exc.message)
            raise
        self.events.emit(
            "stage.completed",
            level=logging.DEBUG,
            stage=name,
            duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _parse(self, run: RunInput) -> ParsedDocument:
        try:
            input_type = InputType(run.input_type)
        except ValueError as exc:
            raise InputError(f"Unknown input type: {run.input_type!r}") from exc
        if input_type == InputType.TEXT and not (run.text and run.text.strip()):
            raise InputError("Text input requires non-empty text")
        if input_type != InputType.TEXT and not run.data:
            raise InputError(f"{input_type.value.upper()} input requires file bytes")
        return parse_document(
            input_type,
            text=run.text,
            data=run.data,
            config=self.config,
            fallback_date=run.reference_time,
            events=self.events,
        )

    def _extract_candidates(
        self,
        client: ModelClient,
        chunks: list[Chunk],
        context: ExtractionContext,
    ) -> list[CandidateTask]:
        def extract(chunk: Chunk) -> list[CandidateTask]:
            data = client.complete_json(
                build_candidate_prompt(chunk.content, context),
                system=SYSTEM_PROMPT,
                temperature=self.config.temperature,
                operation="extract_candidates",
            )
            return coerce_candidates(data, self.events)

        workers = min(self.config.extraction_workers, len(chunks))
        if workers > 1:
            # map() yields in submission order, which keeps chunk order.
            with ThreadPoolExecutor(max_workers=workers) as executor:
                per_chunk = list(executor.map(extract, chunks))
        else:
            per_chunk = [extract(chunk) for chunk in chunks]

        candidates = [candidate for batch in per_chunk for candidate in batch]
        self.events.emit("candidates.extracted", chunks=len(chunks), candidates=len(candidates))
        return candidates

    def _validate(
        self,
        client: ModelClient,
        candidates: list[CandidateTask],
        context: ExtractionContext,
    ) -> list[Task]:
        quoted = [candidate for candidate in candidates if _has_quote(candidate)]
        if not quoted:
            self.events.emit("validation.skipped", candidates=len(candidates))
            return []

        data = client.complete_json(
            build_validation_prompt(quoted, context),
            system=SYSTEM_PROMPT,
            temperature=self.config.temperature * VALIDATION_TEMPERATURE_FACTOR,
            operation="validate",
        )
        validated = [candidate.to_task() for candidate in coerce_candidates(data, self.events) if _has_quote(candidate)]
        self.events.emit(
            "validation.completed",
            submitted=len(quoted),
            accepted=len(validated),
        )
        return validated

    def _postprocess(
        self,
        task: Task,
        run: RunInput,
        context: ExtractionContext,
        cleaned: str,
        document: ParsedDocument,
    ) -> Task:
        due_date_iso = task.due_date_iso
        if task.due_date_raw and not due_date_iso:
            resolved = resolve_date(task.due_date_raw, context.reference_time, context.timezone, self.events)
            due_date_iso = isoformat_utc(resolved) if resolved else None

        return replace(
            task,
            run_id=run.run_id,
            due_date_iso=due_date_iso,
            confidence=calculate_confidence(task.title, task.owner_raw, task.due_date_raw, task.source_quote),
            source_location=locate_quote(task.source_quote, cleaned, document.sections),
        )

    def _summarize(
        self,
        client: ModelClient,
        cleaned: str,
        tasks: list[Task],
        context: ExtractionContext,
    ) -> StakeholderSummary:
        data = client.complete_json(
            build_summary_prompt(cleaned, tasks, context),
            system=SUMMARY_SYSTEM_PROMPT,
            temperature=self.config.temperature,
            operation="summarize",
        )
        return coerce_summary(data)

    def _extract_minutes(self, client: ModelClient, cleaned: str) -> MeetingMinutes:
        data = client.complete_json(
            build_minutes_prompt(cleaned),
            system=SYSTEM_PROMPT,
            temperature=self.config.temperature,
            operation="extract_minutes",
        )
        minutes = coerce_minutes(data)
        logger.info(
            "Extracted meeting minutes: %d participants, %d agenda items",
            len(minutes.participants),
            len(minutes.agenda),
        )
        return minutes
