"""Per-task extraction pipeline: chunk, generate, parse, validate, fall back."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from study_extract.config import OrchestratorConfig, Settings
from study_extract.errors import IngestionError
from study_extract.fallback.analysis import heuristic_analysis
from study_extract.fallback.flashcards import fallback_flashcards, supplement_flashcards
from study_extract.fallback.notes import fallback_notes, supplement_notes
from study_extract.fallback.schedule import detect_schedule_worthy_content, fallback_schedule
from study_extract.fallback.timetable import fallback_timetable
from study_extract.generation.caller import EndpointCaller
from study_extract.generation.dispatcher import (
    DispatchOutcome,
    FailoverDispatcher,
    build_candidates,
)
from study_extract.generation.prompts import build_request
from study_extract.ingest.chunker import ContentChunker
from study_extract.obs.tracing import Timer, TraceStore
from study_extract.parsing.cascade import ExpectedShape, declares_no_records, parse_reply
from study_extract.parsing.normalize import (
    normalize_analysis,
    normalize_flashcards,
    normalize_notes,
    normalize_schedule,
    normalize_timetable,
)
from study_extract.types import (
    Chunk,
    ContentAnalysis,
    Empty,
    FileProcessingResult,
    Flashcard,
    GenerationRequest,
    Note,
    ScheduleItem,
    TaskTag,
    TimetableEntry,
)
from study_extract.validation.coverage import CoverageValidator

logger = logging.getLogger(__name__)

Normalizer = Callable[[list[dict[str, Any]], str, str], list[Any]]
Extractor = Callable[[str, str], list[Any]]
Supplementer = Callable[[str, list[str], str], list[Any]]


class Dispatcher(Protocol):
    async def dispatch(self, request: GenerationRequest) -> DispatchOutcome:
        """Return a reply or the task's empty sentinel; never raise for endpoint failures."""


@dataclass(frozen=True, slots=True)
class _TaskPlan:
    normalize: Normalizer
    fallback: Extractor
    supplement: Supplementer | None = None
    # a successful reply with no usable records stands as the chunk's answer
    accept_empty: bool = False


@dataclass(slots=True)
class _RunStats:
    generated_chunks: int = 0
    fallback_chunks: int = 0
    attempts: int = 0
    supplemented: bool = False
    endpoints: list[str] = field(default_factory=list)


class ExtractionOrchestrator:
    """Runs one extraction task over a document.

    Chunks are processed sequentially with a fixed delay between calls; any
    chunk whose generation fails, raises, or parses to nothing is replaced
    by that chunk's heuristic fallback output. For notes and flashcards, low
    topic coverage is supplemented per chunk and once more across the merged
    result. The only error that escapes is `IngestionError`.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        config: OrchestratorConfig | None = None,
        chunker: ContentChunker | None = None,
        validator: CoverageValidator | None = None,
        trace_store: TraceStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.dispatcher = dispatcher
        self.config = config or OrchestratorConfig()
        self.chunker = chunker or ContentChunker(self.config.chunking)
        self.validator = validator or CoverageValidator(self.config.coverage)
        self.trace_store = trace_store
        self._sleep = sleep
        self._today = today
        self._plans: dict[TaskTag, _TaskPlan] = {
            TaskTag.NOTES: _TaskPlan(normalize_notes, fallback_notes, supplement_notes),
            TaskTag.FLASHCARDS: _TaskPlan(
                normalize_flashcards, fallback_flashcards, supplement_flashcards
            ),
            TaskTag.SCHEDULE: _TaskPlan(
                self._normalize_schedule, self._fallback_schedule, accept_empty=True
            ),
            TaskTag.TIMETABLE: _TaskPlan(
                normalize_timetable, fallback_timetable, accept_empty=True
            ),
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        caller: EndpointCaller | None = None,
        trace_store: TraceStore | None = None,
    ) -> "ExtractionOrchestrator":
        dispatcher = FailoverDispatcher(
            build_candidates(settings.endpoints),
            caller=caller,
            config=settings.dispatch,
            routing=settings.routing,
        )
        return cls(dispatcher, config=settings.orchestrator, trace_store=trace_store)

    async def generate_notes(self, content: str, source_name: str) -> list[Note]:
        return await self._run(TaskTag.NOTES, content, source_name)

    async def generate_flashcards(self, content: str, source_name: str) -> list[Flashcard]:
        return await self._run(TaskTag.FLASHCARDS, content, source_name)

    async def generate_schedule(self, content: str, source_name: str) -> list[ScheduleItem]:
        text = self._require_content(content, source_name)
        if not detect_schedule_worthy_content(text):
            logger.info("Skipping schedule for %s: no date-bound content detected", source_name)
            return []
        return await self._run(TaskTag.SCHEDULE, text, source_name)

    async def generate_timetable(self, content: str, source_name: str) -> list[TimetableEntry]:
        return await self._run(TaskTag.TIMETABLE, content, source_name)

    async def analyze_content(self, content: str, source_name: str) -> ContentAnalysis:
        text = self._require_content(content, source_name)
        baseline = heuristic_analysis(text, self.validator.extract_topics(text))
        stats = _RunStats()
        result = baseline

        with Timer() as timer:
            excerpt = text[: self.config.chunking.max_chars]
            try:
                request = build_request(
                    TaskTag.ANALYZE,
                    excerpt,
                    source_name=source_name,
                    options=self.config.generation,
                )
                outcome = await self.dispatcher.dispatch(request)
                self._note_outcome(stats, outcome)
                parsed = parse_reply(outcome.text, ExpectedShape.OBJECT)
                if isinstance(parsed, Empty):
                    logger.warning(
                        "Using heuristic analysis for %s: %s", source_name, parsed.reason
                    )
                else:
                    result = normalize_analysis(parsed.value, baseline)
            except Exception:
                logger.exception("Content analysis failed for %s", source_name)
                result = baseline

        if stats.endpoints:
            stats.generated_chunks = 1
        else:
            stats.fallback_chunks = 1
        self._trace(TaskTag.ANALYZE, source_name, 1, 1, None, stats, timer.elapsed_ms)
        return result

    async def extract(self, task: TaskTag | str, content: str, source_name: str) -> Any:
        """Dispatch by task tag; unknown tags raise ValueError."""

        tag = TaskTag(task)
        if tag is TaskTag.NOTES:
            return await self.generate_notes(content, source_name)
        if tag is TaskTag.FLASHCARDS:
            return await self.generate_flashcards(content, source_name)
        if tag is TaskTag.SCHEDULE:
            return await self.generate_schedule(content, source_name)
        if tag is TaskTag.TIMETABLE:
            return await self.generate_timetable(content, source_name)
        return await self.analyze_content(content, source_name)

    async def process_content(self, content: str, source_name: str) -> FileProcessingResult:
        """Notes, flashcards and schedule for one document, run as sibling tasks."""

        try:
            text = self._require_content(content, source_name)
        except IngestionError as exc:
            return FileProcessingResult(success=False, content=content or "", error=str(exc))

        notes, flashcards, schedule_items = await asyncio.gather(
            self.generate_notes(text, source_name),
            self.generate_flashcards(text, source_name),
            self.generate_schedule(text, source_name),
        )
        summary = (
            f"Processed {source_name}: Generated {len(flashcards)} flashcards, "
            f"{len(notes)} notes, {len(schedule_items)} schedule items."
        )
        logger.info(summary)
        return FileProcessingResult(
            success=True,
            content=text,
            notes=notes,
            flashcards=flashcards,
            schedule_items=schedule_items,
            summary=summary,
        )

    async def _run(self, task: TaskTag, content: str, source_name: str) -> list[Any]:
        text = self._require_content(content, source_name)
        plan = self._plans[task]
        chunks = self.chunker.split(text)
        stats = _RunStats()
        records: list[Any] = []
        coverage: float | None = None

        with Timer() as timer:
            for chunk in chunks:
                if chunk.index > 0 and self.config.inter_chunk_delay_seconds > 0:
                    await self._sleep(self.config.inter_chunk_delay_seconds)
                records.extend(await self._process_chunk(task, plan, chunk, source_name, stats))

            if plan.supplement is not None:
                report = self.validator.validate(text, records)
                coverage = report.percentage
                if not report.acceptable:
                    extra = plan.supplement(text, report.missing_topics, source_name)
                    if extra:
                        logger.info(
                            "Coverage %.1f%% for %s %s; adding %s supplemental record(s)",
                            report.percentage,
                            task.value,
                            source_name,
                            len(extra),
                        )
                        records.extend(extra)
                        stats.supplemented = True

        logger.info(
            "Extracted %s %s record(s) from %s (%s chunk(s), %s via fallback)",
            len(records),
            task.value,
            source_name,
            len(chunks),
            stats.fallback_chunks,
        )
        self._trace(task, source_name, len(chunks), len(records), coverage, stats, timer.elapsed_ms)
        return records

    async def _process_chunk(
        self,
        task: TaskTag,
        plan: _TaskPlan,
        chunk: Chunk,
        source_name: str,
        stats: _RunStats,
    ) -> list[Any]:
        records: list[Any] = []
        answered = False
        try:
            request = build_request(
                task,
                chunk.text,
                source_name=source_name,
                chunk=chunk,
                options=self.config.generation,
            )
            outcome = await self.dispatcher.dispatch(request)
            self._note_outcome(stats, outcome)
            accepts_empty = plan.accept_empty and outcome.succeeded
            parsed = parse_reply(outcome.text, ExpectedShape.ARRAY)
            if isinstance(parsed, Empty):
                answered = accepts_empty and declares_no_records(outcome.text)
                if not answered:
                    logger.warning(
                        "No usable %s records in chunk %s/%s of %s: %s",
                        task.value,
                        chunk.position,
                        chunk.total,
                        source_name,
                        parsed.reason,
                    )
            else:
                records = plan.normalize(parsed.value, chunk.text, source_name)
                answered = bool(records) or accepts_empty
        except Exception:
            logger.exception(
                "Generation failed for chunk %s/%s of %s", chunk.position, chunk.total, source_name
            )
            records = []
            answered = False

        if not answered:
            stats.fallback_chunks += 1
            return plan.fallback(chunk.text, source_name)

        stats.generated_chunks += 1
        if not records:
            logger.info(
                "Chunk %s/%s of %s has no %s records",
                chunk.position,
                chunk.total,
                source_name,
                task.value,
            )
            return records
        if plan.supplement is not None:
            report = self.validator.validate(chunk.text, records)
            if not report.acceptable:
                extra = plan.supplement(chunk.text, report.missing_topics, source_name)
                if extra:
                    records.extend(extra)
                    stats.supplemented = True
        return records

    def _require_content(self, content: str | None, source_name: str) -> str:
        text = (content or "").strip()
        if len(text) < self.config.min_content_chars:
            raise IngestionError(
                f"No usable text in {source_name}: {len(text)} character(s), "
                f"need at least {self.config.min_content_chars}"
            )
        return text

    def _normalize_schedule(
        self, records: list[dict[str, Any]], source_text: str, source_name: str
    ) -> list[ScheduleItem]:
        return normalize_schedule(records, source_text, source_name, today=self._today())

    def _fallback_schedule(self, content: str, source_name: str) -> list[ScheduleItem]:
        return fallback_schedule(content, source_name, today=self._today())

    @staticmethod
    def _note_outcome(stats: _RunStats, outcome: DispatchOutcome) -> None:
        stats.attempts += outcome.attempts
        if outcome.endpoint is not None:
            stats.endpoints.append(outcome.endpoint)

    def _trace(
        self,
        task: TaskTag,
        source_name: str,
        chunk_count: int,
        record_count: int,
        coverage: float | None,
        stats: _RunStats,
        latency_ms: float,
    ) -> None:
        if self.trace_store is None:
            return
        self.trace_store.create_record(
            task=task.value,
            source_name=source_name,
            chunk_count=chunk_count,
            generated_chunks=stats.generated_chunks,
            fallback_chunks=stats.fallback_chunks,
            record_count=record_count,
            coverage_percentage=coverage,
            supplemented=stats.supplemented,
            dispatch_attempts=stats.attempts,
            endpoints=stats.endpoints,
            latency_ms=latency_ms,
        )
