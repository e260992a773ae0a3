"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class TaskTag(str, Enum):
    """Extraction task a generation request belongs to."""

    NOTES = "notes"
    FLASHCARDS = "flashcards"
    SCHEDULE = "schedule"
    TIMETABLE = "timetable"
    ANALYZE = "analyze"


Role = Literal["system", "user", "assistant"]
ScheduleType = Literal["assignment", "exam", "study", "note", "class"]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """One immutable request for the remote generation service."""

    messages: tuple[ChatMessage, ...]
    task: TaskTag
    model: str | None = None
    retries: int | None = None
    timeout_seconds: float | None = None
    max_tokens: int = 2000
    temperature: float = 0.3
    top_p: float = 0.95


@dataclass(frozen=True, slots=True)
class EndpointCandidate:
    """A reachable generation endpoint; list order encodes preference."""

    url: str
    label: str
    provider: str = "openai"
    headers: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class Chunk:
    """A bounded slice of source text with its position in the document."""

    text: str
    index: int
    total: int

    @property
    def position(self) -> int:
        return self.index + 1


@dataclass(slots=True)
class Note:
    title: str
    content: str
    category: str
    tags: list[str]
    id: str = ""
    source: str = ""


@dataclass(slots=True)
class Flashcard:
    question: str
    answer: str
    category: str
    difficulty: str = "medium"
    id: str = ""
    source: str = ""


@dataclass(slots=True)
class ScheduleItem:
    title: str
    date: str
    time: str
    type: ScheduleType
    end_time: str | None = None
    room: str | None = None
    instructor: str | None = None
    id: str = ""
    source: str = ""


@dataclass(slots=True)
class TimetableEntry:
    day: str
    time: str
    title: str
    end_time: str | None = None
    room: str | None = None
    instructor: str | None = None
    recurring: bool = True
    id: str = ""
    source: str = ""


@dataclass(slots=True)
class ContentAnalysis:
    """Heuristic or generated description of what a document contains."""

    has_schedule_data: bool
    has_educational_content: bool
    has_general_notes: bool
    content_type: str
    key_topics: list[str] = field(default_factory=list)
    detected_dates: list[str] = field(default_factory=list)
    suggested_actions: list[str] = field(default_factory=list)
    confidence: float = 0.5
    summary: str = ""


ExtractedRecord = Note | Flashcard | ScheduleItem | TimetableEntry


@dataclass(slots=True)
class CoverageReport:
    percentage: float
    total_topics: int
    covered_topics: list[str]
    missing_topics: list[str]
    acceptable: bool


@dataclass(frozen=True, slots=True)
class Parsed:
    """A reply the cascade could turn into JSON of the expected shape."""

    value: Any
    strategy: str


@dataclass(frozen=True, slots=True)
class Empty:
    """No strategy produced a usable value; `reason` is for logs only."""

    reason: str


ParseOutcome = Parsed | Empty


@dataclass(slots=True)
class FileProcessingResult:
    success: bool
    content: str
    notes: list[Note] = field(default_factory=list)
    flashcards: list[Flashcard] = field(default_factory=list)
    schedule_items: list[ScheduleItem] = field(default_factory=list)
    summary: str = ""
    error: str | None = None
