"""Turn parsed JSON records into fully-populated typed records."""

from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Any

from study_extract.heuristics import (
    dedupe,
    detect_category,
    extract_tags,
    normalize_date,
    normalize_day,
    normalize_time,
)
from study_extract.types import ContentAnalysis, Flashcard, Note, ScheduleItem, TimetableEntry

_TECHNICAL_QUESTION_TERMS = (
    "pdf structure",
    "file metadata",
    "binary data",
    "encoding format",
    "document properties",
)

_IMPORTANT_SCHEDULE_KEYWORDS = (
    "assignment", "homework", "project", "exam", "test", "quiz", "midterm", "final",
    "presentation", "deadline", "due", "lab", "class", "lecture", "meeting", "interview",
    "submission",
)
_GENERIC_SCHEDULE_TITLES = (
    "study", "review", "read", "chapter", "unit", "topic", "overview", "introduction",
    "concepts", "notes",
)

_SCHEDULE_TYPE_ALIASES = {
    "assignment": "assignment", "homework": "assignment", "project": "assignment",
    "deadline": "assignment", "submission": "assignment", "essay": "assignment",
    "exam": "exam", "test": "exam", "quiz": "exam", "midterm": "exam", "final": "exam",
    "class": "class", "lecture": "class", "lab": "class", "tutorial": "class",
    "study": "study", "meeting": "study", "event": "study", "session": "study",
    "note": "note", "reminder": "note",
}
_DEFAULT_TIME_BY_TYPE = {
    "assignment": "23:59",
    "exam": "09:00",
    "class": "10:00",
    "study": "14:00",
    "note": "09:00",
}
_DIFFICULTIES = ("easy", "medium", "hard")
_CLOCK = r"\d{1,2}[:.]\d{2}\s*(?:[ap]\.?m\.?)?"
_SLOT_RANGE = re.compile(rf"({_CLOCK})\s*(?:-|–|—|to|~)\s*({_CLOCK})", re.IGNORECASE)


Record = dict[str, Any]


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _text(record: Record, *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    return ""


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part for part in re.split(r"[,;]", value) if part.strip()]
    if isinstance(value, list):
        return [
            str(item)
            for item in value
            if isinstance(item, (str, int, float)) and str(item).strip()
        ]
    return []


def normalize_notes(records: list[Record], source_text: str, source_name: str) -> list[Note]:
    notes: list[Note] = []
    for index, record in enumerate(records, start=1):
        content = _text(record, "content", "body", "text", "markdown", "summary")
        title = _text(record, "title", "heading", "topic", "name")
        if not content and not title:
            continue
        if not content:
            content = title
        if not title:
            title = f"Notes from {source_name}"
            if len(records) > 1:
                title += f" ({index})"
        tags = dedupe(_string_list(record.get("tags")))[:5]
        if not tags:
            tags = extract_tags(f"{title}\n{content}", source_name)
        notes.append(
            Note(
                title=title[:120],
                content=content,
                category=detect_category(
                    f"{title}\n{content}", source_name, _text(record, "category")
                ),
                tags=tags,
                id=new_id("note"),
                source=source_name,
            )
        )
    return notes


def normalize_flashcards(
    records: list[Record], source_text: str, source_name: str
) -> list[Flashcard]:
    """Drop cards without both sides or about file internals; default difficulty to medium."""

    cards: list[Flashcard] = []
    for record in records:
        question = _text(record, "question", "front", "q", "prompt")
        answer = _text(record, "answer", "back", "a", "response")
        if not question or not answer:
            continue
        if any(term in question.lower() for term in _TECHNICAL_QUESTION_TERMS):
            continue
        difficulty = _text(record, "difficulty").lower()
        cards.append(
            Flashcard(
                question=question,
                answer=answer,
                category=detect_category(
                    f"{question} {answer}", source_name, _text(record, "category", "topic")
                ),
                difficulty=difficulty if difficulty in _DIFFICULTIES else "medium",
                id=new_id("card"),
                source=source_name,
            )
        )
    return cards


def is_important_schedule_title(title: str) -> bool:
    lowered = title.lower()
    if len(title) <= 5:
        return False
    if not any(keyword in lowered for keyword in _IMPORTANT_SCHEDULE_KEYWORDS):
        return False
    return not any(
        lowered == generic or lowered.startswith(generic + " ")
        for generic in _GENERIC_SCHEDULE_TITLES
    )


def schedule_type(value: str) -> str:
    lowered = value.lower()
    if lowered in _SCHEDULE_TYPE_ALIASES:
        return _SCHEDULE_TYPE_ALIASES[lowered]
    for alias, kind in _SCHEDULE_TYPE_ALIASES.items():
        if alias in lowered:
            return kind
    return "study"


def normalize_schedule(
    records: list[Record], source_text: str, source_name: str, *, today: date
) -> list[ScheduleItem]:
    items: list[ScheduleItem] = []
    for record in records:
        title = _text(record, "title", "name", "event", "description")
        if not is_important_schedule_title(title):
            continue
        kind = schedule_type(_text(record, "type", "category") or title)
        time = normalize_time(_text(record, "time", "dueTime", "start_time", "startTime"))
        items.append(
            ScheduleItem(
                title=title[:100],
                date=normalize_date(_text(record, "date", "dueDate", "due_date", "day"), today),
                time=time or _DEFAULT_TIME_BY_TYPE[kind],
                type=kind,  # type: ignore[arg-type]
                end_time=normalize_time(_text(record, "endTime", "end_time")),
                room=_text(record, "room", "location") or None,
                instructor=_text(record, "instructor", "faculty") or None,
                id=new_id("event"),
                source=source_name,
            )
        )
    return items


def expand_timetable_records(records: list[Record]) -> list[Record]:
    """Flatten `{"days": {"Monday": {"09:00 - 10:30": {...}}}}` grids into flat rows."""

    rows: list[Record] = []
    for record in records:
        days = record.get("days")
        if not isinstance(days, dict):
            rows.append(record)
            continue
        for day, slots in days.items():
            if not isinstance(slots, dict):
                continue
            for slot, cell in slots.items():
                cell = cell if isinstance(cell, dict) else {"subject": str(cell)}
                match = _SLOT_RANGE.search(str(slot))
                rows.append(
                    {
                        **cell,
                        "day": day,
                        "start_time": match.group(1) if match else str(slot),
                        "end_time": match.group(2) if match else None,
                    }
                )
    return rows


def normalize_timetable(
    records: list[Record], source_text: str, source_name: str
) -> list[TimetableEntry]:
    entries: list[TimetableEntry] = []
    seen: set[tuple[str, str, str]] = set()
    for record in expand_timetable_records(records):
        title = _text(record, "subject", "title", "course", "name") or "Class"
        day = normalize_day(_text(record, "day", "weekday")) or "Monday"
        time = normalize_time(_text(record, "start_time", "time", "startTime", "start")) or "09:00"
        key = (day, time, title.lower())
        if key in seen:
            continue
        seen.add(key)
        entries.append(
            TimetableEntry(
                day=day,
                time=time,
                title=title,
                end_time=normalize_time(_text(record, "end_time", "endTime", "end")),
                room=_text(record, "room", "location") or None,
                instructor=_text(record, "faculty", "instructor", "teacher") or None,
                recurring=True,
                id=new_id("class"),
                source=source_name,
            )
        )
    return entries


def normalize_analysis(record: Record, fallback: ContentAnalysis) -> ContentAnalysis:
    """Overlay generated analysis fields on a heuristic baseline."""

    def _flag(key: str, default: bool) -> bool:
        value = record.get(key)
        return value if isinstance(value, bool) else default

    def _list(key: str, default: list[str]) -> list[str]:
        return dedupe(_string_list(record.get(key))) or default

    confidence = record.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not 0 <= confidence <= 1
    ):
        confidence = fallback.confidence
    return ContentAnalysis(
        has_schedule_data=_flag("hasScheduleData", fallback.has_schedule_data),
        has_educational_content=_flag("hasEducationalContent", fallback.has_educational_content),
        has_general_notes=_flag("hasGeneralNotes", fallback.has_general_notes),
        content_type=_text(record, "contentType") or fallback.content_type,
        key_topics=_list("keyTopics", fallback.key_topics),
        detected_dates=_list("detectedDates", fallback.detected_dates),
        suggested_actions=_list("suggestedActions", fallback.suggested_actions),
        confidence=float(confidence),
        summary=_text(record, "summary") or fallback.summary,
    )
