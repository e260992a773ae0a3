"""Schedule detection and deterministic schedule extraction."""

from __future__ import annotations

import re
from datetime import date, timedelta

from study_extract.heuristics import DATE_TOKEN, normalize_time, parse_date_token, split_sentences
from study_extract.parsing.normalize import new_id
from study_extract.types import ScheduleItem

MAX_FALLBACK_ITEMS = 5
_THEORY_RATIO_LIMIT = 5.0

# Each cue is bound to a date or a commitment phrase.
_SCHEDULE_CUES = (
    re.compile(r"\b(?:assignment|homework|project)\s+(?:due|deadline|submit)", re.IGNORECASE),
    re.compile(r"\bdue\s+(?:date|on|by)\b", re.IGNORECASE),
    re.compile(r"\bdeadline\s*:?\s*\d", re.IGNORECASE),
    re.compile(r"\b(?:exam|test|quiz|midterm|final)\s+(?:on|date|scheduled)", re.IGNORECASE),
    re.compile(r"\bexam\s*:?\s*\w+\s+\d", re.IGNORECASE),
    re.compile(r"\b(?:class|lecture|lab|session)\s+(?:schedule|time|meets)", re.IGNORECASE),
    re.compile(r"\bmeets?\s+(?:every|on|at)\s+\w+", re.IGNORECASE),
    re.compile(r"\b\d{1,2}:\d{2}\s*(?:am|pm)\b", re.IGNORECASE),
    re.compile(r"\bweekly\s+(?:on|at)\b", re.IGNORECASE),
    DATE_TOKEN,
)
_THEORY_WORDS = re.compile(
    r"\b(?:definition|concept|theory|principle|example|explanation|understand|learn|study|"
    r"chapter|section|introduction|overview|summary)\b",
    re.IGNORECASE,
)

_DUE_CUE = re.compile(r"\b(?:due\s*(?:date|on|by|:)|deadline|submit)", re.IGNORECASE)
# (pattern, type, default time); first match per line wins.
_LINE_CUES: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (
        re.compile(r"\b(?:assignment|homework|project|essay)\b", re.IGNORECASE),
        "assignment",
        "23:59",
    ),
    (re.compile(r"\b(?:exam|test|quiz|midterm|final)\b", re.IGNORECASE), "exam", "09:00"),
    (re.compile(r"\b(?:class|lecture|lab|tutorial)\b", re.IGNORECASE), "class", "10:00"),
    (_DUE_CUE, "assignment", "23:59"),
)
_EXPLICIT_TIME = re.compile(
    r"\b\d{1,2}:\d{2}\s*(?:[ap]\.?\s?m\.?)?|\b\d{1,2}\s*[ap]\.?\s?m\.?(?![\w])",
    re.IGNORECASE,
)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d{1,3}[.)])\s*")


def detect_schedule_worthy_content(text: str) -> bool:
    """True when the text carries date-bound commitments rather than theory alone."""

    if not text.strip():
        return False
    if not any(cue.search(text) for cue in _SCHEDULE_CUES):
        return False
    words = len(text.split())
    theory_ratio = len(_THEORY_WORDS.findall(text)) / max(words / 100.0, 1.0)
    return theory_ratio < _THEORY_RATIO_LIMIT


def fallback_schedule(content: str, source_name: str, *, today: date) -> list[ScheduleItem]:
    """Scan lines for assignment, exam, class and due-date cues; at most five items.

    Each item takes the first date on its line. A line without one borrows
    the date of the line right after it, unless that line opens an item of
    its own; the borrowed line is then consumed. Without any date the item
    lands one week from `today`. An explicit clock time wins over the cue's
    default time. With no cues at all a single study session is proposed.
    """

    items: list[ScheduleItem] = []
    seen_lines: set[str] = set()
    one_week = (today + timedelta(days=7)).isoformat()
    segments = _segments(content)

    for index, segment in enumerate(segments):
        if len(items) >= MAX_FALLBACK_ITEMS:
            break
        key = segment.lower()
        if key in seen_lines:
            continue
        cue = _line_cue(segment)
        if cue is None:
            continue
        kind, default_time = cue
        seen_lines.add(key)

        context = segment
        when = parse_date_token(segment, today)
        follower = segments[index + 1] if index + 1 < len(segments) else None
        if when is None and follower is not None and not _opens_item(follower):
            when = parse_date_token(follower, today)
            if when is not None:
                seen_lines.add(follower.lower())
                context = f"{segment} {follower}"

        time_match = _EXPLICIT_TIME.search(context)
        clock = normalize_time(time_match.group(0)) if time_match else None
        items.append(
            ScheduleItem(
                title=segment[:100],
                date=when.isoformat() if when else one_week,
                time=clock or default_time,
                type=kind,  # type: ignore[arg-type]
                id=new_id("event"),
                source=source_name,
            )
        )

    if not items:
        items.append(
            ScheduleItem(
                title=f"Study session from {source_name}",
                date=one_week,
                time="14:00",
                type="study",
                id=new_id("event"),
                source=source_name,
            )
        )
    return items


def _line_cue(segment: str) -> tuple[str, str] | None:
    for pattern, kind, default_time in _LINE_CUES:
        if pattern.search(segment):
            return kind, default_time
    return None


def _opens_item(segment: str) -> bool:
    """A line with a cue other than a bare due marker describes its own event."""

    return any(pattern.search(segment) for pattern, _, _ in _LINE_CUES[:-1])


def _segments(content: str) -> list[str]:
    segments: list[str] = []
    for line in content.splitlines():
        cleaned = re.sub(r"\s+", " ", _BULLET.sub("", line)).strip()
        if len(cleaned) < 4:
            continue
        segments.extend(split_sentences(cleaned) if len(cleaned) > 160 else [cleaned])
    return segments
