"""Deterministic weekly timetable extraction from plain text."""

from __future__ import annotations

import re

from study_extract.heuristics import clock_time, normalize_day
from study_extract.parsing.normalize import new_id
from study_extract.types import TimetableEntry

_DAY = re.compile(
    r"\b(?:(?i:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
    r"|Mon|Tues?|Wed|Thu(?:rs?)?|Fri|Sat|Sun"
    r"|MON|TUES?|WED|THU(?:RS?)?|FRI|SAT|SUN)\b\.?"
)
_MARKER = r"[ap]\.?\s?m\.?"
_RANGE = re.compile(
    rf"\b(?P<sh>\d{{1,2}})(?:[:.](?P<sm>\d{{2}}))?\s*(?P<smk>{_MARKER})?"
    rf"\s*(?:-|–|—|to)\s*"
    rf"(?P<eh>\d{{1,2}})(?:[:.](?P<em>\d{{2}}))?\s*(?P<emk>{_MARKER})?(?!\w)",
    re.IGNORECASE,
)
_SINGLE = re.compile(
    rf"\b(?P<h>\d{{1,2}})(?:[:.](?P<m>\d{{2}})\s*(?P<mk>{_MARKER})?|\s*(?P<mk2>{_MARKER}))(?!\w)",
    re.IGNORECASE,
)
_ROOM_LABELED = re.compile(
    r"\b(?:room|rm\.?)\s*[:#]?\s*(?P<room>[A-Za-z]{0,4}-?\d[\w-]*)", re.IGNORECASE
)
_ROOM_CODE = re.compile(r"\b[A-Z]{1,4}-?\d{2,4}(?:-[A-Z0-9]{1,3})?\b")
_TITLED_INSTRUCTOR = re.compile(r"\b(?:Prof|Dr|Mr|Mrs|Ms)\.?\s+[A-Z][\w.]*(?:\s+[A-Z][a-z]+)?")
_INITIALS = re.compile(r"[A-Z]{2,3}")
_SUBJECT_CODES = frozenset(
    "AI ML DL UI UX CS IT OS DB DBMS CN SE NLP DSA OOP PE EVS IOT DEV API LAB".split()
)
_EDGE_NOISE = " \t-–—|,:;/()[]•*"


def fallback_timetable(content: str, source_name: str) -> list[TimetableEntry]:
    """Scan lines for weekday labels and clock times.

    A weekday on a line of its own applies to the following lines until the
    next weekday. Room codes and instructor names are stripped from what
    remains; the rest becomes the class title. Lines seen before any weekday
    are skipped.
    """

    entries: list[TimetableEntry] = []
    seen: set[tuple[str, str, str]] = set()
    current_days: list[str] = []

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        days = [day for day in (normalize_day(m.group(0)) for m in _DAY.finditer(line)) if day]
        if days:
            current_days = list(dict.fromkeys(days))
        rest = _DAY.sub(" ", line)

        span = _time_span(rest)
        if span is None or not current_days:
            continue
        start, end, matched = span
        rest = rest.replace(matched, " ", 1)

        room, rest = _take_room(rest)
        instructor, rest = _take_instructor(rest)
        title = re.sub(r"\s+", " ", rest).strip(_EDGE_NOISE) or "Class"

        for day in current_days:
            key = (day, start, title.lower())
            if key in seen:
                continue
            seen.add(key)
            entries.append(
                TimetableEntry(
                    day=day,
                    time=start,
                    title=title,
                    end_time=end,
                    room=room,
                    instructor=instructor,
                    recurring=True,
                    id=new_id("class"),
                    source=source_name,
                )
            )
    return entries


def _time_span(text: str) -> tuple[str, str | None, str] | None:
    for match in _RANGE.finditer(text):
        start_marker, end_marker = match.group("smk"), match.group("emk")
        has_clock = match.group("sm") is not None or match.group("em") is not None
        if not has_clock and not (start_marker or end_marker):
            continue
        start = clock_time(match.group("sh"), match.group("sm"), start_marker or end_marker)
        end = clock_time(match.group("eh"), match.group("em"), end_marker or start_marker)
        if start and end and start > end:
            # inherited meridiem crossed noon: "11:00 - 1:00 PM", "11 AM - 12:30"
            if not start_marker and end_marker:
                start = clock_time(match.group("sh"), match.group("sm"), "am")
            elif start_marker and not end_marker:
                end = clock_time(match.group("eh"), match.group("em"), "pm")
        if start:
            return start, end, match.group(0)

    single = _SINGLE.search(text)
    if single is None:
        return None
    marker = single.group("mk") or single.group("mk2")
    start = clock_time(single.group("h"), single.group("m"), marker)
    return (start, None, single.group(0)) if start else None


def _take_room(text: str) -> tuple[str | None, str]:
    labeled = _ROOM_LABELED.search(text)
    if labeled:
        return labeled.group("room"), text[: labeled.start()] + " " + text[labeled.end() :]
    codes = list(_ROOM_CODE.finditer(text))
    if not codes:
        return None, text
    last = codes[-1]
    return last.group(0), text[: last.start()] + " " + text[last.end() :]


def _take_instructor(text: str) -> tuple[str | None, str]:
    titled = _TITLED_INSTRUCTOR.search(text)
    if titled:
        return titled.group(0).strip(), text[: titled.start()] + " " + text[titled.end() :]

    tokens = [token.strip(_EDGE_NOISE) for token in text.split()]
    tokens = [token for token in tokens if token]
    if len(tokens) > 1 and _INITIALS.fullmatch(tokens[-1]) and tokens[-1] not in _SUBJECT_CODES:
        return tokens[-1], " ".join(tokens[:-1])
    return None, " ".join(tokens)
