"""Strict-to-lenient recovery of JSON records from free-form replies.

Strategies, in order:

1. ``direct``   - the trimmed reply is JSON of the expected shape.
2. ``unfenced`` - markdown code fences are stripped first.
3. ``balanced`` - the first balanced ``[...]`` / ``{...}`` substring is parsed;
   bracket characters inside quoted strings are ignored. For array replies cut
   off mid-way, every complete object inside the open array is salvaged.
4. ``fields``   - ``"field": "value"`` pairs are collected into one record.

A strategy only wins when it parses AND yields a non-empty value of the
expected shape. The cascade never raises; callers get `Parsed` or `Empty`.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import Any

from study_extract.types import Empty, ParseOutcome, Parsed

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?|```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_FIELD_PAIR = re.compile(r'"([A-Za-z_][\w ]{0,40})"\s*:\s*"((?:[^"\\]|\\.)*)"')

# Keys under which services commonly wrap the record list.
_WRAPPER_KEYS = (
    "items",
    "records",
    "data",
    "results",
    "notes",
    "flashcards",
    "cards",
    "schedule",
    "scheduleItems",
    "events",
    "classes",
    "weekly_schedule",
    "timetable",
)


class ExpectedShape(str, Enum):
    ARRAY = "array"
    OBJECT = "object"


def parse_reply(raw: str | None, shape: ExpectedShape = ExpectedShape.ARRAY) -> ParseOutcome:
    """Run every strategy until one yields a non-empty value of `shape`."""

    text = (raw or "").strip()
    if not text:
        return Empty(reason="empty reply")

    strategies: tuple[tuple[str, Callable[[str, ExpectedShape], Any]], ...] = (
        ("direct", _parse_direct),
        ("unfenced", _parse_unfenced),
        ("balanced", _parse_balanced),
        ("fields", _parse_field_pairs),
    )
    for name, strategy in strategies:
        try:
            candidate = strategy(text, shape)
        except (ValueError, RecursionError):
            continue
        value = _coerce(candidate, shape)
        if value:
            if name != "direct":
                logger.debug("Recovered %s reply with %s strategy", shape.value, name)
            return Parsed(value=value, strategy=name)

    logger.warning("No parser strategy recovered a %s from reply: %.200s", shape.value, text)
    return Empty(reason="no strategy produced a non-empty value")


def declares_no_records(raw: str | None, shape: ExpectedShape = ExpectedShape.ARRAY) -> bool:
    """True when the reply is well-formed JSON that simply holds no records."""

    text = strip_code_fences((raw or "").strip())
    if not text:
        return False
    try:
        value = _loads(text)
    except (ValueError, RecursionError):
        return False
    return not _coerce(value, shape)


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def find_balanced(text: str, openers: str = "[{") -> str | None:
    """Return the first balanced container starting with one of `openers`."""

    for start, char in enumerate(text):
        if char not in openers:
            continue
        end = _match_close(text, start)
        if end is not None:
            return text[start : end + 1]
    return None


def _parse_direct(text: str, shape: ExpectedShape) -> Any:
    return _loads(text)


def _parse_unfenced(text: str, shape: ExpectedShape) -> Any:
    unfenced = strip_code_fences(text)
    if unfenced == text:
        raise ValueError("no code fences")
    return _loads(unfenced)


def _parse_balanced(text: str, shape: ExpectedShape) -> Any:
    text = strip_code_fences(text)
    preferred = "[" if shape is ExpectedShape.ARRAY else "{"
    for openers in (preferred, "[{"):
        container = find_balanced(text, openers)
        if container is None:
            continue
        try:
            value = _loads(container)
        except ValueError:
            continue
        if _coerce(value, shape):
            return value

    if shape is ExpectedShape.ARRAY:
        salvaged = _salvage_objects(text)
        if salvaged:
            return salvaged
    raise ValueError("no balanced container")


def _parse_field_pairs(text: str, shape: ExpectedShape) -> Any:
    record: dict[str, str] = {}
    for key, value in _FIELD_PAIR.findall(text):
        if key not in record:
            record[key] = _unescape(value)
    if not record:
        raise ValueError("no field pairs")
    return record if shape is ExpectedShape.OBJECT else [record]


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        relaxed = _TRAILING_COMMA.sub(r"\1", text)
        if relaxed == text:
            raise
        return json.loads(relaxed)


def _coerce(value: Any, shape: ExpectedShape) -> Any:
    """Bring a parsed value into `shape`; falsy result means "not usable"."""

    if shape is ExpectedShape.OBJECT:
        if isinstance(value, dict) and value:
            return value
        if isinstance(value, list):
            for item in value:
                if isinstance(item, dict) and item:
                    return item
        return None

    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict) and item]
    if isinstance(value, dict) and value:
        for key in _WRAPPER_KEYS:
            nested = value.get(key)
            if isinstance(nested, list) and any(isinstance(item, dict) for item in nested):
                return [item for item in nested if isinstance(item, dict) and item]
        return [value]
    return None


def _match_close(text: str, start: int) -> int | None:
    stack: list[str] = []
    in_string = False
    escaped = False
    closers = {"[": "]", "{": "}"}
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in closers:
            stack.append(closers[char])
        elif char in "]}":
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return index
    return None


def _salvage_objects(text: str) -> list[dict[str, Any]]:
    """Collect complete objects that follow the first `[`, for truncated arrays."""

    opening = text.find("[")
    if opening == -1:
        return []
    records: list[dict[str, Any]] = []
    index = opening + 1
    while index < len(text):
        if text[index] != "{":
            index += 1
            continue
        end = _match_close(text, index)
        if end is None:
            break
        try:
            value = _loads(text[index : end + 1])
        except ValueError:
            value = None
        if isinstance(value, dict) and value:
            records.append(value)
        index = end + 1
    return records


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value
