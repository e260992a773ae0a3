"""Topic coverage check between source text and generated records."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import asdict, is_dataclass
from typing import Any

from study_extract.config import CoverageConfig
from study_extract.types import CoverageReport

_NUMBERED_ITEM = re.compile(r"^\s*(?:\d{1,3}|[ivxIVX]{1,4}|[a-zA-Z])[.)]\s+(?P<item>.+?)\s*$")
_CAPITALIZED_PHRASE = re.compile(
    r"\b[A-Z][a-z]+(?:[ \t]+(?:(?:of|and|the|for|in|to)[ \t]+)?[A-Z][a-z]+){1,3}\b"
)
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

_PHRASE_STOP_STARTS = frozenset(
    "The This That These Those There Then When Where What Which While After Before "
    "Page Chapter Figure Table".split()
)


class CoverageValidator:
    """Measures how many detected source topics reappear in generated content.

    Topic candidates come from three independent heuristics:

    - numbered/lettered list items (``1. Osmosis``, ``b) Diffusion``)
    - short lines followed by a much longer line (heading + body pairs)
    - capitalized multi-word phrases of plausible length

    A topic counts as covered when any normalized variant of it is a
    substring of the concatenated, lowercased generated content. With no
    detected topics the coverage is 100: there was nothing to miss.
    """

    def __init__(self, config: CoverageConfig | None = None) -> None:
        self.config = config or CoverageConfig()

    def extract_topics(self, text: str) -> list[str]:
        candidates: list[str] = []
        candidates.extend(self._numbered_items(text))
        candidates.extend(self._heading_pairs(text))
        candidates.extend(self._capitalized_phrases(text))

        topics: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            key = normalize_topic(candidate)
            if len(key) < 3 or key in seen:
                continue
            seen.add(key)
            topics.append(candidate)
            if len(topics) >= self.config.max_topics:
                break
        return topics

    def validate(self, source_text: str, records: Iterable[Any]) -> CoverageReport:
        topics = self.extract_topics(source_text)
        return self.report(topics, generated_text(records))

    def report(self, topics: list[str], content: str) -> CoverageReport:
        if not topics:
            return CoverageReport(
                percentage=100.0,
                total_topics=0,
                covered_topics=[],
                missing_topics=[],
                acceptable=True,
            )

        lowered = content.lower()
        haystacks = (
            lowered,
            _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", lowered)).strip(),
            _WHITESPACE.sub("", _PUNCTUATION.sub("", lowered)),
        )
        covered: list[str] = []
        missing: list[str] = []
        for topic in topics:
            pairs = zip(topic_variants(topic), haystacks, strict=True)
            if any(variant and variant in haystack for variant, haystack in pairs):
                covered.append(topic)
            else:
                missing.append(topic)

        percentage = min(100.0, max(0.0, len(covered) / len(topics) * 100.0))
        return CoverageReport(
            percentage=round(percentage, 2),
            total_topics=len(topics),
            covered_topics=covered,
            missing_topics=missing,
            acceptable=percentage >= self.config.threshold,
        )

    @staticmethod
    def _numbered_items(text: str) -> list[str]:
        items: list[str] = []
        for line in text.splitlines():
            match = _NUMBERED_ITEM.match(line)
            if not match:
                continue
            item = re.split(r"[:.;]\s|\s[-–—]\s", match.group("item"), maxsplit=1)[0].strip()
            if 3 <= len(item) <= 80:
                items.append(item)
        return items

    @staticmethod
    def _heading_pairs(text: str) -> list[str]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        headings: list[str] = []
        for current, following in zip(lines, lines[1:]):
            if not 3 <= len(current) <= 60 or current.endswith((".", ",", ";")):
                continue
            if _NUMBERED_ITEM.match(current):
                continue
            if len(following) > max(len(current) * 3, 60):
                headings.append(current.strip(" :#*-"))
        return headings

    @staticmethod
    def _capitalized_phrases(text: str) -> list[str]:
        phrases: list[str] = []
        for match in _CAPITALIZED_PHRASE.finditer(text):
            phrase = match.group(0).strip()
            if phrase.split()[0] in _PHRASE_STOP_STARTS:
                continue
            if 5 <= len(phrase) <= 50:
                phrases.append(phrase)
        return phrases


def normalize_topic(topic: str) -> str:
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", topic.lower())).strip()


def topic_variants(topic: str) -> tuple[str, str, str]:
    """Lowercased, punctuation-stripped and whitespace-stripped forms."""

    lowered = _WHITESPACE.sub(" ", topic.lower()).strip()
    return (
        lowered,
        normalize_topic(topic),
        _WHITESPACE.sub("", _PUNCTUATION.sub("", lowered)),
    )


def generated_text(records: Iterable[Any]) -> str:
    """Concatenate every textual field of the generated records."""

    parts: list[str] = []
    for record in records:
        payload = record
        if is_dataclass(record) and not isinstance(record, type):
            payload = asdict(record)
        if isinstance(payload, dict):
            for key, value in payload.items():
                if key in {"id", "source"}:
                    continue
                if isinstance(value, str):
                    parts.append(value)
                elif isinstance(value, list):
                    parts.extend(str(item) for item in value)
        else:
            parts.append(str(payload))
    return "\n".join(parts)
