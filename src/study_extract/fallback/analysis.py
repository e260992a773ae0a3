"""Heuristic content analysis used as the baseline for generated analysis."""

from __future__ import annotations

import re

from study_extract.fallback.schedule import detect_schedule_worthy_content
from study_extract.heuristics import DATE_TOKEN, dedupe, detect_category, split_sentences
from study_extract.types import ContentAnalysis

_EDUCATIONAL = re.compile(
    r"\b(?:definition|concept|theory|principle|example|chapter|lecture|lesson|course|"
    r"topic|explain|formula|theorem|study)\b",
    re.IGNORECASE,
)


def heuristic_analysis(content: str, key_topics: list[str]) -> ContentAnalysis:
    text = content.strip()
    has_schedule = detect_schedule_worthy_content(text)
    educational_hits = len(_EDUCATIONAL.findall(text))
    has_educational = educational_hits >= 2 or detect_category(text) != "General"
    has_notes = len(text.split()) >= 30

    if has_schedule and not has_educational:
        content_type = "schedule"
    elif has_educational and has_schedule:
        content_type = "mixed"
    elif has_educational:
        content_type = "educational"
    else:
        content_type = "general"

    actions: list[str] = []
    if has_notes or has_educational:
        actions.append("notes")
    if has_educational:
        actions.append("flashcards")
    if has_schedule:
        actions.append("schedule")

    sentences = split_sentences(re.sub(r"\s+", " ", text))
    signals = sum((has_schedule, has_educational, has_notes))
    return ContentAnalysis(
        has_schedule_data=has_schedule,
        has_educational_content=has_educational,
        has_general_notes=has_notes,
        content_type=content_type,
        key_topics=key_topics[:10],
        detected_dates=dedupe([match.group(0) for match in DATE_TOKEN.finditer(text)])[:10],
        suggested_actions=actions or ["notes"],
        confidence=round(0.3 + 0.2 * signals, 2),
        summary=" ".join(sentences[:2])[:300],
    )
