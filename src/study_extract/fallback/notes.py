"""Deterministic note extraction used when generation is unavailable."""

from __future__ import annotations

import re

from study_extract.heuristics import detect_category, extract_tags, split_sentences
from study_extract.parsing.normalize import new_id
from study_extract.types import Note

_KEY_CONCEPT_LIMIT = 6
_SECTION_LIMIT = 12
_HEADING = re.compile(
    r"^\s*(?:#{1,6}\s+(?P<md>.{2,80})"
    r"|(?P<num>(?:\d{1,3}|[IVX]{1,4})[.)]\s+[^.!?]{2,80})"
    r"|(?P<caps>[A-Z][A-Z0-9 &/,'-]{3,60}))\s*:?\s*$"
)


def fallback_notes(content: str, source_name: str) -> list[Note]:
    """Build one markdown note with Summary, Key Concepts and Sections blocks."""

    text = content.strip()
    if not text:
        return []

    sections = segment_sections(text)
    headings = [heading for heading, _ in sections if heading]
    flat = re.sub(r"\s+", " ", text)
    sentences = split_sentences(flat)

    title = _pick_title(text, headings, source_name)
    summary = " ".join(sentences[:2])[:400] if sentences else flat[:400]
    concepts = [s for s in sentences if 40 <= len(s) <= 300][:_KEY_CONCEPT_LIMIT]
    if not concepts:
        concepts = [s for s in sentences if len(s) >= 10][:_KEY_CONCEPT_LIMIT] or [flat[:200]]

    lines = [f"# {title}", "", "## Summary", summary, "", "## Key Concepts"]
    lines.extend(f"- {concept}" for concept in concepts)
    if headings:
        lines.extend(["", "## Sections"])
        for heading, body in sections[:_SECTION_LIMIT]:
            if not heading:
                continue
            lines.append(f"### {heading}")
            body_sentences = split_sentences(re.sub(r"\s+", " ", body))
            if body_sentences:
                lines.append(body_sentences[0])
            lines.append("")

    markdown = "\n".join(lines).strip()
    return [
        Note(
            title=title,
            content=markdown,
            category=detect_category(text, source_name),
            tags=extract_tags(text, source_name),
            id=new_id("note"),
            source=source_name,
        )
    ]


def supplement_notes(content: str, missing_topics: list[str], source_name: str) -> list[Note]:
    """One note that restates the source sentences mentioning each missing topic."""

    if not missing_topics or not content.strip():
        return []
    sentences = split_sentences(re.sub(r"\s+", " ", content.strip()))
    lines = ["## Additional Topics", ""]
    for topic in missing_topics:
        lowered = topic.lower()
        mention = next((s for s in sentences if lowered in s.lower()), "")
        lines.append(f"### {topic}")
        lines.append(mention or f"{topic} is covered in {source_name}.")
        lines.append("")
    markdown = "\n".join(lines).strip()
    return [
        Note(
            title=f"Additional topics from {source_name}",
            content=markdown,
            category=detect_category(markdown, source_name),
            tags=extract_tags(markdown, source_name),
            id=new_id("note"),
            source=source_name,
        )
    ]


def segment_sections(text: str) -> list[tuple[str | None, str]]:
    """Split into (heading, body) pairs by detected headings, else by paragraph."""

    sections: list[tuple[str | None, str]] = []
    heading: str | None = None
    body: list[str] = []
    for line in text.splitlines():
        match = _HEADING.match(line)
        if match and len(line.strip()) <= 80:
            if heading is not None or body:
                sections.append((heading, "\n".join(body).strip()))
            heading = (match.group("md") or match.group("num") or match.group("caps")).strip(" :")
            body = []
        else:
            body.append(line)
    if heading is not None or body:
        sections.append((heading, "\n".join(body).strip()))

    if any(heading for heading, _ in sections):
        return sections
    paragraphs = re.split(r"\n\s*\n", text)
    return [(None, paragraph.strip()) for paragraph in paragraphs if paragraph.strip()]


def _pick_title(text: str, headings: list[str], source_name: str) -> str:
    if headings:
        return headings[0][:80]
    first_line = text.splitlines()[0].strip()
    if 3 <= len(first_line) <= 80 and not first_line.endswith((".", ",", ";")):
        return first_line
    return f"Notes from {source_name}"
