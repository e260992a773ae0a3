"""Deterministic flashcard extraction used when generation is unavailable."""

from __future__ import annotations

import re

from study_extract.heuristics import split_sentences
from study_extract.parsing.normalize import new_id
from study_extract.types import Flashcard

MAX_FALLBACK_CARDS = 10
_COMPREHENSION_CARDS = 3
_DEFINITION = re.compile(
    r"\b([A-Za-z][\w-]*(?:[ \t]+[A-Za-z][\w-]*)?)"
    r"[ \t]+(?:is|are|means|refers to|defines)[ \t]+([^.!?\n]{8,})",
    flags=re.IGNORECASE,
)
_FACT = re.compile(
    r"\$\d[\d,]*(?:\.\d+)?|\b\d+(?:\.\d+)?%|\b(?:1[5-9]|20)\d{2}\b|\b\d{1,3}(?:,\d{3})+\b"
)
_NON_TERMS = frozenset(
    "it this that there these those he she they which what who here one each".split()
)


def fallback_flashcards(content: str, source_name: str) -> list[Flashcard]:
    """Comprehension, definition and figures cards; at most ten."""

    text = content.strip()
    if not text:
        return []

    cards: list[Flashcard] = []
    sentences = [
        s.strip()
        for s in re.split(r"[.!?]+", re.sub(r"\s+", " ", text))
        if 20 < len(s.strip()) < 200
    ]

    for sentence in sentences:
        if len(cards) >= _COMPREHENSION_CARDS:
            break
        if len(sentence.split()) <= 5:
            continue
        excerpt = sentence if len(sentence) <= 80 else sentence[:80] + "..."
        cards.append(
            Flashcard(
                question=f'What does this statement from {source_name} mean: "{excerpt}"?',
                answer=f"This statement explains: {sentence}",
                category="Reading Comprehension",
                difficulty="easy",
                id=new_id("card"),
                source=source_name,
            )
        )

    seen_terms: set[str] = set()
    for match in _DEFINITION.finditer(text):
        if len(cards) >= MAX_FALLBACK_CARDS - 1:
            break
        term = _clean_term(match.group(1))
        if not term or term.lower() in seen_terms:
            continue
        seen_terms.add(term.lower())
        definition = match.group(2).strip()[:150]
        verb = match.group(0)[len(match.group(1)) :].strip().split()[0].lower()
        cards.append(
            Flashcard(
                question=f"What is {term}?",
                answer=f"{term} {verb} {definition}",
                category="Definitions",
                difficulty="medium",
                id=new_id("card"),
                source=source_name,
            )
        )

    facts = list(dict.fromkeys(_FACT.findall(text)))
    if facts and len(cards) < MAX_FALLBACK_CARDS:
        cards.append(
            Flashcard(
                question=f"What numerical information is mentioned in {source_name}?",
                answer=f"The document mentions: {', '.join(facts[:3])}",
                category="Facts & Figures",
                difficulty="easy",
                id=new_id("card"),
                source=source_name,
            )
        )
    return cards[:MAX_FALLBACK_CARDS]


def supplement_flashcards(
    content: str, missing_topics: list[str], source_name: str
) -> list[Flashcard]:
    """One card per missing topic that the source actually mentions."""

    sentences = split_sentences(re.sub(r"\s+", " ", content))
    cards: list[Flashcard] = []
    for topic in missing_topics[:MAX_FALLBACK_CARDS]:
        mention = next((s for s in sentences if topic.lower() in s.lower()), "")
        if not mention:
            continue
        cards.append(
            Flashcard(
                question=f"What does {source_name} say about {topic}?",
                answer=mention[:300],
                category="Key Topics",
                difficulty="medium",
                id=new_id("card"),
                source=source_name,
            )
        )
    return cards


def _clean_term(raw: str) -> str:
    words = raw.split()
    while words and words[0].lower() in _NON_TERMS | {"a", "an", "the"}:
        words = words[1:]
    if not words or words[-1].lower() in _NON_TERMS:
        return ""
    return " ".join(words)
