"""Paragraph-first, sentence-second chunking of oversized source text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from study_extract.config import ChunkingConfig
from study_extract.types import Chunk

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")


@dataclass(slots=True)
class _ChunkState:
    parts: list[str] = field(default_factory=list)
    size: int = 0

    def fits(self, text: str, joiner: str, limit: int) -> bool:
        extra = len(joiner) if self.parts else 0
        return self.size + extra + len(text) <= limit

    def add(self, text: str, joiner: str) -> None:
        if self.parts:
            self.size += len(joiner)
        self.parts.append(text)
        self.size += len(text)


class ContentChunker:
    """Splits text into bounded chunks without cutting through sentences.

    Paragraphs are packed greedily into a chunk until the next one would
    exceed `max_chars`. A paragraph that is itself too large is re-split on
    sentence terminators and those sentences are packed the same way. A
    single sentence longer than `max_chars` becomes its own oversized chunk.
    Chunks shorter than `min_chars` are dropped as noise when the document
    produced more than one chunk.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.min_chars >= self.config.max_chars:
            raise ValueError("min_chars must be less than max_chars")

    def needs_chunking(self, text: str) -> bool:
        return len(text.strip()) > self.config.max_chars

    def split(self, text: str) -> list[Chunk]:
        """Return ordered chunks; identical input always yields identical boundaries."""

        pieces = self._pack(text.strip())
        if len(pieces) > 1:
            pieces = [piece for piece in pieces if len(piece) >= self.config.min_chars]
        total = len(pieces)
        return [Chunk(text=piece, index=i, total=total) for i, piece in enumerate(pieces)]

    def _pack(self, text: str) -> list[str]:
        limit = self.config.max_chars
        output: list[str] = []
        state = _ChunkState()

        for paragraph in self._split_paragraphs(text):
            if len(paragraph) > limit:
                if state.parts:
                    output.append("\n\n".join(state.parts))
                    state = _ChunkState()
                output.extend(self._pack_sentences(paragraph))
                continue

            if state.fits(paragraph, "\n\n", limit):
                state.add(paragraph, "\n\n")
                continue

            output.append("\n\n".join(state.parts))
            state = _ChunkState()
            state.add(paragraph, "\n\n")

        if state.parts:
            output.append("\n\n".join(state.parts))
        return output

    def _pack_sentences(self, paragraph: str) -> list[str]:
        limit = self.config.max_chars
        output: list[str] = []
        state = _ChunkState()
        for sentence in self._split_sentences(paragraph):
            if state.fits(sentence, " ", limit):
                state.add(sentence, " ")
                continue
            if state.parts:
                output.append(" ".join(state.parts))
            state = _ChunkState()
            state.add(sentence, " ")
        if state.parts:
            output.append(" ".join(state.parts))
        return output

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        return [part.strip() for part in _PARAGRAPH_SPLIT.split(text) if part.strip()]

    @staticmethod
    def _split_sentences(paragraph: str) -> list[str]:
        return [part.strip() for part in _SENTENCE_SPLIT.split(paragraph) if part.strip()]
