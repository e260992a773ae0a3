import pytest

from study_extract.config import ChunkingConfig
from study_extract.ingest.chunker import ContentChunker


def _paragraph(index: int) -> str:
    body = ("alpha beta gamma delta. " * 50)[:993]
    return f"P{index:02d} {body}."


def _document(paragraphs: int = 20) -> str:
    return "\n\n".join(_paragraph(i) for i in range(1, paragraphs + 1))


def test_twenty_thousand_chars_split_into_three_ordered_chunks() -> None:
    text = _document()
    assert 19_900 <= len(text) <= 20_000

    chunks = ContentChunker(ChunkingConfig(max_chars=8000)).split(text)

    assert len(chunks) == 3
    assert [chunk.index for chunk in chunks] == [0, 1, 2]
    assert all(chunk.total == 3 for chunk in chunks)
    assert all(len(chunk.text) <= 8000 for chunk in chunks)
    assert chunks[0].text.startswith("P01 ")
    assert chunks[1].text.startswith("P09 ")
    assert chunks[2].text.startswith("P17 ")


def test_chunks_reconstruct_source_ignoring_whitespace() -> None:
    text = "  " + _document(12) + "\n\n"
    chunks = ContentChunker(ChunkingConfig(max_chars=3000)).split(text)

    rebuilt = "".join("".join(chunk.text.split()) for chunk in chunks)

    assert rebuilt == "".join(text.split())


def test_oversized_paragraph_is_split_on_sentences() -> None:
    sentences = [f"Sentence number {i} explains one more idea about osmosis." for i in range(12)]
    paragraph = " ".join(sentences)
    chunker = ContentChunker(ChunkingConfig(max_chars=200, min_chars=10))

    chunks = chunker.split(paragraph)

    assert len(chunks) > 1
    assert all(len(chunk.text) <= 200 for chunk in chunks)
    assert all(chunk.text.endswith(".") for chunk in chunks)


def test_unsplittable_sentence_becomes_its_own_chunk() -> None:
    long_sentence = "word " * 80
    text = "Short intro sentence that is long enough.\n\n" + long_sentence.strip()
    chunker = ContentChunker(ChunkingConfig(max_chars=200, min_chars=10))

    chunks = chunker.split(text)

    assert any(len(chunk.text) > 200 for chunk in chunks)
    assert [len(chunk.text) > 200 for chunk in chunks].count(True) == 1


def test_small_text_is_single_chunk_and_kept_even_when_short() -> None:
    chunker = ContentChunker(ChunkingConfig(max_chars=8000, min_chars=50))

    chunks = chunker.split("Tiny note.")

    assert not chunker.needs_chunking("Tiny note.")
    assert len(chunks) == 1
    assert chunks[0].position == 1
    assert chunks[0].total == 1


def test_same_input_gives_same_boundaries() -> None:
    chunker = ContentChunker(ChunkingConfig(max_chars=5000))
    text = _document(15)

    assert chunker.split(text) == chunker.split(text)


def test_min_chars_must_be_below_max_chars() -> None:
    with pytest.raises(ValueError):
        ContentChunker(ChunkingConfig(max_chars=200, min_chars=200))
