import json
import re
from collections.abc import Awaitable, Callable
from datetime import date

import pytest

from study_extract.config import CoverageConfig, OrchestratorConfig
from study_extract.errors import EndpointTransportError, IngestionError
from study_extract.generation.dispatcher import DispatchOutcome, FailoverDispatcher
from study_extract.obs.tracing import TraceStore
from study_extract.orchestrator import ExtractionOrchestrator
from study_extract.types import EndpointCandidate, GenerationRequest, TaskTag

TODAY = date(2025, 1, 6)

BIOLOGY = """PHOTOSYNTHESIS
Photosynthesis is the process by which green plants convert light energy into chemical energy.
It takes place in the chloroplasts of plant cells and produces oxygen as a by-product.

CELLULAR RESPIRATION
Cellular respiration releases the energy stored in glucose for use by the cell.
"""

THEORY = (
    "Photosynthesis is a concept in biology. The theory explains how plants convert light. "
    "For example, chlorophyll absorbs light energy."
)


class _FakeDispatcher:
    def __init__(self, reply: Callable[[GenerationRequest], str]) -> None:
        self.reply = reply
        self.requests: list[GenerationRequest] = []

    async def dispatch(self, request: GenerationRequest) -> DispatchOutcome:
        self.requests.append(request)
        text = self.reply(request)
        endpoint = None if text in ("[]", "{}") else "fake"
        return DispatchOutcome(text=text, endpoint=endpoint, attempts=1)


class _DownCaller:
    def __init__(self) -> None:
        self.calls = 0

    async def call(self, candidate, request, *, timeout, model=None) -> str:
        self.calls += 1
        raise EndpointTransportError("connection refused", endpoint=candidate.url)


def _recording_sleep(log: list[float]) -> Callable[[float], Awaitable[None]]:
    async def _sleep(seconds: float) -> None:
        log.append(seconds)

    return _sleep


def _paragraph(index: int) -> str:
    body = ("alpha beta gamma delta. " * 50)[:993]
    return f"P{index:02d} {body}."


def _orchestrator(dispatcher, **kwargs) -> ExtractionOrchestrator:
    kwargs.setdefault("sleep", _recording_sleep([]))
    return ExtractionOrchestrator(dispatcher, today=lambda: TODAY, **kwargs)


def _no_supplement() -> OrchestratorConfig:
    return OrchestratorConfig(coverage=CoverageConfig(threshold=0))


@pytest.mark.asyncio
async def test_theoretical_content_yields_no_schedule() -> None:
    dispatcher = _FakeDispatcher(lambda request: '[{"title": "Exam week", "type": "exam"}]')

    items = await _orchestrator(dispatcher).generate_schedule(THEORY, "bio.txt")

    assert items == []
    assert dispatcher.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    [
        "Photosynthesis happens in green plants due to sunlight. "
        "Chlorophyll absorbs light energy and stores it as sugar.",
        "This syllabus overview of cell biology covers membranes, organelles and transport.",
    ],
)
async def test_theory_with_schedule_words_yields_no_schedule_when_endpoints_down(
    text: str,
) -> None:
    caller = _DownCaller()
    dispatcher = FailoverDispatcher(
        [EndpointCandidate(url="http://local.test/chat", label="local")],
        caller=caller,
        sleep=_recording_sleep([]),
    )

    items = await _orchestrator(dispatcher).generate_schedule(text, "bio.txt")

    assert items == []
    assert caller.calls == 0


@pytest.mark.asyncio
async def test_all_endpoints_down_still_returns_fallback_notes() -> None:
    caller = _DownCaller()
    sleeps: list[float] = []
    dispatcher = FailoverDispatcher(
        [
            EndpointCandidate(url="http://local.test/chat", label="local"),
            EndpointCandidate(url="http://prod.test/chat", label="production"),
        ],
        caller=caller,
        sleep=_recording_sleep(sleeps),
    )
    traces = TraceStore()

    notes = await _orchestrator(dispatcher, trace_store=traces).generate_notes(BIOLOGY, "bio.txt")

    assert notes
    assert notes[0].title == "PHOTOSYNTHESIS"
    assert "## Key Concepts" in notes[0].content
    assert all(note.source == "bio.txt" for note in notes)
    assert caller.calls == 4
    trace = traces.list_recent(limit=1)[0]
    assert trace.fallback_chunks == 1
    assert trace.generated_chunks == 0
    assert trace.dispatch_attempts == 4


@pytest.mark.asyncio
async def test_chunk_failure_falls_back_in_place_and_keeps_order() -> None:
    document = "\n\n".join(_paragraph(i) for i in range(1, 21))

    def reply(request: GenerationRequest) -> str:
        part = int(re.search(r"part (\d) of 3", request.messages[-1].content).group(1))
        if part == 2:
            raise RuntimeError("service returned garbage")
        return json.dumps([{"title": f"Generated part {part}", "content": f"Summary of part {part}"}])

    dispatcher = _FakeDispatcher(reply)
    sleeps: list[float] = []
    traces = TraceStore()
    orchestrator = _orchestrator(
        dispatcher, config=_no_supplement(), sleep=_recording_sleep(sleeps), trace_store=traces
    )

    notes = await orchestrator.generate_notes(document, "long.txt")

    assert len(dispatcher.requests) == 3
    assert sleeps == [1.0, 1.0]
    assert notes[0].title == "Generated part 1"
    assert notes[-1].title == "Generated part 3"
    middle = notes[1:-1]
    assert middle
    assert all(not note.title.startswith("Generated") for note in middle)
    assert "## Key Concepts" in middle[0].content
    assert "P09" in middle[0].content
    trace = traces.list_recent(limit=1)[0]
    assert (trace.chunk_count, trace.generated_chunks, trace.fallback_chunks) == (3, 2, 1)


@pytest.mark.asyncio
async def test_unparseable_reply_uses_fallback() -> None:
    dispatcher = _FakeDispatcher(lambda request: "Sorry, I cannot help with that.")

    cards = await _orchestrator(dispatcher, config=_no_supplement()).generate_flashcards(
        BIOLOGY, "bio.txt"
    )

    assert cards
    assert all(card.source == "bio.txt" for card in cards)
    assert {card.category for card in cards} <= {
        "Reading Comprehension",
        "Definitions",
        "Facts & Figures",
    }


@pytest.mark.asyncio
async def test_low_coverage_adds_additional_topics_note() -> None:
    source = "\n".join(
        f"{index}. {topic}"
        for index, topic in enumerate(["Osmosis", "Diffusion", "Mitosis", "Meiosis"], start=1)
    )
    dispatcher = _FakeDispatcher(
        lambda request: '[{"title": "Osmosis", "content": "Osmosis moves water."}]'
    )

    notes = await _orchestrator(dispatcher).generate_notes(source, "bio.txt")

    assert notes[0].title == "Osmosis"
    supplement = next(note for note in notes if "## Additional Topics" in note.content)
    for topic in ("Diffusion", "Mitosis", "Meiosis"):
        assert f"### {topic}" in supplement.content


@pytest.mark.asyncio
async def test_generated_records_are_normalized() -> None:
    replies = {
        TaskTag.FLASHCARDS: json.dumps(
            [
                {"question": "What is osmosis?", "answer": "Movement of water.", "difficulty": "HARD"},
                {"question": "What is the PDF structure?", "answer": "Objects."},
                {"question": "No answer"},
            ]
        ),
        TaskTag.SCHEDULE: json.dumps(
            [
                {"title": "Biology exam", "date": "March 20, 2025", "time": "9:00 AM", "type": "exam"},
                {"title": "Study", "date": "2025-03-21"},
            ]
        ),
        TaskTag.TIMETABLE: json.dumps(
            {"days": {"Monday": {"09:00 - 10:30": {"subject": "Math", "room": "MA213", "faculty": "PS"}}}}
        ),
    }
    dispatcher = _FakeDispatcher(lambda request: replies[request.task])
    orchestrator = _orchestrator(dispatcher, config=_no_supplement())
    text = "Biology exam on March 20, 2025. Osmosis is the movement of water across a membrane."

    cards = await orchestrator.generate_flashcards(text, "bio.txt")
    items = await orchestrator.generate_schedule(text, "bio.txt")
    entries = await orchestrator.generate_timetable(text, "bio.txt")

    assert [(card.question, card.difficulty) for card in cards] == [("What is osmosis?", "hard")]
    assert [(item.title, item.date, item.time, item.type) for item in items] == [
        ("Biology exam", "2025-03-20", "09:00", "exam")
    ]
    assert len(entries) == 1
    entry = entries[0]
    assert (entry.day, entry.time, entry.end_time, entry.title) == ("Monday", "09:00", "10:30", "Math")
    assert (entry.room, entry.instructor, entry.recurring) == ("MA213", "PS", True)


@pytest.mark.asyncio
async def test_analysis_overlays_generated_fields_on_heuristics() -> None:
    dispatcher = _FakeDispatcher(
        lambda request: '{"contentType": "mixed", "keyTopics": ["Osmosis"], "confidence": 0.9}'
    )

    analysis = await _orchestrator(dispatcher).analyze_content(BIOLOGY, "bio.txt")

    assert analysis.content_type == "mixed"
    assert analysis.key_topics == ["Osmosis"]
    assert analysis.confidence == 0.9
    assert analysis.has_educational_content


@pytest.mark.asyncio
async def test_analysis_falls_back_to_heuristics() -> None:
    dispatcher = _FakeDispatcher(lambda request: "{}")

    analysis = await _orchestrator(dispatcher).analyze_content(THEORY, "bio.txt")

    assert analysis.content_type == "educational"
    assert not analysis.has_schedule_data


@pytest.mark.asyncio
async def test_process_content_summary() -> None:
    replies = {
        TaskTag.NOTES: '[{"title": "Osmosis", "content": "Osmosis is the movement of water."}]',
        TaskTag.FLASHCARDS: '[{"question": "What is osmosis?", "answer": "Movement of water."}]',
        TaskTag.SCHEDULE: '[{"title": "Biology exam", "date": "2025-03-20", "type": "exam"}]',
    }
    dispatcher = _FakeDispatcher(lambda request: replies[request.task])
    orchestrator = _orchestrator(dispatcher, config=_no_supplement())
    text = "Biology exam on March 20, 2025. Osmosis is the movement of water across a membrane."

    result = await orchestrator.process_content(text, "bio.txt")

    assert result.success
    assert result.error is None
    assert result.content == text
    assert result.summary == "Processed bio.txt: Generated 1 flashcards, 1 notes, 1 schedule items."
    assert result.schedule_items[0].time == "09:00"


@pytest.mark.asyncio
async def test_empty_source_is_the_only_surfaced_error() -> None:
    orchestrator = _orchestrator(_FakeDispatcher(lambda request: "[]"))

    with pytest.raises(IngestionError):
        await orchestrator.generate_notes("   ", "empty.txt")
    with pytest.raises(IngestionError):
        await orchestrator.generate_timetable("short", "empty.txt")

    result = await orchestrator.process_content("", "empty.txt")

    assert not result.success
    assert result.error
    assert result.notes == [] and result.flashcards == [] and result.schedule_items == []


class _AnsweringDispatcher:
    """Every reply counts as a successful generation, including an empty one."""

    def __init__(self, text: str) -> None:
        self.text = text

    async def dispatch(self, request: GenerationRequest) -> DispatchOutcome:
        return DispatchOutcome(text=self.text, endpoint="fake", attempts=1)


EXAM_NOTICE = "Final exam on May 12, 2025 in Hall 3. Read chapter 4 before class."


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["[]", "```json\n[]\n```"])
async def test_model_answering_no_events_yields_no_schedule(reply: str) -> None:
    traces = TraceStore()
    orchestrator = _orchestrator(_AnsweringDispatcher(reply), trace_store=traces)

    items = await orchestrator.generate_schedule(EXAM_NOTICE, "exam.txt")

    assert items == []
    trace = traces.list_recent(limit=1)[0]
    assert (trace.generated_chunks, trace.fallback_chunks) == (1, 0)


@pytest.mark.asyncio
async def test_filtered_out_schedule_items_are_not_replaced_by_heuristics() -> None:
    reply = '[{"title": "Study", "date": "2025-05-10", "type": "study"}]'
    orchestrator = _orchestrator(_AnsweringDispatcher(reply))

    assert await orchestrator.generate_schedule(EXAM_NOTICE, "exam.txt") == []


@pytest.mark.asyncio
async def test_model_answering_no_classes_yields_no_timetable() -> None:
    orchestrator = _orchestrator(_AnsweringDispatcher("[]"))

    entries = await orchestrator.generate_timetable("Math Mon 9:00 AM - 10:30 AM MA213", "tt.txt")

    assert entries == []


@pytest.mark.asyncio
async def test_malformed_schedule_reply_still_falls_back() -> None:
    orchestrator = _orchestrator(_AnsweringDispatcher("I could not find any dates, sorry"))

    items = await orchestrator.generate_schedule(EXAM_NOTICE, "exam.txt")

    assert [(item.type, item.date) for item in items] == [("exam", "2025-05-12")]


@pytest.mark.asyncio
async def test_empty_notes_reply_still_falls_back() -> None:
    orchestrator = _orchestrator(_AnsweringDispatcher("[]"), config=_no_supplement())

    notes = await orchestrator.generate_notes(BIOLOGY, "bio.txt")

    assert notes and notes[0].title == "PHOTOSYNTHESIS"
