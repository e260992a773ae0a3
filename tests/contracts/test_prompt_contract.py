import pytest

from study_extract.generation.dispatcher import EMPTY_SENTINELS
from study_extract.generation.prompts import build_request, prompt_for
from study_extract.parsing.cascade import ExpectedShape, parse_reply
from study_extract.types import Chunk, Empty, TaskTag

LIST_TASKS = [TaskTag.NOTES, TaskTag.FLASHCARDS, TaskTag.SCHEDULE, TaskTag.TIMETABLE]


@pytest.mark.parametrize("task", LIST_TASKS)
def test_list_prompts_demand_a_json_array(task: TaskTag) -> None:
    system = prompt_for(task).format_messages(source_name="s", position="p", content="c")[0]

    assert "JSON array" in system.content


def test_analyze_prompt_demands_a_json_object() -> None:
    system = prompt_for(TaskTag.ANALYZE).format_messages(source_name="s", position="p", content="c")[0]

    assert "JSON object" in system.content
    assert '"hasScheduleData"' in system.content


def test_chunk_position_is_given_to_the_service() -> None:
    request = build_request(
        TaskTag.NOTES,
        "Osmosis moves water.",
        source_name="bio.txt",
        chunk=Chunk(text="Osmosis moves water.", index=1, total=3),
    )

    assert [message.role for message in request.messages] == ["system", "user"]
    user = request.messages[-1].content
    assert "part 2 of 3" in user
    assert "bio.txt" in user
    assert "Osmosis moves water." in user
    assert request.task is TaskTag.NOTES
    assert (request.max_tokens, request.temperature, request.top_p) == (2000, 0.3, 0.95)


def test_single_chunk_is_the_complete_document() -> None:
    request = build_request(TaskTag.FLASHCARDS, "text", source_name="x")

    assert "complete document" in request.messages[-1].content


@pytest.mark.parametrize("task", list(TaskTag))
def test_failover_sentinels_parse_as_empty(task: TaskTag) -> None:
    shape = ExpectedShape.OBJECT if task is TaskTag.ANALYZE else ExpectedShape.ARRAY

    assert isinstance(parse_reply(EMPTY_SENTINELS[task], shape), Empty)
