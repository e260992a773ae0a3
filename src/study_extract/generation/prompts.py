"""Prompt templates that turn a chunk of source text into a generation request."""

from __future__ import annotations

from langchain_core.prompts import ChatPromptTemplate

from study_extract.config import GenerationOptions
from study_extract.types import ChatMessage, Chunk, GenerationRequest, TaskTag

_NOTES_SYSTEM = """
You are a professional note-taking assistant. Create well-structured study notes
from the provided content.

Return ONLY a JSON array, no prose and no markdown fences:
[
  {{"title": "Section title", "content": "Markdown body with ## headings and bullet points",
    "category": "Subject area", "tags": ["keyword", "keyword"]}}
]

Rules:
- Cover every major topic and heading present in the content.
- Keep the original terminology so topics can be traced back to the source.
- Use at most 5 short tags per note.
""".strip()

_FLASHCARDS_SYSTEM = """
You are an expert educational content analyzer. Create study flashcards from
definitions, facts, processes and concepts found in the content.

Return ONLY a JSON array, no other text:
[
  {{"question": "Clear, specific question", "answer": "Substantial answer",
    "category": "Subject area", "difficulty": "easy|medium|hard"}}
]

Ignore technical metadata, file structure and formatting codes.
Create between 3 and 10 flashcards.
""".strip()

_SCHEDULE_SYSTEM = """
You extract ONLY important, time-sensitive events from educational content:
assignment deadlines, exams, quizzes, project submissions and scheduled classes.

Return ONLY a JSON array:
[
  {{"title": "Specific event name", "date": "YYYY-MM-DD", "time": "HH:MM",
    "type": "assignment|exam|study|class", "endTime": "HH:MM", "room": "", "instructor": ""}}
]

Do not create items for general topics, readings without deadlines or theory.
If no time-sensitive events exist, return [].
""".strip()

_TIMETABLE_SYSTEM = """
You are an academic timetable parser. Extract every weekly class from the content.
Parse ONLY data that clearly exists in the input; do not guess.

Return ONLY a JSON array:
[
  {{"day": "Monday", "start_time": "09:00", "end_time": "10:30",
    "subject": "Subject", "faculty": "Initials", "room": "MA213"}}
]
""".strip()

_ANALYZE_SYSTEM = """
You are a file content analyzer. Return ONLY a JSON object with this structure:
{{
  "hasScheduleData": true, "hasEducationalContent": true, "hasGeneralNotes": true,
  "contentType": "schedule|educational|notes|mixed", "confidence": 0.8,
  "suggestedActions": ["schedule", "flashcards", "notes"],
  "summary": "brief description", "detectedDates": ["..."], "keyTopics": ["..."]
}}
""".strip()

_USER_TEMPLATE = """
Source: {source_name}
{position}

Content:
{content}
""".strip()

_SYSTEM_PROMPTS: dict[TaskTag, str] = {
    TaskTag.NOTES: _NOTES_SYSTEM,
    TaskTag.FLASHCARDS: _FLASHCARDS_SYSTEM,
    TaskTag.SCHEDULE: _SCHEDULE_SYSTEM,
    TaskTag.TIMETABLE: _TIMETABLE_SYSTEM,
    TaskTag.ANALYZE: _ANALYZE_SYSTEM,
}

_ROLE_BY_TYPE = {"system": "system", "human": "user", "ai": "assistant"}


def prompt_for(task: TaskTag) -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [("system", _SYSTEM_PROMPTS[task]), ("human", _USER_TEMPLATE)]
    )


def build_request(
    task: TaskTag,
    content: str,
    *,
    source_name: str,
    chunk: Chunk | None = None,
    options: GenerationOptions | None = None,
    model: str | None = None,
) -> GenerationRequest:
    """Render the task prompt for one chunk into an immutable request."""

    options = options or GenerationOptions()
    if chunk is not None and chunk.total > 1:
        position = f"This is part {chunk.position} of {chunk.total} of the document."
    else:
        position = "This is the complete document."

    rendered = prompt_for(task).format_messages(
        source_name=source_name, position=position, content=content
    )
    messages = tuple(
        ChatMessage(role=_ROLE_BY_TYPE.get(message.type, "user"), content=str(message.content))
        for message in rendered
    )
    return GenerationRequest(
        messages=messages,
        task=task,
        model=model,
        max_tokens=options.max_tokens,
        temperature=options.temperature,
        top_p=options.top_p,
    )
