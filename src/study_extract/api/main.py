"""FastAPI entrypoint for extraction, processing and trace endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from study_extract.config import load_settings
from study_extract.errors import IngestionError
from study_extract.generation.dispatcher import build_candidates
from study_extract.obs.tracing import TraceStore
from study_extract.orchestrator import ExtractionOrchestrator
from study_extract.types import TaskTag

logger = logging.getLogger(__name__)


class ExtractRequest(BaseModel):
    content: str
    source_name: str = Field(default="document", min_length=1)


app = FastAPI(title="Study Extract", version="0.1.0")

_settings = load_settings()
if not build_candidates(_settings.endpoints):
    logger.warning(
        "No generation endpoints configured (set STUDY_EXTRACT_ENV=local, "
        "STUDY_EXTRACT_PRODUCTION_URL or STUDY_EXTRACT_PUBLIC_URL); "
        "every task will use heuristic fallback output"
    )
_trace_store = TraceStore()
_orchestrator = ExtractionOrchestrator.from_settings(_settings, trace_store=_trace_store)


def _serialize(value: Any) -> Any:
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "endpoints": [candidate.label for candidate in build_candidates(_settings.endpoints)],
        "coverage_threshold": _settings.orchestrator.coverage.threshold,
        "trace_count": len(_trace_store),
    }


@app.post("/extract/{task}")
async def extract(task: str, request: ExtractRequest) -> dict[str, Any]:
    try:
        tag = TaskTag(task)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown task: {task}") from exc

    try:
        result = await _orchestrator.extract(tag, request.content, request.source_name)
    except IngestionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if isinstance(result, list):
        return {"task": tag.value, "count": len(result), "items": _serialize(result)}
    return {"task": tag.value, "analysis": _serialize(result)}


@app.post("/process")
async def process(request: ExtractRequest) -> dict[str, Any]:
    result = await _orchestrator.process_content(request.content, request.source_name)
    return asdict(result)


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
