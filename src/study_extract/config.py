"""Configuration models for the extraction pipeline."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from study_extract.errors import ConfigurationError


class ChunkingConfig(BaseModel):
    """Configures paragraph/sentence packing of oversized source text."""

    model_config = ConfigDict(frozen=True)

    max_chars: int = Field(default=8000, ge=200)
    min_chars: int = Field(default=50, ge=0)


class GenerationOptions(BaseModel):
    """Sampling options forwarded to the remote service as `options`."""

    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(default=2000, ge=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    top_p: float = Field(default=0.95, gt=0.0, le=1.0)


class DispatchConfig(BaseModel):
    """Configures per-endpoint retry and timeout behavior."""

    model_config = ConfigDict(frozen=True)

    retries_per_endpoint: int = Field(default=2, ge=1, le=5)
    backoff_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class ModelRoutingConfig(BaseModel):
    """Maps task tags to model ids; empty strings mean "service default"."""

    model_config = ConfigDict(frozen=True)

    task_models: dict[str, str] = Field(default_factory=dict)
    default_model: str = ""


class EndpointConfig(BaseModel):
    """Describes where the generation proxy can be reached."""

    model_config = ConfigDict(frozen=True)

    local_url: str = "http://localhost:5174/api/openrouter/chat"
    production_url: str | None = None
    relative_path: str = "/api/openrouter/chat"
    public_base_url: str | None = None
    is_local: bool = False
    provider: str = "openai"
    api_key: str | None = None


class CoverageConfig(BaseModel):
    """Configures the topic coverage check used to trigger supplementing."""

    model_config = ConfigDict(frozen=True)

    threshold: float = Field(default=50.0, ge=0.0, le=100.0)
    max_topics: int = Field(default=20, ge=1)


class OrchestratorConfig(BaseModel):
    """Aggregated settings for one orchestrator instance."""

    model_config = ConfigDict(frozen=True)

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
    generation: GenerationOptions = Field(default_factory=GenerationOptions)
    inter_chunk_delay_seconds: float = Field(default=1.0, ge=0.0)
    min_content_chars: int = Field(default=10, ge=1)


class Settings(BaseModel):
    """Process-wide, read-only settings assembled at startup."""

    model_config = ConfigDict(frozen=True)

    endpoints: EndpointConfig = Field(default_factory=EndpointConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    routing: ModelRoutingConfig = Field(default_factory=ModelRoutingConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)


def load_settings() -> Settings:
    """Build settings from `STUDY_EXTRACT_*` environment variables."""

    env = os.getenv("STUDY_EXTRACT_ENV", "production").lower()
    task_models = {
        task: model
        for task in ("notes", "flashcards", "schedule", "timetable", "analyze")
        if (model := os.getenv(f"STUDY_EXTRACT_MODEL_{task.upper()}", ""))
    }
    endpoints = EndpointConfig(
        local_url=os.getenv(
            "STUDY_EXTRACT_LOCAL_URL", "http://localhost:5174/api/openrouter/chat"
        ),
        production_url=os.getenv("STUDY_EXTRACT_PRODUCTION_URL") or None,
        relative_path=os.getenv("STUDY_EXTRACT_RELATIVE_PATH", "/api/openrouter/chat"),
        public_base_url=os.getenv("STUDY_EXTRACT_PUBLIC_URL") or None,
        is_local=env in {"local", "dev", "development"},
        provider=os.getenv("STUDY_EXTRACT_PROVIDER", "openai"),
        api_key=os.getenv("STUDY_EXTRACT_API_KEY") or None,
    )
    dispatch = DispatchConfig(
        retries_per_endpoint=_env_number("STUDY_EXTRACT_RETRIES", 2, int),
        backoff_seconds=_env_number("STUDY_EXTRACT_BACKOFF", 1.0, float),
        timeout_seconds=_env_number("STUDY_EXTRACT_TIMEOUT", 30.0, float),
    )
    orchestrator = OrchestratorConfig(
        coverage=CoverageConfig(
            threshold=_env_number("STUDY_EXTRACT_COVERAGE_THRESHOLD", 50.0, float),
        ),
        chunking=ChunkingConfig(
            max_chars=_env_number("STUDY_EXTRACT_MAX_CHUNK_CHARS", 8000, int),
        ),
    )
    return Settings(
        endpoints=endpoints,
        dispatch=dispatch,
        routing=ModelRoutingConfig(
            task_models=task_models,
            default_model=os.getenv("STUDY_EXTRACT_MODEL", ""),
        ),
        orchestrator=orchestrator,
    )


def _env_number(name: str, default: int | float, cast: type[int] | type[float]) -> Any:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a {cast.__name__}, got {raw!r}") from exc
