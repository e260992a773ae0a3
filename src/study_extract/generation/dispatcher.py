"""Ordered endpoint failover with bounded per-endpoint retries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from study_extract.config import DispatchConfig, EndpointConfig, ModelRoutingConfig
from study_extract.errors import EndpointError
from study_extract.generation.caller import EndpointCaller
from study_extract.types import EndpointCandidate, GenerationRequest, TaskTag

logger = logging.getLogger(__name__)

EMPTY_SENTINELS: dict[TaskTag, str] = {
    TaskTag.NOTES: "[]",
    TaskTag.FLASHCARDS: "[]",
    TaskTag.SCHEDULE: "[]",
    TaskTag.TIMETABLE: "[]",
    TaskTag.ANALYZE: "{}",
}

# Upper bound regardless of what a request asks for.
_MAX_ATTEMPTS_PER_ENDPOINT = 5


class Caller(Protocol):
    async def call(
        self,
        candidate: EndpointCandidate,
        request: GenerationRequest,
        *,
        timeout: float,
        model: str | None = None,
    ) -> str:
        """Return raw reply text or raise `EndpointError`."""


@dataclass(slots=True)
class DispatchOutcome:
    """Reply text plus which endpoint produced it.

    On total failure `text` holds the task's neutral sentinel and
    `endpoint` is None.
    """

    text: str
    endpoint: str | None
    attempts: int
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.endpoint is not None


def build_candidates(config: EndpointConfig) -> list[EndpointCandidate]:
    """Order endpoints: local dev, then absolute production, then same-origin."""

    headers: tuple[tuple[str, str], ...] = ()
    if config.api_key:
        headers = (("Authorization", f"Bearer {config.api_key}"),)

    candidates: list[EndpointCandidate] = []
    if config.is_local and config.local_url:
        candidates.append(
            EndpointCandidate(
                url=config.local_url, label="local", provider=config.provider, headers=headers
            )
        )
    if config.production_url:
        candidates.append(
            EndpointCandidate(
                url=config.production_url,
                label="production",
                provider=config.provider,
                headers=headers,
            )
        )
    if config.public_base_url and config.relative_path:
        url = config.public_base_url.rstrip("/") + "/" + config.relative_path.lstrip("/")
        if all(candidate.url != url for candidate in candidates):
            candidates.append(
                EndpointCandidate(
                    url=url, label="same-origin", provider=config.provider, headers=headers
                )
            )
    return candidates


def resolve_model(request: GenerationRequest, routing: ModelRoutingConfig) -> str | None:
    """Explicit override > task mapping > runtime default; empty means unset."""

    for model in (
        request.model,
        routing.task_models.get(request.task.value),
        routing.default_model,
    ):
        if model and model.strip():
            return model.strip()
    return None


class FailoverDispatcher:
    """Tries each candidate in order, retrying a bounded number of times."""

    def __init__(
        self,
        candidates: Sequence[EndpointCandidate],
        *,
        caller: Caller | None = None,
        config: DispatchConfig | None = None,
        routing: ModelRoutingConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.candidates = tuple(candidates)
        self.caller = caller or EndpointCaller()
        self.config = config or DispatchConfig()
        self.routing = routing or ModelRoutingConfig()
        self._sleep = sleep

    async def dispatch(self, request: GenerationRequest) -> DispatchOutcome:
        """Return the first non-empty reply, or the task sentinel when all fail."""

        model = resolve_model(request, self.routing)
        timeout = request.timeout_seconds or self.config.timeout_seconds
        retries = request.retries or self.config.retries_per_endpoint
        retries = max(1, min(retries, _MAX_ATTEMPTS_PER_ENDPOINT))

        attempts = 0
        errors: list[str] = []
        for candidate in self.candidates:
            for attempt in range(1, retries + 1):
                attempts += 1
                try:
                    text = await self.caller.call(
                        candidate, request, timeout=timeout, model=model
                    )
                except EndpointError as exc:
                    errors.append(f"{candidate.label}#{attempt} {exc.code}: {exc}")
                    logger.warning(
                        "Generation attempt %s/%s on %s failed (%s): %s",
                        attempt,
                        retries,
                        candidate.label,
                        exc.code,
                        exc,
                    )
                else:
                    if text and text.strip():
                        return DispatchOutcome(
                            text=text,
                            endpoint=candidate.label,
                            attempts=attempts,
                            errors=errors,
                        )
                    errors.append(f"{candidate.label}#{attempt} EMPTY: empty reply")
                    logger.warning(
                        "Generation attempt %s/%s on %s returned an empty reply",
                        attempt,
                        retries,
                        candidate.label,
                    )
                if attempt < retries:
                    await self._sleep(self.config.backoff_seconds)

        if not self.candidates:
            logger.warning("No generation endpoints configured for task %s", request.task.value)
        else:
            logger.warning(
                "All %s endpoint(s) failed for task %s after %s attempts",
                len(self.candidates),
                request.task.value,
                attempts,
            )
        return DispatchOutcome(
            text=EMPTY_SENTINELS.get(request.task, "[]"),
            endpoint=None,
            attempts=attempts,
            errors=errors,
        )
