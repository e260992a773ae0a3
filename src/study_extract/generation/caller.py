"""Single-shot HTTP call to one generation endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from study_extract.errors import EndpointServiceError, EndpointTransportError
from study_extract.types import EndpointCandidate, GenerationRequest

logger = logging.getLogger(__name__)

ContentAccessor = Callable[[Any], Any]


def _openai_message(payload: Any) -> Any:
    return payload["choices"][0]["message"]["content"]


def _openai_delta(payload: Any) -> Any:
    return payload["choices"][0]["delta"]["content"]


def _gemini_parts(payload: Any) -> Any:
    return payload["candidates"][0]["content"]["parts"][0]["text"]


def _plain_content(payload: Any) -> Any:
    return payload["content"]


def _plain_text(payload: Any) -> Any:
    return payload["text"]


ENVELOPE_ACCESSORS: Mapping[str, tuple[ContentAccessor, ...]] = {
    "openai": (_openai_message, _openai_delta),
    "openrouter": (_openai_message, _openai_delta),
    "azure": (_openai_message, _openai_delta),
    "gemini": (_gemini_parts, _plain_text),
    "plain": (_plain_content, _plain_text),
}

_ENVELOPE_KEYS = frozenset({"choices", "candidates", "content", "text"})

_GENERIC_ACCESSORS: tuple[ContentAccessor, ...] = (
    _openai_message,
    _openai_delta,
    _gemini_parts,
    _plain_content,
    _plain_text,
)


def extract_content(payload: Any, provider: str = "openai") -> str:
    """Return the first populated content field of a response envelope.

    Provider-specific accessors are tried first, then every known envelope
    shape. An empty string means no accessor found text.
    """

    accessors = ENVELOPE_ACCESSORS.get(provider, ()) + _GENERIC_ACCESSORS
    for accessor in accessors:
        try:
            value = accessor(payload)
        except (KeyError, IndexError, TypeError):
            continue
        if isinstance(value, str) and value.strip():
            return value
    return ""


def is_envelope(payload: Any) -> bool:
    """True for a JSON object carrying at least one known envelope key."""

    return isinstance(payload, dict) and not _ENVELOPE_KEYS.isdisjoint(payload)


def build_request_body(request: GenerationRequest, model: str | None = None) -> dict[str, Any]:
    options: dict[str, Any] = {
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "top_p": request.top_p,
    }
    if model:
        options["model"] = model
    return {
        "messages": [
            {"role": message.role, "content": message.content}
            for message in request.messages
        ],
        "options": options,
    }


class EndpointCaller:
    """Performs exactly one POST per `call`; retrying is the dispatcher's job."""

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def call(
        self,
        candidate: EndpointCandidate,
        request: GenerationRequest,
        *,
        timeout: float,
        model: str | None = None,
    ) -> str:
        body = build_request_body(request, model)
        try:
            response = await asyncio.wait_for(
                self._post(candidate, body, timeout), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise EndpointTransportError(
                f"Request to {candidate.label} timed out after {timeout:.1f}s",
                endpoint=candidate.url,
            ) from exc
        except httpx.HTTPError as exc:
            raise EndpointTransportError(
                f"Request to {candidate.label} failed: {exc}",
                endpoint=candidate.url,
            ) from exc

        if not response.is_success:
            logger.warning(
                "Endpoint %s returned %s: %s",
                candidate.label,
                response.status_code,
                response.text[:500],
            )
            raise EndpointServiceError(
                f"Endpoint {candidate.label} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
                endpoint=candidate.url,
            )

        try:
            payload = response.json()
        except ValueError:
            # Some proxies return the generated text directly.
            return response.text
        if not is_envelope(payload):
            return response.text
        return extract_content(payload, candidate.provider)

    async def _post(
        self, candidate: EndpointCandidate, body: dict[str, Any], timeout: float
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json", **dict(candidate.headers)}
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            return await client.post(candidate.url, json=body, headers=headers)
