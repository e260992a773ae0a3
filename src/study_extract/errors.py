"""Error taxonomy. Codes are stable so traces and logs can be grouped."""

from __future__ import annotations


class StudyExtractError(Exception):
    """Base for all package errors."""

    code = "UNKNOWN"
    retryable = False


class EndpointError(StudyExtractError):
    """One attempt against one endpoint failed."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class EndpointTransportError(EndpointError):
    """Network failure or timeout before a response was received."""

    code = "TRANSPORT"
    retryable = True


class EndpointServiceError(EndpointError):
    """The service answered with a non-success status."""

    code = "SERVICE"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        endpoint: str | None = None,
    ) -> None:
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code
        self.body = body


class IngestionError(StudyExtractError):
    """Source text is empty or unusable; nothing can be generated from it."""

    code = "INGESTION"


class ConfigurationError(StudyExtractError):
    """An environment setting could not be read as the expected type."""

    code = "CONFIG"
