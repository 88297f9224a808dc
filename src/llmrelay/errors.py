"""Exception hierarchy for llmrelay.

Every failure surfaced to callers derives from :class:`LLMError`, so
``except LLMError`` catches transport, HTTP, decode and provider errors alike.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base class for all llmrelay errors."""


class TransportError(LLMError):
    """Connection or read failure in the HTTP transport."""


class HttpStatusError(LLMError):
    """Non-2xx response whose body is not a recognizable error envelope."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Request failed ({status_code}): {body}")


class DecodeError(LLMError):
    """A payload could not be interpreted as a delta or an error envelope."""


class ProviderError(LLMError):
    """The remote API reported a failure inside a well-formed error envelope."""

    def __init__(
        self,
        error_type: str,
        message: str,
        status_code: int | None = None,
        code: int | None = None,
    ) -> None:
        self.error_type = error_type
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(f"{error_type}: {message}")
