"""Provider adapter abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Union

from llmrelay.config import ClientSettings, LLMConfig
from llmrelay.errors import LLMError
from llmrelay.stream.driver import Sink, StreamCodec, StreamDriver
from llmrelay.types import RequestSpec

# A bare prompt, or a list of ``{"role": ..., "content": ...}`` messages
Conversation = Union[str, list[dict[str, Any]]]


def normalize_messages(content: Conversation) -> list[dict[str, Any]]:
    """Turn a prompt or conversation into a fresh list of message dicts."""
    if isinstance(content, str):
        return [{"role": "user", "content": content}]
    return [dict(m) for m in content]


class ProviderAdapter(ABC):
    """Protocol adaptation for one remote API.

    Adapters build immutable :class:`~llmrelay.types.RequestSpec` objects,
    parse buffered responses and error bodies, and supply the stream codec.
    They perform no network I/O themselves.
    """

    name: str

    def __init__(self, settings: ClientSettings | None = None) -> None:
        self.settings = settings or ClientSettings()

    @abstractmethod
    def build_request(
        self, content: Conversation, config: LLMConfig, *, stream: bool = False,
    ) -> RequestSpec:
        """Build the request for a buffered or streaming call."""

    @abstractmethod
    def codec(self) -> StreamCodec:
        """Framing, classification and extraction rules for streams."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> str:
        """Extract the response text from a buffered response body."""

    @abstractmethod
    def parse_error(self, status_code: int, body: str) -> LLMError:
        """Map a non-2xx response to the most specific error."""

    def new_driver(self, sink: Sink | None = None) -> StreamDriver:
        return StreamDriver(
            self.codec(),
            sink,
            verbose=self.settings.verbose,
            max_decode_errors=self.settings.max_decode_errors,
        )
