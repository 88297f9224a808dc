"""Shared data types for llmrelay."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------

class FragmentKind(enum.Enum):
    """Kinds of incremental output delivered to a sink."""

    TEXT = "text"
    FUNCTION_CALL = "function_call"
    FUNCTION_RESPONSE = "function_response"
    RAW = "raw"  # undecoded frame text (verbose mode)


@dataclass(frozen=True)
class Fragment:
    """Smallest unit of streamed output.

    ``text`` holds the text delta, or the JSON-serialized call/response for
    structured kinds.  ``index`` identifies the content block a tool-call
    fragment belongs to so partial arguments can be stitched back together.
    """

    kind: FragmentKind
    text: str
    name: str | None = None
    index: int | None = None

    @classmethod
    def of_text(cls, text: str) -> Fragment:
        return cls(FragmentKind.TEXT, text)

    @property
    def is_text(self) -> bool:
        return self.kind is FragmentKind.TEXT

    def __str__(self) -> str:
        return self.text


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------

@dataclass
class ToolCall:
    """Tool call reassembled from streamed fragments."""

    name: str
    arguments: dict[str, Any]
    id: str = ""
    raw: str = ""


# ---------------------------------------------------------------------------
# Stream outcome
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreamSummary:
    """Successful outcome of a streaming call.

    Failures are raised as :class:`llmrelay.errors.LLMError` subclasses
    instead of being reported here.
    """

    stop_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    fragments: int = 0
    ignored_frames: int = 0
    tool_calls: tuple[ToolCall, ...] = ()
    terminated: bool = False  # an explicit terminal frame was seen

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestSpec:
    """Immutable description of one outbound HTTP request."""

    url: str
    json: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    method: str = "POST"
    stream: bool = False
