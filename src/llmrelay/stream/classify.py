"""Frame classification.

A classifier turns one complete :class:`~llmrelay.stream.buffer.Frame` into a
:class:`ClassifiedEvent`.  Classification never raises: frames that cannot be
interpreted as a delta or an error envelope come back as
:attr:`EventKind.UNPARSED` and are logged, since providers emit housekeeping
frames that carry no payload.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from llmrelay.errors import ProviderError
from llmrelay.stream.buffer import Frame
from llmrelay.wire import (
    AnthropicErrorEnvelope,
    AnthropicStreamChunk,
    GeminiError,
    GeminiResponse,
)

_logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# Event names of the Anthropic Messages streaming protocol
ANTHROPIC_EVENTS = frozenset({
    "message_start",
    "content_block_start",
    "ping",
    "content_block_delta",
    "content_block_stop",
    "message_delta",
    "message_stop",
    "error",
})

_PREVIEW = 200

# Top-level keys of a generateContent response; an object with none of them
# is not a response
GEMINI_RESPONSE_KEYS = frozenset({
    "candidates",
    "usageMetadata",
    "promptFeedback",
    "modelVersion",
    "responseId",
})


class EventKind(enum.Enum):
    CONTROL = "control"
    CONTENT_DELTA = "content_delta"
    TOOL_USE_DELTA = "tool_use_delta"
    TERMINAL = "terminal"
    ERROR = "error"
    UNPARSED = "unparsed"


@dataclass
class ClassifiedEvent:
    """Result of classifying one frame."""

    kind: EventKind
    raw: str = ""
    event: str | None = None
    payload: Any = None
    error: ProviderError | None = None
    stop_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


def _unparsed(frame: Frame, event: str | None, reason: str) -> ClassifiedEvent:
    _logger.warning(
        "Couldn't parse stream frame as delta or error envelope (%s): %s",
        reason, frame.raw[:_PREVIEW],
    )
    return ClassifiedEvent(EventKind.UNPARSED, raw=frame.raw, event=event)


def _field_value(line: str, prefix_len: int) -> str:
    value = line[prefix_len:]
    return value[1:] if value.startswith(" ") else value


def split_event_fields(raw: str) -> tuple[str | None, str]:
    """Return ``(event_name, data)`` for one event-stream frame.

    Multiple ``data:`` lines are joined with newlines and ``:`` comment lines
    are dropped.  Lines without a field name are kept as payload, so a frame
    that is a bare JSON document still yields its data.
    """
    event: str | None = None
    data_lines: list[str] = []
    for line in raw.splitlines():
        if not line or line.startswith(":"):
            continue
        if line.startswith("event:"):
            event = _field_value(line, 6).strip()
        elif line.startswith("data:"):
            data_lines.append(_field_value(line, 5))
        elif line.startswith(("id:", "retry:")):
            continue
        else:
            data_lines.append(line)
    return event, "\n".join(data_lines).strip()


# ---------------------------------------------------------------------------
# Anthropic (event-stream framing)
# ---------------------------------------------------------------------------

class AnthropicClassifier:
    """Classifies Messages API server-sent events."""

    def __init__(self, event_names: frozenset[str] = ANTHROPIC_EVENTS) -> None:
        self.event_names = event_names

    def classify(self, frame: Frame) -> ClassifiedEvent:
        event, data = split_event_fields(frame.raw)

        if data == DONE_SENTINEL:
            return ClassifiedEvent(EventKind.TERMINAL, raw=frame.raw, event=event)

        if event is not None and event not in self.event_names:
            _logger.debug("Unknown stream event %r", event)

        if not data:
            return ClassifiedEvent(EventKind.CONTROL, raw=frame.raw, event=event)

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            return _unparsed(frame, event, f"invalid JSON: {e.msg}")
        if not isinstance(payload, dict):
            return _unparsed(frame, event, "payload is not an object")

        # The event line names the payload type when the payload omits it
        if event and "type" not in payload:
            payload = {**payload, "type": event}

        if payload.get("type") != "error":
            try:
                chunk = AnthropicStreamChunk.model_validate(payload)
            except ValidationError:
                pass
            else:
                if chunk.type not in self.event_names:
                    return _unparsed(frame, event, f"unknown payload type {chunk.type!r}")
                return self._classify_chunk(frame, event, chunk)

        try:
            envelope = AnthropicErrorEnvelope.model_validate(payload)
        except ValidationError:
            return _unparsed(frame, event, "unrecognized structure")
        _logger.warning(
            "Provider error in stream: %s: %s",
            envelope.error.type, envelope.error.message,
        )
        return ClassifiedEvent(
            EventKind.ERROR,
            raw=frame.raw,
            event=event,
            payload=envelope,
            error=ProviderError(envelope.error.type, envelope.error.message),
        )

    def _classify_chunk(
        self, frame: Frame, event: str | None, chunk: AnthropicStreamChunk,
    ) -> ClassifiedEvent:
        kind = EventKind.CONTROL
        stop_reason: str | None = None
        usage: dict[str, int] = {}

        if chunk.type == "content_block_delta":
            delta = chunk.delta
            if delta is not None and (
                delta.partial_json is not None or delta.type == "input_json_delta"
            ):
                kind = EventKind.TOOL_USE_DELTA
            else:
                kind = EventKind.CONTENT_DELTA
        elif chunk.type == "content_block_start":
            block = chunk.content_block
            if block is not None and block.type == "tool_use":
                kind = EventKind.TOOL_USE_DELTA
            elif block is not None and block.text:
                kind = EventKind.CONTENT_DELTA
        elif chunk.type == "message_start":
            if chunk.message is not None and chunk.message.usage is not None:
                if chunk.message.usage.input_tokens is not None:
                    usage["prompt_tokens"] = chunk.message.usage.input_tokens
                if chunk.message.usage.output_tokens is not None:
                    usage["completion_tokens"] = chunk.message.usage.output_tokens
        elif chunk.type == "message_delta":
            if chunk.delta is not None:
                stop_reason = chunk.delta.stop_reason
            if chunk.usage is not None and chunk.usage.output_tokens is not None:
                usage["completion_tokens"] = chunk.usage.output_tokens
        elif chunk.type == "message_stop":
            kind = EventKind.TERMINAL

        return ClassifiedEvent(
            kind,
            raw=frame.raw,
            event=event or chunk.type,
            payload=chunk,
            stop_reason=stop_reason,
            usage=usage,
        )


# ---------------------------------------------------------------------------
# Gemini (JSON object-stream framing)
# ---------------------------------------------------------------------------

class GeminiClassifier:
    """Classifies ``streamGenerateContent`` response objects."""

    def classify(self, frame: Frame) -> ClassifiedEvent:
        data = frame.raw.strip()
        # Tolerate SSE framing (``alt=sse``) as well as bare objects
        if data.startswith("data:"):
            data = _field_value(data, 5).strip()
        if data == DONE_SENTINEL:
            return ClassifiedEvent(EventKind.TERMINAL, raw=frame.raw)

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            return _unparsed(frame, None, f"invalid JSON: {e.msg}")
        if not isinstance(payload, dict):
            return _unparsed(frame, None, "payload is not an object")

        if "error" in payload:
            try:
                err = GeminiError.model_validate(payload)
            except ValidationError:
                return _unparsed(frame, None, "malformed error envelope")
            details = err.error
            _logger.warning(
                "Provider error in stream (%d): %s", details.code, details.message,
            )
            return ClassifiedEvent(
                EventKind.ERROR,
                raw=frame.raw,
                payload=err,
                error=ProviderError(
                    details.status or "error", details.message, code=details.code,
                ),
            )

        if not payload.keys() & GEMINI_RESPONSE_KEYS:
            return _unparsed(frame, None, "no response fields")

        try:
            response = GeminiResponse.model_validate(payload)
        except ValidationError:
            return _unparsed(frame, None, "unrecognized structure")

        kind = EventKind.CONTROL
        stop_reason: str | None = None
        for candidate in response.candidates:
            if candidate.finish_reason and stop_reason is None:
                stop_reason = candidate.finish_reason
            if candidate.content is None:
                continue
            for part in candidate.content.parts:
                if part.function_call is not None or part.function_response is not None:
                    kind = EventKind.TOOL_USE_DELTA
                elif part.text and kind is EventKind.CONTROL:
                    kind = EventKind.CONTENT_DELTA

        usage: dict[str, int] = {}
        if response.usage_metadata is not None:
            meta = response.usage_metadata
            usage = {
                "prompt_tokens": meta.prompt_token_count,
                "completion_tokens": meta.candidates_token_count,
                "total_tokens": meta.total_token_count,
            }

        return ClassifiedEvent(
            kind,
            raw=frame.raw,
            payload=response,
            stop_reason=stop_reason,
            usage=usage,
        )
