"""Delta extraction: classified events -> fragments.

Extractors are stateless; :class:`ToolCallAccumulator` stitches function-call
fragments back into complete :class:`~llmrelay.types.ToolCall` objects.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from llmrelay.stream.classify import ClassifiedEvent, EventKind
from llmrelay.types import Fragment, FragmentKind, ToolCall
from llmrelay.wire import AnthropicStreamChunk, GeminiResponse

_logger = logging.getLogger(__name__)


class AnthropicExtractor:
    """Fragments from Messages API stream events."""

    def extract(self, event: ClassifiedEvent) -> list[Fragment]:
        chunk = event.payload
        if not isinstance(chunk, AnthropicStreamChunk):
            return []

        if event.kind is EventKind.CONTENT_DELTA:
            text: str | None = None
            if chunk.type == "content_block_delta" and chunk.delta is not None:
                text = chunk.delta.text
            elif chunk.type == "content_block_start" and chunk.content_block is not None:
                text = chunk.content_block.text
            return [Fragment.of_text(text)] if text else []

        if event.kind is EventKind.TOOL_USE_DELTA:
            if chunk.type == "content_block_start" and chunk.content_block is not None:
                block = chunk.content_block
                start: dict[str, Any] = {"id": block.id or "", "name": block.name or ""}
                if block.input:
                    start["input"] = block.input
                return [Fragment(
                    FragmentKind.FUNCTION_CALL,
                    json.dumps(start),
                    name=block.name or "",
                    index=chunk.index if chunk.index is not None else 0,
                )]
            partial = chunk.delta.partial_json if chunk.delta is not None else None
            if partial:
                return [Fragment(
                    FragmentKind.FUNCTION_CALL,
                    partial,
                    index=chunk.index if chunk.index is not None else 0,
                )]

        return []


class GeminiExtractor:
    """Fragments from ``streamGenerateContent`` response objects."""

    def extract(self, event: ClassifiedEvent) -> list[Fragment]:
        response = event.payload
        if not isinstance(response, GeminiResponse):
            return []
        if event.kind not in (EventKind.CONTENT_DELTA, EventKind.TOOL_USE_DELTA):
            return []

        fragments: list[Fragment] = []
        for candidate in response.candidates:
            if candidate.content is None:
                continue
            for part in candidate.content.parts:
                if part.function_call is not None:
                    call = part.function_call
                    fragments.append(Fragment(
                        FragmentKind.FUNCTION_CALL,
                        json.dumps({"name": call.name, "args": call.args}),
                        name=call.name,
                    ))
                elif part.function_response is not None:
                    echo = part.function_response
                    fragments.append(Fragment(
                        FragmentKind.FUNCTION_RESPONSE,
                        json.dumps({"name": echo.name, "response": echo.response}),
                        name=echo.name,
                    ))
                elif part.text:
                    fragments.append(Fragment.of_text(part.text))
        return fragments


# ---------------------------------------------------------------------------
# Tool call accumulator for streaming responses
# ---------------------------------------------------------------------------

class ToolCallAccumulator:
    """Accumulate function-call fragments into complete tool calls.

    Anthropic streams a tool call as a start fragment (carrying ``name``)
    followed by ``partial_json`` argument fragments sharing the same
    ``index``.  Gemini sends each call complete, with no ``index``.
    """

    def __init__(self) -> None:
        self._calls: list[dict[str, Any]] = []
        self._by_index: dict[int, dict[str, Any]] = {}

    def feed(self, fragment: Fragment) -> None:
        if fragment.kind is not FragmentKind.FUNCTION_CALL:
            return
        if fragment.index is None:
            try:
                data = json.loads(fragment.text)
            except json.JSONDecodeError:
                _logger.warning("Dropping undecodable function call: %s", fragment.text)
                return
            self._calls.append({
                "id": "",
                "name": data.get("name", fragment.name or ""),
                "arguments": data.get("args", {}),
            })
            return

        entry = self._by_index.get(fragment.index)
        if entry is None:
            entry = {"id": "", "name": "", "arguments": ""}
            self._by_index[fragment.index] = entry
            self._calls.append(entry)
        if fragment.name is not None:
            try:
                start = json.loads(fragment.text)
            except json.JSONDecodeError:
                start = {}
            entry["name"] = fragment.name or start.get("name", "")
            entry["id"] = start.get("id", "")
            if start.get("input"):
                entry["arguments"] = json.dumps(start["input"])
        else:
            entry["arguments"] += fragment.text

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Parse accumulated fragments into ToolCall objects, in arrival order."""
        result: list[ToolCall] = []
        for entry in self._calls:
            name = entry["name"]
            if not name:
                continue
            raw_args = entry["arguments"]
            if isinstance(raw_args, dict):
                args = raw_args
                raw_args = json.dumps(raw_args)
            else:
                try:
                    args = json.loads(raw_args) if raw_args else {}
                except json.JSONDecodeError:
                    args = {}
            result.append(ToolCall(
                name=name,
                arguments=args,
                id=entry["id"],
                raw=json.dumps({"id": entry["id"], "name": name, "arguments": raw_args}),
            ))
        return result
