"""Tests for Anthropic and Gemini frame classification."""

from __future__ import annotations

import json
import logging

import pytest

from llmrelay.stream.buffer import Frame
from llmrelay.stream.classify import (
    AnthropicClassifier,
    EventKind,
    GeminiClassifier,
    split_event_fields,
)


def _sse(event: str, payload: dict) -> Frame:
    return Frame(f"event: {event}\ndata: {json.dumps(payload)}")


@pytest.fixture
def anthropic() -> AnthropicClassifier:
    return AnthropicClassifier()


@pytest.fixture
def gemini() -> GeminiClassifier:
    return GeminiClassifier()


class TestSplitEventFields:
    def test_event_and_data(self):
        assert split_event_fields("event: ping\ndata: {}") == ("ping", "{}")

    def test_multiple_data_lines_joined(self):
        assert split_event_fields("data: a\ndata: b") == (None, "a\nb")

    def test_comments_and_ids_dropped(self):
        raw = ": keep-alive\nid: 7\nretry: 100\ndata: x"
        assert split_event_fields(raw) == (None, "x")

    def test_no_space_after_colon(self):
        assert split_event_fields("event:ping\ndata:{}") == ("ping", "{}")

    def test_bare_payload_line(self):
        assert split_event_fields('{"type": "ping"}') == (None, '{"type": "ping"}')


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class TestAnthropicClassifier:
    def test_text_delta(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse(
            "content_block_delta",
            {"type": "content_block_delta", "delta": {"text": "Hi"}},
        ))
        assert event.kind is EventKind.CONTENT_DELTA
        assert event.event == "content_block_delta"
        assert event.payload.delta.text == "Hi"

    def test_done_sentinel(self, anthropic: AnthropicClassifier):
        assert anthropic.classify(Frame("data: [DONE]")).kind is EventKind.TERMINAL

    def test_message_stop_is_terminal(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("message_stop", {"type": "message_stop"}))
        assert event.kind is EventKind.TERMINAL

    def test_ping_with_empty_object(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(Frame("event: ping\ndata: {}"))
        assert event.kind is EventKind.CONTROL
        assert event.event == "ping"

    def test_empty_data_is_control(self, anthropic: AnthropicClassifier):
        assert anthropic.classify(Frame("event: ping")).kind is EventKind.CONTROL

    def test_error_envelope(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse(
            "error",
            {"type": "error", "error": {"type": "overloaded_error", "message": "x"}},
        ))
        assert event.kind is EventKind.ERROR
        assert str(event.error) == "overloaded_error: x"
        assert event.error.error_type == "overloaded_error"

    def test_error_envelope_without_event_line(self, anthropic: AnthropicClassifier):
        payload = {"type": "error", "error": {"type": "api_error", "message": "boom"}}
        event = anthropic.classify(Frame(f"data: {json.dumps(payload)}"))
        assert event.kind is EventKind.ERROR
        assert event.error.message == "boom"

    def test_invalid_json_is_unparsed(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(Frame("data: {not json"))
        assert event.kind is EventKind.UNPARSED
        assert event.raw == "data: {not json"

    def test_non_object_is_unparsed(self, anthropic: AnthropicClassifier):
        assert anthropic.classify(Frame("data: [1, 2]")).kind is EventKind.UNPARSED

    def test_missing_type_is_unparsed(self, anthropic: AnthropicClassifier):
        assert anthropic.classify(Frame('data: {"foo": 1}')).kind is EventKind.UNPARSED

    def test_malformed_error_is_unparsed(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(Frame('event: error\ndata: {"error": "nope"}'))
        assert event.kind is EventKind.UNPARSED

    def test_unknown_event_name_with_known_type(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("future_event", {"type": "ping"}))
        assert event.kind is EventKind.CONTROL

    def test_unknown_payload_type_is_unparsed(
        self, anthropic: AnthropicClassifier, caplog: pytest.LogCaptureFixture,
    ):
        with caplog.at_level(logging.WARNING, logger="llmrelay.stream.classify"):
            event = anthropic.classify(_sse("future_event", {"type": "totally_unknown"}))
        assert event.kind is EventKind.UNPARSED
        assert "totally_unknown" in caplog.text

    def test_tool_use_start(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("content_block_start", {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "lookup", "input": {}},
        }))
        assert event.kind is EventKind.TOOL_USE_DELTA

    def test_input_json_delta(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("content_block_delta", {
            "type": "content_block_delta",
            "index": 1,
            "delta": {"type": "input_json_delta", "partial_json": '{"q": '},
        }))
        assert event.kind is EventKind.TOOL_USE_DELTA

    def test_message_start_usage(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("message_start", {
            "type": "message_start",
            "message": {"id": "msg_1", "role": "assistant", "content": [],
                        "usage": {"input_tokens": 12, "output_tokens": 1}},
        }))
        assert event.kind is EventKind.CONTROL
        assert event.usage == {"prompt_tokens": 12, "completion_tokens": 1}

    def test_message_delta_stop_reason(self, anthropic: AnthropicClassifier):
        event = anthropic.classify(_sse("message_delta", {
            "type": "message_delta",
            "delta": {"stop_reason": "end_turn", "stop_sequence": None},
            "usage": {"output_tokens": 5},
        }))
        assert event.stop_reason == "end_turn"
        assert event.usage == {"completion_tokens": 5}


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

class TestGeminiClassifier:
    def test_text_response(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame(json.dumps({
            "candidates": [{"content": {"parts": [{"text": "Hel"}], "role": "model"}}],
        })))
        assert event.kind is EventKind.CONTENT_DELTA
        assert event.payload.candidates[0].content.parts[0].text == "Hel"

    def test_finish_reason_and_usage(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame(json.dumps({
            "candidates": [{"content": {"parts": [{"text": "!"}]}, "finishReason": "STOP"}],
            "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 2, "totalTokenCount": 6},
        })))
        assert event.stop_reason == "STOP"
        assert event.usage == {"prompt_tokens": 4, "completion_tokens": 2, "total_tokens": 6}

    def test_function_call(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame(json.dumps({
            "candidates": [{"content": {"parts": [
                {"functionCall": {"name": "lookup", "args": {"q": "x"}}},
            ]}}],
        })))
        assert event.kind is EventKind.TOOL_USE_DELTA

    def test_empty_candidate_is_control(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame('{"candidates": [{"finishReason": "STOP"}]}'))
        assert event.kind is EventKind.CONTROL
        assert event.stop_reason == "STOP"

    def test_error_envelope(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame(json.dumps({
            "error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"},
        })))
        assert event.kind is EventKind.ERROR
        assert str(event.error) == "RESOURCE_EXHAUSTED: Resource exhausted"
        assert event.error.code == 429

    def test_malformed_error_is_unparsed(self, gemini: GeminiClassifier):
        assert gemini.classify(Frame('{"error": "nope"}')).kind is EventKind.UNPARSED

    def test_sse_prefixed_frame(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame('data: {"candidates": [{"content": {"parts": [{"text": "a"}]}}]}'))
        assert event.kind is EventKind.CONTENT_DELTA

    def test_done_sentinel(self, gemini: GeminiClassifier):
        assert gemini.classify(Frame("data: [DONE]")).kind is EventKind.TERMINAL

    def test_stray_text_is_unparsed(self, gemini: GeminiClassifier):
        assert gemini.classify(Frame("garbage")).kind is EventKind.UNPARSED

    def test_wrong_shape_is_unparsed(self, gemini: GeminiClassifier):
        assert gemini.classify(Frame('{"candidates": "nope"}')).kind is EventKind.UNPARSED

    @pytest.mark.parametrize("raw", ["{}", '{"foo": 1}', '{"status": "weird"}'])
    def test_object_without_response_fields_is_unparsed(
        self, gemini: GeminiClassifier, raw: str, caplog: pytest.LogCaptureFixture,
    ):
        with caplog.at_level(logging.WARNING, logger="llmrelay.stream.classify"):
            event = gemini.classify(Frame(raw))
        assert event.kind is EventKind.UNPARSED
        assert "no response fields" in caplog.text

    def test_usage_only_response(self, gemini: GeminiClassifier):
        event = gemini.classify(Frame('{"usageMetadata": {"promptTokenCount": 3}}'))
        assert event.kind is EventKind.CONTROL
        assert event.usage["prompt_tokens"] == 3
