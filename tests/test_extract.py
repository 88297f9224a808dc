"""Tests for delta extraction and tool-call reassembly."""

from __future__ import annotations

import json

from llmrelay.stream.buffer import Frame
from llmrelay.stream.classify import AnthropicClassifier, GeminiClassifier
from llmrelay.stream.extract import AnthropicExtractor, GeminiExtractor, ToolCallAccumulator
from llmrelay.types import Fragment, FragmentKind


def _anthropic(payload: dict) -> list[Fragment]:
    frame = Frame(f"event: {payload['type']}\ndata: {json.dumps(payload)}")
    return AnthropicExtractor().extract(AnthropicClassifier().classify(frame))


def _gemini(payload: dict) -> list[Fragment]:
    return GeminiExtractor().extract(GeminiClassifier().classify(Frame(json.dumps(payload))))


class TestAnthropicExtractor:
    def test_text_delta(self):
        fragments = _anthropic({
            "type": "content_block_delta", "index": 0,
            "delta": {"type": "text_delta", "text": "Hello"},
        })
        assert fragments == [Fragment.of_text("Hello")]

    def test_text_in_block_start(self):
        fragments = _anthropic({
            "type": "content_block_start", "index": 0,
            "content_block": {"type": "text", "text": "Hi"},
        })
        assert fragments == [Fragment.of_text("Hi")]

    def test_empty_block_start_yields_nothing(self):
        assert _anthropic({
            "type": "content_block_start", "index": 0,
            "content_block": {"type": "text", "text": ""},
        }) == []

    def test_tool_use_start(self):
        fragments = _anthropic({
            "type": "content_block_start", "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "lookup", "input": {}},
        })
        assert len(fragments) == 1
        fragment = fragments[0]
        assert fragment.kind is FragmentKind.FUNCTION_CALL
        assert fragment.name == "lookup"
        assert fragment.index == 1
        assert json.loads(fragment.text) == {"id": "toolu_1", "name": "lookup"}

    def test_partial_json(self):
        fragments = _anthropic({
            "type": "content_block_delta", "index": 1,
            "delta": {"type": "input_json_delta", "partial_json": '{"q": '},
        })
        assert fragments == [Fragment(FragmentKind.FUNCTION_CALL, '{"q": ', index=1)]

    def test_control_yields_nothing(self):
        assert _anthropic({"type": "content_block_stop", "index": 0}) == []


class TestGeminiExtractor:
    def test_text_parts(self):
        fragments = _gemini({"candidates": [{"content": {"parts": [
            {"text": "a"}, {"text": "b"},
        ]}}]})
        assert [f.text for f in fragments] == ["a", "b"]

    def test_function_call(self):
        fragments = _gemini({"candidates": [{"content": {"parts": [
            {"functionCall": {"name": "lookup", "args": {"q": "x"}}},
        ]}}]})
        assert len(fragments) == 1
        assert fragments[0].kind is FragmentKind.FUNCTION_CALL
        assert fragments[0].name == "lookup"
        assert fragments[0].index is None
        assert json.loads(fragments[0].text) == {"name": "lookup", "args": {"q": "x"}}

    def test_function_response(self):
        fragments = _gemini({"candidates": [{"content": {"parts": [
            {"functionResponse": {"name": "lookup", "response": {"ok": True}}},
        ]}}]})
        assert fragments[0].kind is FragmentKind.FUNCTION_RESPONSE
        assert json.loads(fragments[0].text) == {"name": "lookup", "response": {"ok": True}}

    def test_error_yields_nothing(self):
        assert _gemini({"error": {"code": 500, "message": "x"}}) == []


# ---------------------------------------------------------------------------
# Tool call accumulator
# ---------------------------------------------------------------------------

def _start(index: int, name: str, call_id: str = "toolu_1") -> Fragment:
    return Fragment(
        FragmentKind.FUNCTION_CALL,
        json.dumps({"id": call_id, "name": name}),
        name=name,
        index=index,
    )


def _args(index: int, text: str) -> Fragment:
    return Fragment(FragmentKind.FUNCTION_CALL, text, index=index)


class TestToolCallAccumulator:
    def test_empty_accumulator(self):
        acc = ToolCallAccumulator()
        assert not acc.has_calls()
        assert acc.finalize() == []

    def test_ignores_text(self):
        acc = ToolCallAccumulator()
        acc.feed(Fragment.of_text("hello"))
        assert not acc.has_calls()

    def test_streamed_arguments(self):
        acc = ToolCallAccumulator()
        acc.feed(_start(1, "lookup"))
        acc.feed(_args(1, '{"ci'))
        acc.feed(_args(1, 'ty": "Paris"}'))
        calls = acc.finalize()
        assert len(calls) == 1
        assert calls[0].name == "lookup"
        assert calls[0].id == "toolu_1"
        assert calls[0].arguments == {"city": "Paris"}

    def test_interleaved_calls_keep_arrival_order(self):
        acc = ToolCallAccumulator()
        acc.feed(_start(1, "first", "a"))
        acc.feed(_start(2, "second", "b"))
        acc.feed(_args(2, '{"n": 2}'))
        acc.feed(_args(1, '{"n": 1}'))
        calls = acc.finalize()
        assert [c.name for c in calls] == ["first", "second"]
        assert [c.arguments for c in calls] == [{"n": 1}, {"n": 2}]

    def test_invalid_arguments_become_empty(self):
        acc = ToolCallAccumulator()
        acc.feed(_start(0, "lookup"))
        acc.feed(_args(0, '{"broken'))
        assert acc.finalize()[0].arguments == {}

    def test_start_with_complete_input(self):
        acc = ToolCallAccumulator()
        acc.feed(Fragment(
            FragmentKind.FUNCTION_CALL,
            json.dumps({"id": "t", "name": "lookup", "input": {"q": "x"}}),
            name="lookup",
            index=0,
        ))
        assert acc.finalize()[0].arguments == {"q": "x"}

    def test_complete_call_without_index(self):
        acc = ToolCallAccumulator()
        acc.feed(Fragment(
            FragmentKind.FUNCTION_CALL,
            json.dumps({"name": "lookup", "args": {"q": "x"}}),
            name="lookup",
        ))
        calls = acc.finalize()
        assert calls[0].name == "lookup"
        assert calls[0].arguments == {"q": "x"}
        assert json.loads(calls[0].raw)["arguments"] == '{"q": "x"}'

    def test_arguments_without_start_are_dropped(self):
        acc = ToolCallAccumulator()
        acc.feed(_args(3, '{"q": 1}'))
        assert acc.has_calls()
        assert acc.finalize() == []
