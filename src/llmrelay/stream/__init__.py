"""Streaming response decoder: frame buffers, classifiers, extractors, driver."""

from llmrelay.stream.buffer import EventStreamBuffer, Frame, FrameBuffer, JSONObjectBuffer
from llmrelay.stream.classify import (
    ANTHROPIC_EVENTS,
    AnthropicClassifier,
    ClassifiedEvent,
    EventKind,
    GEMINI_RESPONSE_KEYS,
    GeminiClassifier,
)
from llmrelay.stream.driver import DriverState, Sink, StreamCodec, StreamDriver
from llmrelay.stream.extract import AnthropicExtractor, GeminiExtractor, ToolCallAccumulator

__all__ = [
    "ANTHROPIC_EVENTS",
    "AnthropicClassifier",
    "AnthropicExtractor",
    "ClassifiedEvent",
    "DriverState",
    "EventKind",
    "EventStreamBuffer",
    "Frame",
    "FrameBuffer",
    "GEMINI_RESPONSE_KEYS",
    "GeminiClassifier",
    "GeminiExtractor",
    "JSONObjectBuffer",
    "Sink",
    "StreamCodec",
    "StreamDriver",
    "ToolCallAccumulator",
]
