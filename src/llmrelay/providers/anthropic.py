"""Anthropic Messages API adapter (event-stream framing)."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from llmrelay.config import LLMConfig
from llmrelay.errors import DecodeError, HttpStatusError, LLMError, ProviderError
from llmrelay.providers.base import Conversation, ProviderAdapter, normalize_messages
from llmrelay.providers.schema import convert_to_anthropic_tool
from llmrelay.stream.buffer import EventStreamBuffer
from llmrelay.stream.classify import ANTHROPIC_EVENTS, AnthropicClassifier
from llmrelay.stream.driver import StreamCodec
from llmrelay.stream.extract import AnthropicExtractor
from llmrelay.types import RequestSpec
from llmrelay.wire import AnthropicErrorEnvelope, AnthropicMessage

_logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com"


def _anthropic_tools(tools: tuple[dict[str, Any], ...]) -> list[dict[str, Any]]:
    converted: list[dict[str, Any]] = []
    for tool in tools:
        # Gemini-style declarations carry "parameters" instead of "input_schema"
        if "input_schema" not in tool and "parameters" in tool:
            converted.append(convert_to_anthropic_tool(tool))
        else:
            converted.append(dict(tool))
    return converted


class AnthropicAdapter(ProviderAdapter):
    """Builds Messages API requests and decodes its responses."""

    name = "anthropic"

    def build_request(
        self, content: Conversation, config: LLMConfig, *, stream: bool = False,
    ) -> RequestSpec:
        body: dict[str, Any] = {
            "model": config.model,
            "messages": normalize_messages(content),
        }
        if config.max_tokens is not None:
            body["max_tokens"] = config.max_tokens
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.system_prompt is not None:
            body["system"] = [{
                "type": "text",
                "text": config.system_prompt,
                "cache_control": {"type": "ephemeral"},
            }]
        if config.tools:
            body["tools"] = _anthropic_tools(config.tools)
        if config.stop_sequences:
            body["stop_sequences"] = list(config.stop_sequences)
        if config.top_p is not None:
            body["top_p"] = config.top_p
        if config.top_k is not None:
            body["top_k"] = config.top_k
        if self.settings.metadata:
            body["metadata"] = dict(self.settings.metadata)
        if stream:
            body["stream"] = True

        headers = {
            "x-api-key": config.api_key,
            "anthropic-version": self.settings.anthropic_version,
            "content-type": "application/json",
        }
        if self.settings.anthropic_beta:
            headers["anthropic-beta"] = self.settings.anthropic_beta

        base_url = (self.settings.base_url or ANTHROPIC_BASE_URL).rstrip("/")
        return RequestSpec(
            url=f"{base_url}/v1/messages",
            json=body,
            headers=headers,
            stream=stream,
        )

    def codec(self) -> StreamCodec:
        return StreamCodec(
            name=self.name,
            new_buffer=EventStreamBuffer,
            classifier=AnthropicClassifier(ANTHROPIC_EVENTS),
            extractor=AnthropicExtractor(),
        )

    def parse_response(self, data: dict[str, Any]) -> str:
        try:
            message = AnthropicMessage.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected response structure: {e}") from e
        for block in message.content or []:
            if block.type == "text" and block.text is not None:
                return block.text
        raise DecodeError("No text content in response")

    def parse_error(self, status_code: int, body: str) -> LLMError:
        try:
            envelope = AnthropicErrorEnvelope.model_validate_json(body)
        except ValidationError:
            _logger.debug("Error body is not an error envelope: %s", body[:200])
            return HttpStatusError(status_code, body)
        return ProviderError(
            envelope.error.type, envelope.error.message, status_code=status_code,
        )
