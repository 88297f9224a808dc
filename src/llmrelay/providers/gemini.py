"""Google Gemini ``generateContent`` adapter (JSON object-stream framing)."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from llmrelay.config import LLMConfig
from llmrelay.errors import DecodeError, HttpStatusError, LLMError, ProviderError
from llmrelay.providers.base import Conversation, ProviderAdapter, normalize_messages
from llmrelay.providers.schema import convert_to_function_declaration
from llmrelay.stream.buffer import JSONObjectBuffer
from llmrelay.stream.classify import GeminiClassifier
from llmrelay.stream.driver import StreamCodec
from llmrelay.stream.extract import GeminiExtractor
from llmrelay.types import RequestSpec
from llmrelay.wire import (
    GeminiError,
    GeminiFunctionDeclaration,
    GeminiGenerationConfig,
    GeminiResponse,
    GeminiSafetySetting,
    GeminiTool,
)

_logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

_ROLE_MAP = {"assistant": "model"}


def _to_contents(
    messages: list[dict[str, Any]],
) -> tuple[list[dict[str, Any]], list[str]]:
    """Split messages into Gemini ``contents`` and system texts."""
    contents: list[dict[str, Any]] = []
    system: list[str] = []
    for message in messages:
        role = message.get("role", "user")
        if role == "system":
            system.append(str(message.get("content", "")))
            continue
        if "parts" in message:
            parts = list(message["parts"])
        elif isinstance(message.get("content"), list):
            parts = list(message["content"])
        else:
            parts = [{"text": str(message.get("content", ""))}]
        contents.append({"role": _ROLE_MAP.get(role, role), "parts": parts})
    return contents, system


def _declarations(tools: tuple[dict[str, Any], ...]) -> list[GeminiFunctionDeclaration]:
    declarations: list[GeminiFunctionDeclaration] = []
    for tool in tools:
        group = tool.get("functionDeclarations", tool.get("function_declarations"))
        if group is not None:
            declarations.extend(
                GeminiFunctionDeclaration.model_validate(d) for d in group
            )
        elif "input_schema" in tool:
            declarations.append(convert_to_function_declaration(tool))
        else:
            declarations.append(GeminiFunctionDeclaration.model_validate(tool))
    return declarations


class GeminiAdapter(ProviderAdapter):
    """Builds ``generateContent`` requests and decodes its responses."""

    name = "gemini"

    def build_request(
        self, content: Conversation, config: LLMConfig, *, stream: bool = False,
    ) -> RequestSpec:
        contents, system = _to_contents(normalize_messages(content))
        body: dict[str, Any] = {"contents": contents}

        if config.tools:
            tool = GeminiTool(function_declarations=_declarations(config.tools))
            body["tools"] = [tool.to_wire()]

        if config.system_prompt is not None:
            system.insert(0, config.system_prompt)
        if system:
            body["systemInstruction"] = {
                "parts": [{"text": text} for text in system],
            }

        if self.settings.safety_settings:
            body["safetySettings"] = [
                GeminiSafetySetting.model_validate(s).to_wire()
                for s in self.settings.safety_settings
            ]

        generation_config = GeminiGenerationConfig(
            temperature=config.temperature,
            top_p=config.top_p,
            top_k=config.top_k,
            max_output_tokens=config.max_tokens,
            stop_sequences=list(config.stop_sequences) if config.stop_sequences else None,
        ).to_wire()
        if generation_config:
            body["generationConfig"] = generation_config

        method = "streamGenerateContent" if stream else "generateContent"
        base_url = (self.settings.base_url or GEMINI_API_BASE).rstrip("/")
        return RequestSpec(
            url=f"{base_url}/{config.model}:{method}",
            json=body,
            headers={"content-type": "application/json"},
            params={"key": config.api_key},
            stream=stream,
        )

    def codec(self) -> StreamCodec:
        return StreamCodec(
            name=self.name,
            new_buffer=JSONObjectBuffer,
            classifier=GeminiClassifier(),
            extractor=GeminiExtractor(),
        )

    def parse_response(self, data: dict[str, Any]) -> str:
        try:
            response = GeminiResponse.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected response structure: {e}") from e
        if not response.candidates:
            raise DecodeError("No candidates in response")
        content = response.candidates[0].content
        for part in content.parts if content is not None else []:
            if part.text is not None:
                return part.text
        raise DecodeError("No text content in response")

    def parse_error(self, status_code: int, body: str) -> LLMError:
        try:
            payload = json.loads(body)
            # Streaming endpoints wrap the envelope in an array
            if isinstance(payload, list) and payload:
                payload = payload[0]
            err = GeminiError.model_validate(payload)
        except (json.JSONDecodeError, ValidationError):
            _logger.debug("Error body is not an error envelope: %s", body[:200])
            return HttpStatusError(status_code, body)
        return ProviderError(
            err.error.status or "error",
            err.error.message,
            status_code=status_code,
            code=err.error.code,
        )
