"""Pydantic models for the provider wire formats.

Anthropic payloads use snake_case keys.  Gemini payloads use camelCase on the
wire; the models accept either spelling and dump camelCase.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicUsage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None


class AnthropicContentBlock(BaseModel):
    type: str
    text: str | None = None
    # tool_use blocks
    id: str | None = None
    name: str | None = None
    input: dict[str, Any] | None = None


class AnthropicDelta(BaseModel):
    """``delta`` of a content_block_delta or message_delta event."""

    type: str | None = None
    text: str | None = None
    partial_json: str | None = None
    stop_reason: str | None = None
    stop_sequence: str | None = None


class AnthropicMessage(BaseModel):
    id: str | None = None
    type: str = "message"
    role: str | None = None
    content: list[AnthropicContentBlock] | None = None
    model: str | None = None
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: AnthropicUsage | None = None


class AnthropicStreamChunk(BaseModel):
    """Payload of one Messages API stream event."""

    type: str
    index: int | None = None
    delta: AnthropicDelta | None = None
    message: AnthropicMessage | None = None
    content_block: AnthropicContentBlock | None = None
    usage: AnthropicUsage | None = None


class AnthropicErrorDetails(BaseModel):
    type: str
    message: str
    details: Any = None


class AnthropicErrorEnvelope(BaseModel):
    type: Literal["error"]
    error: AnthropicErrorDetails


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

class GeminiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GeminiFunctionCall(GeminiModel):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class GeminiFunctionResponse(GeminiModel):
    name: str
    response: Any = None


class GeminiPart(GeminiModel):
    text: str | None = None
    function_call: GeminiFunctionCall | None = None
    function_response: GeminiFunctionResponse | None = None


class GeminiContent(GeminiModel):
    parts: list[GeminiPart] = Field(default_factory=list)
    role: str | None = None


class GeminiSafetyRating(GeminiModel):
    category: str
    probability: str


class GeminiCandidate(GeminiModel):
    content: GeminiContent | None = None
    finish_reason: str | None = None
    safety_ratings: list[GeminiSafetyRating] | None = None
    index: int | None = None


class GeminiUsage(GeminiModel):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


class GeminiResponse(GeminiModel):
    candidates: list[GeminiCandidate] = Field(default_factory=list)
    usage_metadata: GeminiUsage | None = None
    model_version: str | None = None


class GeminiErrorDetails(GeminiModel):
    code: int
    message: str
    status: str = ""


class GeminiError(GeminiModel):
    error: GeminiErrorDetails


class GeminiFunctionDeclaration(GeminiModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class GeminiTool(GeminiModel):
    function_declarations: list[GeminiFunctionDeclaration]


class GeminiSafetySetting(GeminiModel):
    category: str
    threshold: str


class GeminiGenerationConfig(GeminiModel):
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_output_tokens: int | None = None
    stop_sequences: list[str] | None = None
