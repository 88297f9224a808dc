"""llmrelay - unified Anthropic and Gemini client with a streaming decoder."""

from llmrelay.client import AsyncLLMClient, LLMClient, create_adapter
from llmrelay.config import ClientSettings, LLMConfig, load_config
from llmrelay.errors import DecodeError, HttpStatusError, LLMError, ProviderError, TransportError
from llmrelay.types import Fragment, FragmentKind, StreamSummary, ToolCall

__version__ = "0.1.0"

__all__ = [
    "AsyncLLMClient",
    "ClientSettings",
    "DecodeError",
    "Fragment",
    "FragmentKind",
    "HttpStatusError",
    "LLMClient",
    "LLMConfig",
    "LLMError",
    "ProviderError",
    "StreamSummary",
    "ToolCall",
    "TransportError",
    "create_adapter",
    "load_config",
]
