"""Provider adapters."""

from llmrelay.providers.anthropic import AnthropicAdapter
from llmrelay.providers.base import Conversation, ProviderAdapter
from llmrelay.providers.gemini import GeminiAdapter

PROVIDERS: dict[str, type[ProviderAdapter]] = {
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
}

__all__ = [
    "AnthropicAdapter",
    "Conversation",
    "GeminiAdapter",
    "PROVIDERS",
    "ProviderAdapter",
]
