"""
LLM providers for agentchat.
One contract (chat, stream_chat, iter_chat, is_available, list_models) over
Ollama, Anthropic and Gemini wire protocols.
"""
from agentchat.providers.base import BaseProvider, ChatResult, StreamEvent, Usage
from agentchat.providers.ollama import OllamaProvider
from agentchat.providers.anthropic import AnthropicProvider
from agentchat.providers.gemini import GeminiProvider
from agentchat.providers.registry import PROVIDERS, create_provider

__all__ = [
    "BaseProvider",
    "ChatResult",
    "StreamEvent",
    "Usage",
    "OllamaProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "PROVIDERS",
    "create_provider",
]
