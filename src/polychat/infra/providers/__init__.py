"""Provider adapters for polychat.

Importing this package registers every built-in adapter with
``ProviderRegistry``.
"""

from polychat.infra.providers.registry import ProviderRegistry

from polychat.infra.providers.anthropic_adapter import AnthropicAdapter
from polychat.infra.providers.google_adapter import GoogleAdapter
from polychat.infra.providers.groq_adapter import GroqAdapter
from polychat.infra.providers.openai_adapter import OpenAIAdapter
from polychat.infra.providers.openai_compatible import OpenAICompatibleAdapter

__all__ = [
    "AnthropicAdapter",
    "GoogleAdapter",
    "GroqAdapter",
    "OpenAIAdapter",
    "OpenAICompatibleAdapter",
    "ProviderRegistry",
]
