"""polychat - Local multi-provider LLM chat core.

This package provides tools for:
- Streaming chat turns from Google, OpenAI, Groq and Anthropic models
  through one adapter interface, with cooperative cancellation
- Classifying provider errors into a fixed taxonomy
- Verifying which configured models are usable, in the background
- Persisting the conversation across an async primary store and a
  synchronous flat fallback store

Example usage:
    from polychat import Polychat

    # Simple usage - config loaded from .env automatically
    async with Polychat(on_notice=print) as chat:
        await chat.session.send_message("Hello!")
        print(chat.session.messages[-1].content)
"""

__version__ = "0.1.0"

# Orchestrator
from polychat.orchestrator import Polychat

# Errors
from polychat.errors import (
    InvalidApiKeyError,
    MissingApiKeyError,
    PolychatError,
    ProviderNotImplementedError,
    ProviderStreamError,
)

# Implementations
from polychat.infra.mongo.repositories import MongoConversationStore
from polychat.infra.providers import (
    AnthropicAdapter,
    GoogleAdapter,
    GroqAdapter,
    OpenAIAdapter,
    ProviderRegistry,
)
from polychat.infra.redis.client import RedisFlatStore

# Interfaces
from polychat.interfaces.provider import ProviderAdapter
from polychat.interfaces.storage import ConversationStore, FlatStore

# Models
from polychat.models import (
    Attachment,
    ChatMessage,
    ErrorKind,
    ModelOption,
    ProviderId,
    RefreshMode,
    Role,
)

# Services
from polychat.services import (
    AvailabilityState,
    ChatSession,
    ConversationPersistence,
    ModelAvailabilityService,
    UnifiedDispatcher,
)

__all__ = [  # noqa: RUF022
    # Orchestrator
    "Polychat",
    # Services
    "AvailabilityState",
    "ChatSession",
    "ConversationPersistence",
    "ModelAvailabilityService",
    "UnifiedDispatcher",
    # Implementations
    "AnthropicAdapter",
    "GoogleAdapter",
    "GroqAdapter",
    "MongoConversationStore",
    "OpenAIAdapter",
    "ProviderRegistry",
    "RedisFlatStore",
    # Interfaces
    "ConversationStore",
    "FlatStore",
    "ProviderAdapter",
    # Models
    "Attachment",
    "ChatMessage",
    "ErrorKind",
    "ModelOption",
    "ProviderId",
    "RefreshMode",
    "Role",
    # Errors
    "InvalidApiKeyError",
    "MissingApiKeyError",
    "PolychatError",
    "ProviderNotImplementedError",
    "ProviderStreamError",
]
