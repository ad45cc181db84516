"""Shared test fixtures for polychat.

This module provides pytest fixtures used across all tests.
"""

import pytest

from mocks.mock_flat_store import InMemoryConversationStore, InMemoryFlatStore
from mocks.mock_providers import ScriptedAdapter, ScriptedProber, model_option
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.models.provider import ModelOption, ProviderId
from polychat.services.availability import AvailabilityState, ModelAvailabilityService
from polychat.services.dispatcher import UnifiedDispatcher
from polychat.services.persistence import ConversationPersistence

# 1x1 transparent PNG
PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


# Store fixtures
@pytest.fixture
def flat_store() -> InMemoryFlatStore:
    """Create in-memory flat store."""
    return InMemoryFlatStore()


@pytest.fixture
def primary_store() -> InMemoryConversationStore:
    """Create in-memory primary conversation store."""
    return InMemoryConversationStore()


@pytest.fixture
def persistence(
    primary_store: InMemoryConversationStore,
    flat_store: InMemoryFlatStore,
) -> ConversationPersistence:
    """Create two-tier persistence over in-memory stores."""
    return ConversationPersistence(primary_store, flat_store)


# Provider fixtures
@pytest.fixture
def groq_models() -> list[ModelOption]:
    """Create a three-model Groq catalog."""
    return [
        model_option("llama-3.1-8b-instant"),
        model_option("llama-3.3-70b-versatile"),
        model_option("mixtral-8x7b-32768"),
    ]


@pytest.fixture
def prober(groq_models: list[ModelOption]) -> ScriptedProber:
    """Create prober serving the Groq catalog."""
    return ScriptedProber(catalogs={ProviderId.GROQ: groq_models})


@pytest.fixture
def availability(prober: ScriptedProber, flat_store: InMemoryFlatStore) -> ModelAvailabilityService:
    """Create availability service with a Groq key."""
    return ModelAvailabilityService(
        AvailabilityState(),
        {ProviderId.GROQ: "gsk-test"},
        prober,
        flat_store=flat_store,
    )


@pytest.fixture
def groq_adapter() -> ScriptedAdapter:
    """Create scripted Groq adapter."""
    return ScriptedAdapter(ProviderId.GROQ, chunks=["Hello", ", ", "world"])


@pytest.fixture
def dispatcher(groq_adapter: ScriptedAdapter) -> UnifiedDispatcher:
    """Create dispatcher with scripted adapters for every provider."""
    adapters = {p: ScriptedAdapter(p) for p in ProviderId}
    adapters[ProviderId.GROQ] = groq_adapter
    return UnifiedDispatcher(adapters=adapters)


# Sample data fixtures
@pytest.fixture
def image_attachment() -> Attachment:
    """Create image attachment with payload and thumbnail."""
    return Attachment(
        mime_type="image/png",
        data=PNG_BASE64,
        name="pixel.png",
        size=68,
        thumbnail=f"data:image/png;base64,{PNG_BASE64}",
        dimensions=(1, 1),
    )


@pytest.fixture
def pdf_attachment() -> Attachment:
    """Create non-visual attachment with payload."""
    return Attachment(mime_type="application/pdf", data="JVBERi0xLjQK", name="notes.pdf", size=9)


@pytest.fixture
def sample_messages(image_attachment: Attachment) -> list[ChatMessage]:
    """Create a short conversation with one image turn."""
    return [
        ChatMessage(id="1704067200000", role=Role.USER, content="Hi", timestamp=1704067200000),
        ChatMessage(
            id="1704067201000",
            role=Role.MODEL,
            content="Hello! How can I help?",
            timestamp=1704067201000,
        ),
        ChatMessage(
            id="1704067202000",
            role=Role.USER,
            content="What is in this picture?",
            timestamp=1704067202000,
            attachments=[image_attachment],
        ),
        ChatMessage(
            id="1704067203000",
            role=Role.MODEL,
            content="A single transparent pixel.",
            timestamp=1704067203000,
        ),
    ]
