"""MongoDB repositories for polychat.

This module provides the primary conversation store backed by MongoDB.
"""

from typing import Any, Self

from polychat.config import MongoSettings
from polychat.infra.mongo.client import MongoClient
from polychat.interfaces.storage import ConversationStore
from polychat.logging import get_logger
from polychat.models.chat import ChatMessage, ConversationRecord

__all__ = [
    "MongoConversationStore",
]

logger = get_logger(__name__)


class MongoConversationStore(ConversationStore):
    """MongoDB implementation of ConversationStore.

    One document per conversation, holding the full message array.
    Documents are replaced wholesale on every save.
    """

    config_class = MongoSettings

    def __init__(self, client: MongoClient) -> None:
        """Initialize repository with MongoDB client.

        Args:
            client: Connected MongoClient instance
        """
        self._client = client
        self._owns_client = False

    @classmethod
    async def from_config(cls, config: MongoSettings) -> Self:
        """Create a MongoClient, connect, create indexes and return the store.

        Args:
            config: MongoDB settings

        Returns:
            Connected MongoConversationStore instance
        """
        client = MongoClient(config)
        await client.connect()
        await client.create_indexes()

        instance = cls(client)
        instance._owns_client = True
        return instance

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict."""
        settings = MongoSettings(**config)
        return await cls.from_config(settings)

    async def close(self) -> None:
        """Close owned resources."""
        if self._owns_client and self._client:
            await self._client.disconnect()

    async def get(self, conversation_id: str) -> ConversationRecord | None:
        """Get a conversation by ID."""
        doc = await self._client.conversations.find_one({"id": conversation_id})
        return self._doc_to_record(doc) if doc else None

    async def put(self, record: ConversationRecord) -> None:
        """Save or replace a conversation."""
        await self._client.conversations.replace_one(
            {"id": record.id},
            self._record_to_doc(record),
            upsert=True,
        )
        logger.debug(
            "conversation_saved",
            conversation_id=record.id,
            message_count=len(record.messages),
        )

    async def delete(self, conversation_id: str) -> None:
        """Delete a conversation if present."""
        await self._client.conversations.delete_one({"id": conversation_id})

    @staticmethod
    def _record_to_doc(record: ConversationRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "messages": [m.model_dump(mode="json", exclude_none=True) for m in record.messages],
            "updated_at": record.updated_at,
        }

    @staticmethod
    def _doc_to_record(doc: dict[str, Any]) -> ConversationRecord:
        return ConversationRecord(
            id=doc["id"],
            messages=[ChatMessage.model_validate(m) for m in doc.get("messages", [])],
            updated_at=doc.get("updated_at", 0),
        )
