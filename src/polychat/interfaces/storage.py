"""Storage interfaces for polychat.

Conversation persistence uses two tiers: an async structured store as
the primary, and a synchronous flat key-value store that can be written
when there is no time left to await the primary (process teardown).
"""

from typing import Protocol, runtime_checkable

from polychat.models.chat import ConversationRecord

__all__ = [
    "ConversationStore",
    "FlatStore",
]


@runtime_checkable
class ConversationStore(Protocol):
    """Primary async store, keyed by conversation id."""

    async def get(self, conversation_id: str) -> ConversationRecord | None:
        """Get a conversation record.

        Args:
            conversation_id: Conversation to load

        Returns:
            The stored record, or None if absent
        """
        ...

    async def put(self, record: ConversationRecord) -> None:
        """Insert or replace a conversation record.

        Args:
            record: Sanitized record to store
        """
        ...

    async def delete(self, conversation_id: str) -> None:
        """Delete a conversation record if present."""
        ...


@runtime_checkable
class FlatStore(Protocol):
    """Synchronous string key-value store."""

    def get_item(self, key: str) -> str | None:
        """Get the raw value for a key, None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Set the raw value for a key."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        ...
