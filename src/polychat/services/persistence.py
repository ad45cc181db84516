"""Conversation persistence for polychat.

Two storage tiers back a conversation:

- the primary ``ConversationStore`` (async, structured), used for all
  regular saves and loads;
- the ``FlatStore`` (sync, string keys), used when the primary fails and
  for the teardown flush, when there is no time left to await anything.

Attachment payloads are stripped on every write path, so durable
storage only ever holds thumbnails and metadata.
"""

from pydantic import TypeAdapter, ValidationError

from polychat.interfaces.storage import ConversationStore, FlatStore
from polychat.logging import get_logger
from polychat.models.chat import Attachment, ChatMessage, ConversationRecord
from polychat.utils.ids import now_ms

__all__ = [
    "DEFAULT_CONVERSATION_ID",
    "ConversationPersistence",
    "fallback_key",
    "pending_key",
    "restore_attachments",
    "sanitize_attachment",
    "sanitize_messages",
]

logger = get_logger(__name__)

DEFAULT_CONVERSATION_ID = "default"

_MESSAGES = TypeAdapter(list[ChatMessage])


def fallback_key(conversation_id: str) -> str:
    return f"ccs_messages_{conversation_id}"


def pending_key(conversation_id: str) -> str:
    return f"ccs_messages_pending_{conversation_id}"


def sanitize_attachment(attachment: Attachment) -> Attachment:
    """Drop the payload of an attachment before it is stored.

    Only image and video attachments with a thumbnail keep
    ``is_active=True``; anything else cannot be shown or resent.
    """
    return attachment.model_copy(
        update={
            "data": None,
            "is_active": attachment.is_visual and bool(attachment.thumbnail),
        }
    )


def sanitize_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Return storable copies of messages, without attachment payloads."""
    sanitized: list[ChatMessage] = []
    for msg in messages:
        if msg.attachments:
            msg = msg.model_copy(
                update={"attachments": [sanitize_attachment(a) for a in msg.attachments]}
            )
        sanitized.append(msg)
    return sanitized


def restore_attachments(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Flag loaded visual attachments whose thumbnail stands in for the original."""
    restored: list[ChatMessage] = []
    for msg in messages:
        if msg.attachments:
            msg = msg.model_copy(
                update={"attachments": [_restore_attachment(a) for a in msg.attachments]}
            )
        restored.append(msg)
    return restored


def _restore_attachment(attachment: Attachment) -> Attachment:
    if attachment.is_visual and not attachment.data and attachment.thumbnail:
        return attachment.model_copy(update={"is_active": False, "is_thumbnail": True})
    return attachment


def _dump(messages: list[ChatMessage]) -> str:
    return _MESSAGES.dump_json(sanitize_messages(messages), exclude_none=True).decode()


def _parse(raw: str | None) -> list[ChatMessage] | None:
    if not raw:
        return None
    try:
        return _MESSAGES.validate_json(raw)
    except ValidationError as e:
        logger.warning("stored_messages_unreadable", error=str(e))
        return None


class ConversationPersistence:
    """Two-tier conversation store.

    Storage failures are logged and degrade to the flat store; they are
    never raised to the caller.

    Example:
        persistence = ConversationPersistence(mongo_store, redis_store)
        messages = await persistence.hydrate("default", "ccs_chat_messages")
        await persistence.save_messages(messages)
    """

    def __init__(
        self,
        primary: ConversationStore | None,
        fallback: FlatStore,
    ) -> None:
        """Initialize persistence.

        Args:
            primary: Async structured store; None to use the flat store only
            fallback: Sync flat store
        """
        self._primary = primary
        self._fallback = fallback

    def _write_fallback(self, key: str, messages: list[ChatMessage]) -> None:
        try:
            self._fallback.set_item(key, _dump(messages))
        except Exception as e:
            logger.error("fallback_save_failed", key=key, error=str(e))

    def _read_fallback(self, key: str) -> list[ChatMessage] | None:
        try:
            return _parse(self._fallback.get_item(key))
        except Exception as e:
            logger.error("fallback_load_failed", key=key, error=str(e))
            return None

    def _remove_fallback(self, key: str) -> None:
        try:
            self._fallback.remove_item(key)
        except Exception as e:
            logger.error("fallback_remove_failed", key=key, error=str(e))

    async def save_messages(
        self,
        messages: list[ChatMessage],
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> None:
        """Save a conversation to the primary store, or the flat store on failure."""
        if self._primary is None:
            self._write_fallback(fallback_key(conversation_id), messages)
            return

        record = ConversationRecord(
            id=conversation_id,
            messages=sanitize_messages(messages),
            updated_at=now_ms(),
        )
        try:
            await self._primary.put(record)
        except Exception as e:
            logger.warning(
                "primary_save_failed",
                conversation_id=conversation_id,
                error=str(e),
            )
            self._write_fallback(fallback_key(conversation_id), messages)

    async def load_messages(
        self,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> list[ChatMessage]:
        """Load a conversation from the primary store, or the flat store on failure."""
        if self._primary is not None:
            try:
                record = await self._primary.get(conversation_id)
            except Exception as e:
                logger.warning(
                    "primary_load_failed",
                    conversation_id=conversation_id,
                    error=str(e),
                )
            else:
                if record is not None:
                    return list(record.messages)

        return self._read_fallback(fallback_key(conversation_id)) or []

    async def delete_conversation(
        self,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> None:
        """Delete a conversation from every tier."""
        if self._primary is not None:
            try:
                await self._primary.delete(conversation_id)
            except Exception as e:
                logger.warning(
                    "primary_delete_failed",
                    conversation_id=conversation_id,
                    error=str(e),
                )
        self._remove_fallback(fallback_key(conversation_id))
        self._remove_fallback(pending_key(conversation_id))

    async def migrate_from_legacy(
        self,
        legacy_key: str,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> list[ChatMessage]:
        """Move messages stored under a legacy flat key into the primary store.

        The legacy key is deleted once the messages have been saved.
        """
        messages = self._read_fallback(legacy_key)
        if not messages:
            return []

        await self.save_messages(messages, conversation_id)
        self._remove_fallback(legacy_key)
        logger.info(
            "legacy_messages_migrated",
            legacy_key=legacy_key,
            message_count=len(messages),
        )
        return sanitize_messages(messages)

    def save_messages_sync(
        self,
        messages: list[ChatMessage],
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> None:
        """Write a conversation to the flat store without awaiting anything.

        Used on teardown; the next ``hydrate`` moves it into the primary store.
        """
        self._write_fallback(pending_key(conversation_id), messages)

    async def apply_pending_saves(
        self,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
    ) -> list[ChatMessage] | None:
        """Move a teardown write into the primary store.

        Returns:
            The pending messages, or None if there was no pending write.
            The pending key is kept if the primary store could not take it.
        """
        key = pending_key(conversation_id)
        messages = self._read_fallback(key)
        if messages is None:
            return None

        if self._primary is None:
            self._write_fallback(fallback_key(conversation_id), messages)
            self._remove_fallback(key)
            return messages

        record = ConversationRecord(
            id=conversation_id,
            messages=sanitize_messages(messages),
            updated_at=now_ms(),
        )
        try:
            await self._primary.put(record)
        except Exception as e:
            logger.warning(
                "pending_save_not_applied",
                conversation_id=conversation_id,
                error=str(e),
            )
        else:
            self._remove_fallback(key)
            logger.info(
                "pending_save_applied",
                conversation_id=conversation_id,
                message_count=len(messages),
            )
        return messages

    async def hydrate(
        self,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
        legacy_key: str | None = None,
    ) -> list[ChatMessage]:
        """Load a conversation at startup.

        Order: pending teardown write, primary store, legacy migration.
        Loaded visual attachments without payload are flagged as
        thumbnail-only.
        """
        messages = await self.apply_pending_saves(conversation_id)
        if messages is None:
            messages = await self.load_messages(conversation_id)
        if not messages and legacy_key:
            messages = await self.migrate_from_legacy(legacy_key, conversation_id)

        logger.debug(
            "conversation_hydrated",
            conversation_id=conversation_id,
            message_count=len(messages),
        )
        return restore_attachments(messages)
