"""Chat session orchestration for polychat.

``ChatSession`` is the conversation loop: it checks preconditions,
streams the reply of the selected model into the message list, owns the
cancellation lifecycle of the in-flight generation, and feeds the
outcome of every send back into model availability.
"""

from collections.abc import Callable
from contextlib import aclosing
from enum import StrEnum
from functools import partial
from typing import Any

from polychat.config import SessionSettings
from polychat.logging import get_logger
from polychat.models.availability import ErrorKind, RefreshMode, RefreshSummary
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.services.availability import ModelAvailabilityService
from polychat.services.debounce import DebouncedWriter
from polychat.services.dispatcher import UnifiedDispatcher
from polychat.services.error_classifier import classify_exception, error_message, is_cancellation
from polychat.services.persistence import ConversationPersistence
from polychat.utils.cancellation import CancellationToken
from polychat.utils.ids import generate_message_id, now_ms

__all__ = [
    "ChatSession",
    "NoticeLevel",
]

logger = get_logger(__name__)


class NoticeLevel(StrEnum):
    """Severity of a user-facing notice."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


NoticeCallback = Callable[[NoticeLevel, str], Any]
MessagesCallback = Callable[[list[ChatMessage]], Any]


class ChatSession:
    """Stateful conversation bound to a dispatcher, availability and storage.

    Example:
        session = ChatSession(dispatcher, availability, persistence)
        await session.start()
        await session.send_message("Hello")
        session.close()
    """

    def __init__(
        self,
        dispatcher: UnifiedDispatcher,
        availability: ModelAvailabilityService,
        persistence: ConversationPersistence,
        *,
        settings: SessionSettings | None = None,
        system_instruction: str | None = None,
        on_messages: MessagesCallback | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        """Initialize session.

        Args:
            dispatcher: Routes sends to the active provider
            availability: Shared model availability
            persistence: Conversation storage
            settings: Session settings (conversation id, debounce delay)
            system_instruction: Overrides the provider default instruction
            on_messages: Called with the message list on every change
            on_notice: Called with user-facing notices
        """
        self._dispatcher = dispatcher
        self._availability = availability
        self._persistence = persistence
        self._settings = settings or SessionSettings()
        self._system_instruction = system_instruction
        self._on_messages = on_messages
        self._on_notice = on_notice

        conversation_id = self._settings.conversation_id
        self._writer = DebouncedWriter(
            partial(persistence.save_messages, conversation_id=conversation_id),
            partial(persistence.save_messages_sync, conversation_id=conversation_id),
            delay=self._settings.debounce_seconds,
        )
        self._messages: list[ChatMessage] = []
        self._token: CancellationToken | None = None
        self._is_loading = False
        self._is_hydrating = True

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_hydrating(self) -> bool:
        return self._is_hydrating

    @property
    def writer(self) -> DebouncedWriter:
        return self._writer

    def _notice(self, level: NoticeLevel, text: str) -> None:
        if self._on_notice is not None:
            self._on_notice(level, text)

    def _set_messages(self, messages: list[ChatMessage]) -> None:
        self._messages = messages
        self._writer.notify(messages)
        if self._on_messages is not None:
            self._on_messages(list(messages))

    async def _sync_dispatcher(self) -> bool:
        """Point the dispatcher at the selected model.

        Returns:
            True if a model is selected
        """
        option = self._availability.state.model(self._availability.state.current_model)
        if option is None:
            return False
        api_key = self._availability.api_keys.get(option.provider, "")
        if await self._dispatcher.set_config(option.id, option.provider, api_key):
            if self._messages:
                self._dispatcher.set_history(self._messages)
        return True

    async def hydrate(self) -> list[ChatMessage]:
        """Load the stored conversation and replay it into the active adapter."""
        messages = await self._persistence.hydrate(
            self._settings.conversation_id,
            self._settings.legacy_messages_key,
        )
        self._writer.mark_hydrated(messages)
        self._is_hydrating = False
        self._set_messages(messages)
        await self._sync_dispatcher()
        if messages:
            self._dispatcher.set_history(messages)
        return self.messages

    async def start(self) -> RefreshSummary:
        """Hydrate, then refresh model availability."""
        await self.hydrate()
        mode = RefreshMode.FULL if self._settings.full_refresh_on_start else RefreshMode.SMART
        return await self.refresh(mode)

    async def refresh(self, mode: RefreshMode = RefreshMode.SMART) -> RefreshSummary:
        summary = await self._availability.refresh(mode)
        await self._sync_dispatcher()
        return summary

    async def select_model(self, model_id: str) -> None:
        self._availability.select_model(model_id)
        await self._sync_dispatcher()

    async def send_message(
        self,
        content: str,
        attachments: list[Attachment] | None = None,
    ) -> bool:
        """Send one user turn and stream the reply into the message list.

        Returns:
            False if the turn was refused before sending (empty input,
            missing key, no model); True once it was attempted
        """
        if not content.strip() and not attachments:
            return False

        api_keys = self._availability.api_keys
        if not api_keys:
            self._notice(NoticeLevel.ERROR, "Please connect an API Key to start chatting")
            return False

        state = self._availability.state
        option = state.model(state.current_model)
        if option is None:
            self._notice(NoticeLevel.ERROR, "No model selected. Refresh the model list.")
            return False
        if not api_keys.get(option.provider):
            self._notice(NoticeLevel.ERROR, f"Missing API Key for {option.provider.upper()}")
            return False
        await self._sync_dispatcher()

        if self._token is not None:
            self._token.cancel("superseded")
        token = CancellationToken()
        self._token = token

        model_id = self._dispatcher.model_id
        user_msg = ChatMessage(
            id=generate_message_id(),
            role=Role.USER,
            content=content,
            timestamp=now_ms(),
            attachments=attachments or None,
        )
        self._set_messages([*self._messages, user_msg])
        self._is_loading = True

        # A successful send proves the model works again
        self._availability.mark_available(model_id)

        bot_msg: ChatMessage | None = None
        try:
            stream = self._dispatcher.send_message_stream(
                content,
                attachments,
                signal=token,
                system_instruction=self._system_instruction,
            )
            async with aclosing(stream):
                async for chunk in stream:
                    if token.cancelled:
                        break
                    if bot_msg is None:
                        bot_msg = ChatMessage(
                            id=generate_message_id(),
                            role=Role.MODEL,
                            timestamp=now_ms(),
                        )
                        self._set_messages([*self._messages, bot_msg])
                    bot_msg = bot_msg.model_copy(update={"content": bot_msg.content + chunk})
                    self._replace_message(bot_msg)
        except Exception as e:
            if token.cancelled or is_cancellation(e):
                return True
            await self._handle_send_error(e, model_id, user_msg, bot_msg)
        finally:
            if self._token is token:
                self._token = None
                self._is_loading = False
            self._writer.notify(self._messages, force=True)
        return True

    def _replace_message(self, message: ChatMessage) -> None:
        self._set_messages([message if m.id == message.id else m for m in self._messages])

    async def _handle_send_error(
        self,
        exc: Exception,
        model_id: str,
        user_msg: ChatMessage,
        bot_msg: ChatMessage | None,
    ) -> None:
        message = error_message(exc) or "Connection interrupted"
        kind = classify_exception(exc)
        logger.warning(
            "send_failed",
            model_id=model_id,
            error_code=kind.value,
            error=message,
        )

        # Roll back the failed turn; earlier turns stay untouched
        rolled_back = {user_msg.id} | ({bot_msg.id} if bot_msg else set())
        self._set_messages([m for m in self._messages if m.id not in rolled_back])
        self._dispatcher.set_history(self._messages)

        if kind.disables_model:
            self._availability.mark_unavailable(model_id, kind, message)
            self._notice(NoticeLevel.ERROR, kind.user_notice)
            if self._availability.fallback_to_previous_model():
                await self._sync_dispatcher()
        elif kind is ErrorKind.BAD_REQUEST:
            self._notice(NoticeLevel.ERROR, kind.user_notice)
        else:
            self._notice(NoticeLevel.ERROR, message)

    def stop_generation(self) -> bool:
        """Cancel the in-flight generation.

        Returns:
            True if a generation was running
        """
        if self._token is None:
            return False
        self._token.cancel("stopped")
        self._token = None
        self._is_loading = False
        self._notice(NoticeLevel.INFO, "Generation stopped")
        return True

    async def clear_chat(self) -> None:
        """Abort any generation and forget the conversation everywhere."""
        if self._token is not None:
            self._token.cancel("cleared")
            self._token = None
        self._is_loading = False

        # A write already in flight must land before the delete
        self._writer.cancel()
        await self._writer.drain()
        self._writer.mark_hydrated([])
        self._set_messages([])
        await self._persistence.delete_conversation(self._settings.conversation_id)
        await self._dispatcher.reset_session()
        self._notice(NoticeLevel.SUCCESS, "Conversation cleared")

    def flush(self) -> None:
        """Write the conversation synchronously, replacing any scheduled write."""
        self._writer.flush()

    def close(self) -> None:
        """Teardown: stop any generation silently and flush."""
        if self._token is not None:
            self._token.cancel("closed")
            self._token = None
        self._is_loading = False
        self.flush()
