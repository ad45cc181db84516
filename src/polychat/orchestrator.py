"""Polychat orchestrator for high-level chat operations.

This module provides the main entry point for the polychat package,
wiring storage, provider dispatch, model availability and the chat
session together.
"""

from typing import Any

from polychat.config import PolychatConfig
from polychat.infra.mongo.repositories import MongoConversationStore
from polychat.infra.redis.client import RedisFlatStore
from polychat.interfaces.storage import ConversationStore, FlatStore
from polychat.logging import get_logger
from polychat.services.availability import (
    AvailabilityListener,
    AvailabilityState,
    ModelAvailabilityService,
)
from polychat.services.chat_session import ChatSession, MessagesCallback, NoticeCallback
from polychat.services.dispatcher import UnifiedDispatcher
from polychat.services.persistence import ConversationPersistence

__all__ = ["Polychat"]

logger = get_logger(__name__)


class Polychat:
    """Main orchestrator for a local multi-provider chat.

    Accepts implementation classes. Config is loaded from .env automatically.
    A primary store with ``config_class = None`` is built from
    ``storage_custom_config`` through its ``from_dict`` factory.

    Example:
        async with Polychat(on_notice=print) as chat:
            await chat.session.send_message("Hello")
            print(chat.session.messages[-1].content)
    """

    def __init__(
        self,
        storage_class: type[ConversationStore] | None = MongoConversationStore,
        flat_store: FlatStore | None = None,
        *,
        config: PolychatConfig | None = None,
        storage_custom_config: dict[str, Any] | None = None,
        on_messages: MessagesCallback | None = None,
        on_notice: NoticeCallback | None = None,
        availability_listeners: list[AvailabilityListener] | None = None,
    ) -> None:
        """Initialize Polychat with implementation classes.

        Args:
            storage_class: Primary store class; None to use the flat store only
            flat_store: Fallback store; defaults to a RedisFlatStore from config
            config: Full configuration; loaded from the environment by default
            storage_custom_config: Custom config dict if storage_class.config_class is None
            on_messages: Called with the message list on every change
            on_notice: Called with user-facing notices
            availability_listeners: Called with the availability state on every change
        """
        self._config = config or PolychatConfig()

        self._storage_class = storage_class
        self._storage_custom_config = storage_custom_config
        self._flat_store = flat_store
        self._owns_flat_store = flat_store is None

        self._on_messages = on_messages
        self._on_notice = on_notice
        self._availability_listeners = availability_listeners

        self._storage: ConversationStore | None = None
        self._availability: ModelAvailabilityService | None = None
        self._session: ChatSession | None = None
        self._connected = False

    async def _instantiate_class(
        self,
        cls: type,
        custom_config: dict[str, Any] | None,
    ) -> Any:
        """Instantiate an implementation class.

        If cls.config_class is set, use the matching section of the
        Polychat config, or instantiate it (loads from .env).
        If cls.config_class is None, use custom_config dict.
        """
        config_class = getattr(cls, "config_class", None)

        if config_class is None:
            if custom_config is None:
                raise ValueError(
                    f"{cls.__name__} has config_class=None but no custom_config provided"
                )
            return await cls.from_dict(custom_config)
        section = self._config.section(config_class)
        return await cls.from_config(section if section is not None else config_class())

    async def _connect(self) -> None:
        """Initialize stores and wire services."""
        if self._connected:
            return

        if self._flat_store is None:
            redis_store = RedisFlatStore(self._config.redis)
            redis_store.connect()
            self._flat_store = redis_store

        if self._storage_class is not None:
            try:
                self._storage = await self._instantiate_class(
                    self._storage_class, self._storage_custom_config
                )
            except ValueError:
                raise
            except Exception as e:
                # The flat store still keeps the conversation
                logger.warning("primary_store_unavailable", error=str(e))
                self._storage = None

        state = AvailabilityState()
        state.load(self._flat_store)
        self._availability = ModelAvailabilityService(
            state,
            self._config.api_keys,
            flat_store=self._flat_store,
            listeners=self._availability_listeners,
        )
        self._session = ChatSession(
            UnifiedDispatcher(settings=self._config.providers),
            self._availability,
            ConversationPersistence(self._storage, self._flat_store),
            settings=self._config.session,
            on_messages=self._on_messages,
            on_notice=self._on_notice,
        )

        self._connected = True
        logger.info("polychat_connected", primary_store=self._storage is not None)

    async def _disconnect(self) -> None:
        """Flush the conversation and close all connections."""
        if self._session is not None:
            self._session.close()
        if self._storage is not None and hasattr(self._storage, "close"):
            await self._storage.close()
        if self._owns_flat_store and isinstance(self._flat_store, RedisFlatStore):
            self._flat_store.disconnect()
            self._flat_store = None

        self._connected = False
        logger.info("polychat_disconnected")

    async def __aenter__(self) -> "Polychat":
        """Async context manager entry - connects and starts the session."""
        await self._connect()
        assert self._session is not None
        await self._session.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - flushes and disconnects."""
        await self._disconnect()

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise RuntimeError("Polychat not connected. Use 'async with Polychat(...) as chat:'")

    @property
    def session(self) -> ChatSession:
        self._ensure_connected()
        assert self._session is not None
        return self._session

    @property
    def availability(self) -> ModelAvailabilityService:
        self._ensure_connected()
        assert self._availability is not None
        return self._availability
