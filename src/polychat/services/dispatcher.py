"""Unified dispatcher for polychat.

Routes chat calls to the adapter of the active provider. Each provider
keeps one long-lived adapter, so switching provider never mixes
conversational history between backends.
"""

from collections.abc import AsyncIterator, Mapping
from typing import ClassVar

import polychat.infra.providers  # noqa: F401  (registers the built-in adapters)
from polychat.config import ProviderSettings
from polychat.errors import MissingApiKeyError, ProviderNotImplementedError
from polychat.infra.providers.registry import ProviderRegistry
from polychat.interfaces.provider import ProviderAdapter
from polychat.logging import get_logger
from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage
from polychat.models.provider import ModelOption, ProviderId
from polychat.utils.cancellation import CancellationToken

__all__ = [
    "UnifiedDispatcher",
]

logger = get_logger(__name__)


def _as_provider(provider: ProviderId | str) -> ProviderId | str:
    try:
        return ProviderId(provider)
    except ValueError:
        return provider


class UnifiedDispatcher:
    """Single entry point for chatting with whichever backend is active.

    Example:
        dispatcher = UnifiedDispatcher("gpt-4o", ProviderId.OPENAI, key)
        async for chunk in dispatcher.send_message_stream("Hello"):
            print(chunk, end="")
    """

    # Probe adapters are never the session adapters, so catalog fetches
    # and probes cannot touch conversational history
    _probe_adapters: ClassVar[dict[ProviderId, ProviderAdapter]] = {}

    def __init__(
        self,
        model_id: str = "",
        provider: ProviderId | str = ProviderId.GOOGLE,
        api_key: str = "",
        adapters: Mapping[ProviderId, ProviderAdapter] | None = None,
        *,
        settings: ProviderSettings | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            model_id: Active model id
            provider: Active provider
            api_key: Credential for the active provider
            adapters: Pre-built adapters; defaults to one per registered provider
            settings: Provider settings passed to default adapters
        """
        self._model_id = model_id
        self._provider = _as_provider(provider)
        self._api_key = api_key
        if adapters is None:
            settings = settings or ProviderSettings()
            adapters = {
                p: ProviderRegistry.create(p, settings=settings)
                for p in ProviderRegistry.providers()
            }
        self._adapters: dict[ProviderId, ProviderAdapter] = dict(adapters)

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def provider(self) -> ProviderId | str:
        return self._provider

    def adapter_for(self, provider: ProviderId | str) -> ProviderAdapter:
        """Get the session adapter of a provider.

        Raises:
            ProviderNotImplementedError: If the provider has no adapter
        """
        adapter = self._adapters.get(_as_provider(provider))  # type: ignore[arg-type]
        if adapter is None:
            raise ProviderNotImplementedError(str(provider))
        return adapter

    async def set_config(
        self,
        model_id: str,
        provider: ProviderId | str,
        api_key: str,
    ) -> bool:
        """Switch the active (model, provider, credential) triple.

        Only an actual change resets the session, and only the session of
        the target provider.

        Returns:
            True if the configuration changed
        """
        provider = _as_provider(provider)
        if (model_id, provider, api_key) == (self._model_id, self._provider, self._api_key):
            return False

        self._model_id = model_id
        self._provider = provider
        self._api_key = api_key
        adapter = self._adapters.get(provider)  # type: ignore[arg-type]
        if adapter is not None:
            await adapter.reset_session()
        logger.info("dispatcher_configured", provider=str(provider), model_id=model_id)
        return True

    def send_message_stream(
        self,
        message: str,
        attachments: list[Attachment] | None = None,
        signal: CancellationToken | None = None,
        system_instruction: str | None = None,
    ) -> AsyncIterator[str]:
        """Start streaming one turn through the active adapter.

        Raises:
            MissingApiKeyError: If the active provider has no credential
            ProviderNotImplementedError: If the active provider has no adapter
        """
        if not self._api_key:
            raise MissingApiKeyError(str(self._provider))
        adapter = self.adapter_for(self._provider)
        return adapter.send_message_stream(
            self._model_id,
            self._api_key,
            message,
            attachments=attachments,
            system_instruction=system_instruction,
            signal=signal,
        )

    async def reset_session(self) -> None:
        await self.adapter_for(self._provider).reset_session()

    def set_history(self, messages: list[ChatMessage]) -> None:
        self.adapter_for(self._provider).set_history(messages)

    @classmethod
    def _probe_adapter(cls, provider: ProviderId) -> ProviderAdapter:
        adapter = cls._probe_adapters.get(provider)
        if adapter is None:
            adapter = ProviderRegistry.create(provider)
            cls._probe_adapters[provider] = adapter
        return adapter

    @classmethod
    async def validate_key_and_get_models(
        cls,
        provider: ProviderId | str,
        api_key: str,
    ) -> list[ModelOption]:
        """List the models of a provider for a key.

        Unknown providers yield an empty list.

        Raises:
            InvalidApiKeyError: If the backend rejects the credential
        """
        if not ProviderRegistry.is_registered(provider):
            return []
        return await cls._probe_adapter(ProviderId(provider)).validate_key(api_key)

    @classmethod
    async def check_model_availability(
        cls,
        provider: ProviderId | str,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        """Probe one model of a provider.

        Raises:
            ProviderNotImplementedError: If the provider has no adapter
        """
        if not ProviderRegistry.is_registered(provider):
            raise ProviderNotImplementedError(str(provider))
        return await cls._probe_adapter(ProviderId(provider)).check_model_availability(
            model_id, api_key
        )
