"""Anthropic chat adapter for polychat.

This module provides the Anthropic Messages implementation of the
provider adapter. The API is stateless: the transcript is kept
client-side and the system instruction travels as a top-level
``system`` parameter rather than as a message.
"""

from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any, ClassVar

from anthropic import APIError, AsyncAnthropic, AuthenticationError, PermissionDeniedError

from polychat.config import ProviderSettings
from polychat.errors import InvalidApiKeyError, ProviderStreamError
from polychat.infra.providers.reasoning import ThinkTagger
from polychat.infra.providers.registry import ProviderRegistry
from polychat.logging import get_logger
from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.models.provider import ModelOption, ProviderId
from polychat.services.error_classifier import classify_exception, error_message
from polychat.utils.cancellation import CancellationToken

__all__ = [
    "AnthropicAdapter",
]

logger = get_logger(__name__)

_MODEL_PREFIX = "claude-"


@ProviderRegistry.register
class AnthropicAdapter:
    """Anthropic implementation of the provider adapter."""

    provider_id: ClassVar[ProviderId] = ProviderId.ANTHROPIC

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            settings: Provider settings (system instruction, max tokens)
            client_factory: Builds an SDK client from an API key
        """
        self._settings = settings or ProviderSettings()
        self._client_factory = client_factory or self._default_client
        self._client: Any = None
        self._client_key: str | None = None
        self._history: list[dict[str, Any]] = []

    def _default_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=api_key,
            timeout=self._settings.request_timeout,
            max_retries=0,
        )

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def _client_for(self, api_key: str) -> Any:
        if self._client is None or self._client_key != api_key:
            self._client = self._client_factory(api_key)
            self._client_key = api_key
        return self._client

    async def validate_key(self, api_key: str) -> list[ModelOption]:
        """List Claude models for a key."""
        api_key = api_key.strip()
        if not api_key:
            return []

        options: list[ModelOption] = []
        try:
            async for model in self._client_for(api_key).models.list():
                if not model.id.startswith(_MODEL_PREFIX):
                    continue
                options.append(
                    ModelOption(
                        id=model.id,
                        name=getattr(model, "display_name", None) or model.id,
                        description="Anthropic Model",
                        provider=self.provider_id,
                    )
                )
        except (AuthenticationError, PermissionDeniedError) as e:
            raise InvalidApiKeyError(self.provider_id, error_message(e)) from e
        except Exception as e:
            logger.warning("model_listing_failed", provider=self.provider_id.value, error=str(e))
            return []

        return sorted(options, key=lambda option: option.id, reverse=True)

    async def check_model_availability(
        self,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        """Probe a model with a 1-token message."""
        try:
            await self._client_for(api_key.strip()).messages.create(
                model=model_id,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except Exception as e:
            kind = classify_exception(e)
            logger.debug(
                "model_probe_failed",
                provider=self.provider_id.value,
                model_id=model_id,
                error_code=kind.value,
            )
            return AvailabilityResult(available=False, error=error_message(e), error_code=kind)
        return AvailabilityResult.ok()

    async def send_message_stream(
        self,
        model_id: str,
        api_key: str,
        message: str,
        attachments: list[Attachment] | None = None,
        system_instruction: str | None = None,
        signal: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Stream one chat turn from the Messages API."""
        instruction = system_instruction or self._settings.system_instruction
        user_turn = {"role": "user", "content": self._user_content(message, attachments)}

        request: dict[str, Any] = {
            "model": model_id,
            "max_tokens": self._settings.anthropic_max_tokens,
            "messages": [*self._history, user_turn],
            "stream": True,
        }
        if instruction:
            request["system"] = instruction

        tagger = ThinkTagger()
        produced: list[str] = []
        stream = None
        cancelled = False
        try:
            try:
                stream = await self._client_for(api_key.strip()).messages.create(**request)
                async for event in stream:
                    if signal is not None and signal.cancelled:
                        cancelled = True
                        break
                    text = self._event_text(event, tagger)
                    if text:
                        produced.append(text)
                        yield text
            except APIError as e:
                raise ProviderStreamError(
                    error_message(e),
                    getattr(e, "status_code", None),
                ) from e

            if not cancelled:
                tail = tagger.close()
                if tail:
                    produced.append(tail)
                    yield tail
        finally:
            if stream is not None:
                await stream.close()
            self._history.append(user_turn)
            answer = "".join(produced)
            # The Messages API rejects empty assistant content
            if answer:
                self._history.append({"role": "assistant", "content": answer})

    @staticmethod
    def _event_text(event: Any, tagger: ThinkTagger) -> str:
        if event.type != "content_block_delta":
            return ""
        delta = event.delta
        if delta.type == "thinking_delta":
            return tagger.feed(delta.thinking, None)
        if delta.type == "text_delta":
            return tagger.feed(None, delta.text)
        return ""

    def _user_content(
        self,
        message: str,
        attachments: Iterable[Attachment] | None,
    ) -> str | list[dict[str, Any]]:
        images = [a for a in attachments or () if a.has_payload and a.is_image]
        if not images:
            return message

        blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": attachment.mime_type,
                    "data": attachment.data,
                },
            }
            for attachment in images
        ]
        if message:
            blocks.append({"type": "text", "text": message})
        return blocks

    async def reset_session(self) -> None:
        self._history = []

    def set_history(self, messages: list[ChatMessage]) -> None:
        history: list[dict[str, Any]] = []
        for msg in messages:
            if msg.is_empty:
                continue
            if msg.role == Role.MODEL:
                if msg.content:
                    history.append({"role": "assistant", "content": msg.content})
            else:
                history.append(
                    {"role": "user", "content": self._user_content(msg.content, msg.attachments)}
                )
        self._history = history
