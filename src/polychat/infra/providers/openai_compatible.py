"""OpenAI-compatible chat adapter base for polychat.

Backends speaking the ``/models`` + ``/chat/completions`` REST shape are
stateless: the transcript is kept client-side and resent on every turn.
The openai SDK handles the Server-Sent-Events framing (``data: <json>``
lines terminated by ``data: [DONE]``); this module turns the decoded
chunks into plain text deltas.
"""

from collections.abc import AsyncIterator, Iterable
from typing import Any, ClassVar

import httpx
from openai import APIError, AsyncOpenAI, AuthenticationError, PermissionDeniedError

from polychat.config import ProviderSettings
from polychat.errors import InvalidApiKeyError, ProviderStreamError
from polychat.infra.providers.reasoning import ThinkTagger
from polychat.logging import get_logger
from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.models.provider import ModelOption, ProviderId
from polychat.services.error_classifier import classify_exception, error_message
from polychat.utils.cancellation import CancellationToken

__all__ = [
    "OpenAICompatibleAdapter",
]

logger = get_logger(__name__)

_PROBE_PROMPT = "ping"


class OpenAICompatibleAdapter:
    """Shared implementation for OpenAI-style REST backends.

    Subclasses set ``provider_id`` and override the catalog hooks
    (``is_model_allowed``, ``to_option``, ``sort_options``) and
    ``base_url``.
    """

    provider_id: ClassVar[ProviderId]
    # Newer OpenAI models reject ``max_tokens`` in favour of this name
    probe_token_param: ClassVar[str] = "max_tokens"

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            settings: Provider endpoint settings
            http_client: Optional shared httpx client (custom transport, proxies)
        """
        self._settings = settings or ProviderSettings()
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None
        self._client_key: str | None = None
        self._history: list[dict[str, Any]] = []

    @property
    def base_url(self) -> str:
        raise NotImplementedError

    @property
    def history(self) -> list[dict[str, Any]]:
        """Copy of the native transcript."""
        return list(self._history)

    def _client_for(self, api_key: str) -> AsyncOpenAI:
        if self._client is None or self._client_key != api_key:
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self._settings.request_timeout,
                max_retries=0,
                http_client=self._http_client,
            )
            self._client_key = api_key
        return self._client

    # Catalog hooks
    def is_model_allowed(self, model_id: str) -> bool:
        return True

    def to_option(self, model: Any) -> ModelOption:
        return ModelOption(id=model.id, name=model.id, provider=self.provider_id)

    def sort_options(self, options: list[ModelOption]) -> list[ModelOption]:
        return sorted(options, key=lambda option: option.id, reverse=True)

    async def validate_key(self, api_key: str) -> list[ModelOption]:
        """List chat-capable models for a key."""
        api_key = api_key.strip()
        if not api_key:
            return []

        try:
            page = await self._client_for(api_key).models.list()
        except (AuthenticationError, PermissionDeniedError) as e:
            raise InvalidApiKeyError(self.provider_id, error_message(e)) from e
        except Exception as e:
            logger.warning(
                "model_listing_failed",
                provider=self.provider_id.value,
                error=str(e),
            )
            return []

        options = [self.to_option(m) for m in page.data if self.is_model_allowed(m.id)]
        logger.debug(
            "models_listed",
            provider=self.provider_id.value,
            listed=len(page.data),
            kept=len(options),
        )
        return self.sort_options(options)

    async def check_model_availability(
        self,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        """Probe a model with a 1-token completion."""
        try:
            await self._client_for(api_key.strip()).chat.completions.create(
                model=model_id,
                messages=[{"role": "user", "content": _PROBE_PROMPT}],
                **{self.probe_token_param: 1},
            )
        except Exception as e:
            kind = classify_exception(e)
            logger.debug(
                "model_probe_failed",
                provider=self.provider_id.value,
                model_id=model_id,
                error_code=kind.value,
            )
            return AvailabilityResult(
                available=False,
                error=error_message(e),
                error_code=kind,
            )
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
        """Stream one chat turn, resending the full transcript."""
        instruction = system_instruction or self._settings.system_instruction
        user_turn = {"role": "user", "content": self._user_content(message, attachments)}

        request_messages: list[dict[str, Any]] = []
        if instruction:
            request_messages.append({"role": "system", "content": instruction})
        request_messages.extend(self._history)
        request_messages.append(user_turn)

        tagger = ThinkTagger()
        produced: list[str] = []
        stream = None
        cancelled = False
        try:
            try:
                stream = await self._client_for(api_key.strip()).chat.completions.create(
                    model=model_id,
                    messages=request_messages,
                    stream=True,
                )
                async for chunk in stream:
                    if signal is not None and signal.cancelled:
                        cancelled = True
                        break
                    text = self._chunk_text(chunk, tagger)
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
            self._history.append({"role": "assistant", "content": "".join(produced)})

    @staticmethod
    def _chunk_text(chunk: Any, tagger: ThinkTagger) -> str:
        if not chunk.choices:
            return ""
        delta = chunk.choices[0].delta
        if delta is None:
            return ""
        # DeepSeek-style models use reasoning_content, Groq uses reasoning
        reasoning = getattr(delta, "reasoning_content", None) or getattr(
            delta, "reasoning", None
        )
        return tagger.feed(reasoning, delta.content)

    def _user_content(
        self,
        message: str,
        attachments: Iterable[Attachment] | None,
    ) -> str | list[dict[str, Any]]:
        images = [a for a in attachments or () if a.has_payload and a.is_image]
        if not images:
            return message

        parts: list[dict[str, Any]] = [{"type": "text", "text": message}]
        for attachment in images:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{attachment.mime_type};base64,{attachment.data}"},
                }
            )
        return parts

    async def reset_session(self) -> None:
        self._history = []

    def set_history(self, messages: list[ChatMessage]) -> None:
        history: list[dict[str, Any]] = []
        for msg in messages:
            if msg.is_empty:
                continue
            if msg.role == Role.MODEL:
                history.append({"role": "assistant", "content": msg.content})
            else:
                history.append(
                    {"role": "user", "content": self._user_content(msg.content, msg.attachments)}
                )
        self._history = history
