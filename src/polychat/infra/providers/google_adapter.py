"""Google Gemini chat adapter for polychat.

Gemini is driven through the ``google-genai`` SDK, which keeps a
stateful chat handle. The adapter keeps its own authoritative history
and rebuilds the handle from it whenever the model, credential or
system instruction changes, or when the handle may have diverged
(history replaced, session reset, stream abandoned part-way).
"""

import base64
import binascii
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any, ClassVar

from google import genai
from google.genai import errors, types

from polychat.config import ProviderSettings
from polychat.errors import InvalidApiKeyError, ProviderStreamError
from polychat.infra.providers.registry import ProviderRegistry
from polychat.logging import get_logger
from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.models.provider import ModelOption, ProviderId
from polychat.services.error_classifier import classify_exception, error_message
from polychat.utils.cancellation import CancellationToken

__all__ = [
    "GoogleAdapter",
    "is_google_model_allowed",
    "sort_google_models",
]

logger = get_logger(__name__)

_MODEL_PREFIX = "models/"
_GENERATE_ACTION = "generateContent"
_AUTH_FAILURE_CODES = (401, 403)
_INVALID_KEY_MARKER = "api key not valid"


def _is_auth_failure(exc: errors.APIError) -> bool:
    if exc.code in _AUTH_FAILURE_CODES:
        return True
    return exc.code == 400 and _INVALID_KEY_MARKER in (error_message(exc) or "").lower()


def is_google_model_allowed(model: Any) -> bool:
    """Keep models that can generate content."""
    return _GENERATE_ACTION in (getattr(model, "supported_actions", None) or [])


def sort_google_models(options: list[ModelOption]) -> list[ModelOption]:
    """Sort ``latest`` aliases first, then reverse-lexicographic by id."""
    ordered = sorted(options, key=lambda option: option.id, reverse=True)
    return sorted(ordered, key=lambda option: "latest" not in option.id.lower())


def _rejects_system_instruction(exc: errors.APIError) -> bool:
    text = (error_message(exc) or "").lower()
    mentions_instruction = "developer instruction" in text or "system instruction" in text
    refused = "not enabled" in text or "not support" in text
    return mentions_instruction and refused


async def _prepend(first: Any, rest: AsyncIterator[Any]) -> AsyncIterator[Any]:
    if first is not None:
        yield first
    async for item in rest:
        yield item


@ProviderRegistry.register
class GoogleAdapter:
    """Google implementation of the provider adapter.

    Example:
        adapter = GoogleAdapter()
        models = await adapter.validate_key(key)
        async for text in adapter.send_message_stream(models[0].id, key, "Hi"):
            print(text, end="")
    """

    provider_id: ClassVar[ProviderId] = ProviderId.GOOGLE

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        *,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            settings: Provider settings (default system instruction)
            client_factory: Builds an SDK client from an API key
        """
        self._settings = settings or ProviderSettings()
        self._client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._client: Any = None
        self._client_key: str | None = None
        self._chat: Any = None
        self._chat_model: str | None = None
        self._chat_instruction: str | None = None
        self._history: list[types.Content] = []
        # Models that refused a system instruction once; never send them one again
        self._instruction_free_models: set[str] = set()

    @property
    def history(self) -> list[types.Content]:
        return list(self._history)

    def _client_for(self, api_key: str) -> Any:
        if self._client is None or self._client_key != api_key:
            self._client = self._client_factory(api_key)
            self._client_key = api_key
            self._chat = None
        return self._client

    def _chat_for(self, model_id: str, instruction: str | None) -> Any:
        if (
            self._chat is not None
            and self._chat_model == model_id
            and self._chat_instruction == instruction
        ):
            return self._chat

        config = None
        if instruction:
            config = types.GenerateContentConfig(system_instruction=instruction)
        self._chat = self._client.aio.chats.create(
            model=model_id,
            config=config,
            history=list(self._history),
        )
        self._chat_model = model_id
        self._chat_instruction = instruction
        logger.debug(
            "google_chat_created",
            model_id=model_id,
            history_turns=len(self._history),
            with_instruction=instruction is not None,
        )
        return self._chat

    async def validate_key(self, api_key: str) -> list[ModelOption]:
        """List generate-capable Gemini models for a key."""
        api_key = api_key.strip()
        if not api_key:
            return []

        options: list[ModelOption] = []
        try:
            client = self._client_factory(api_key)
            async for model in await client.aio.models.list():
                if not is_google_model_allowed(model):
                    continue
                model_id = model.name.removeprefix(_MODEL_PREFIX)
                options.append(
                    ModelOption(
                        id=model_id,
                        name=model.display_name or model_id,
                        description=model.description or "Google Gemini Model",
                        provider=self.provider_id,
                        output_token_limit=model.output_token_limit,
                    )
                )
        except errors.APIError as e:
            if _is_auth_failure(e):
                raise InvalidApiKeyError(self.provider_id, error_message(e)) from e
            logger.warning("model_listing_failed", provider=self.provider_id.value, error=str(e))
            return []
        except Exception as e:
            logger.warning("model_listing_failed", provider=self.provider_id.value, error=str(e))
            return []

        return sort_google_models(options)

    async def check_model_availability(
        self,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        """Probe a model with a 1-token generation."""
        try:
            client = self._client_factory(api_key.strip())
            await client.aio.models.generate_content(
                model=model_id,
                contents="ping",
                config=types.GenerateContentConfig(max_output_tokens=1),
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

    async def _start_stream(
        self,
        model_id: str,
        parts: list[types.Part],
        instruction: str | None,
    ) -> tuple[Any, AsyncIterator[Any]]:
        """Open a stream and pull its first chunk.

        The request is only issued on first iteration, so that is where
        a refused system instruction surfaces. In that case the handle is
        rebuilt without the instruction and the turn retried once.
        """
        if model_id in self._instruction_free_models:
            instruction = None

        while True:
            chat = self._chat_for(model_id, instruction)
            iterator = aiter(await chat.send_message_stream(parts))
            try:
                return await anext(iterator), iterator
            except StopAsyncIteration:
                return None, iterator
            except errors.APIError as e:
                if instruction is None or not _rejects_system_instruction(e):
                    raise
                logger.info("system_instruction_rejected", model_id=model_id)
                self._instruction_free_models.add(model_id)
                self._chat = None
                instruction = None

    async def send_message_stream(
        self,
        model_id: str,
        api_key: str,
        message: str,
        attachments: list[Attachment] | None = None,
        system_instruction: str | None = None,
        signal: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Stream one chat turn through the stateful chat handle."""
        instruction = system_instruction or self._settings.system_instruction or None
        parts = self._user_parts(message, attachments)
        produced: list[str] = []
        finished = False
        try:
            self._client_for(api_key.strip())
            try:
                first, rest = await self._start_stream(model_id, parts, instruction)
                async for chunk in _prepend(first, rest):
                    if signal is not None and signal.cancelled:
                        break
                    text = chunk.text
                    if text:
                        produced.append(text)
                        yield text
                else:
                    finished = True
            except errors.APIError as e:
                raise ProviderStreamError(error_message(e), e.code) from e
        finally:
            self._history.append(types.Content(role="user", parts=parts))
            answer = "".join(produced)
            # Gemini rejects empty parts, so an empty answer is not recorded
            if answer:
                self._history.append(
                    types.Content(role="model", parts=[types.Part.from_text(text=answer)])
                )
            if not finished:
                # The SDK only records a turn once its stream is exhausted
                self._chat = None

    def _user_parts(
        self,
        message: str,
        attachments: Iterable[Attachment] | None,
    ) -> list[types.Part]:
        parts: list[types.Part] = []
        for attachment in attachments or ():
            if not attachment.has_payload:
                continue
            try:
                payload = base64.b64decode(attachment.data or "", validate=True)
            except (binascii.Error, ValueError):
                logger.warning("attachment_not_base64", name=attachment.name)
                continue
            parts.append(types.Part.from_bytes(data=payload, mime_type=attachment.mime_type))
        if message or not parts:
            parts.append(types.Part.from_text(text=message))
        return parts

    async def reset_session(self) -> None:
        self._history = []
        self._chat = None
        self._chat_model = None

    def set_history(self, messages: list[ChatMessage]) -> None:
        history: list[types.Content] = []
        for msg in messages:
            if msg.is_empty:
                continue
            if msg.role == Role.MODEL:
                if msg.content:
                    history.append(
                        types.Content(role="model", parts=[types.Part.from_text(text=msg.content)])
                    )
            else:
                history.append(
                    types.Content(role="user", parts=self._user_parts(msg.content, msg.attachments))
                )
        self._history = history
        self._chat = None
