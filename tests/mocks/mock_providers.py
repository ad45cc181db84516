"""Scripted provider adapters and probers for testing."""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage
from polychat.models.provider import ModelOption, ProviderId
from polychat.utils.cancellation import CancellationToken


class ScriptedAdapter:
    """Adapter that streams a fixed list of chunks, then optionally raises."""

    def __init__(
        self,
        provider_id: ProviderId = ProviderId.GOOGLE,
        chunks: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.chunks = list(chunks or [])
        self.error = error
        self.before_chunk: Callable[[int], Any] | None = None
        self.history: list[tuple[str, str]] = []
        self.sent: list[dict[str, Any]] = []
        self.reset_calls = 0
        self.set_history_calls: list[list[ChatMessage]] = []

    async def validate_key(self, api_key: str) -> list[ModelOption]:
        return []

    async def check_model_availability(self, model_id: str, api_key: str) -> AvailabilityResult:
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
        self.sent.append({"model_id": model_id, "api_key": api_key, "message": message})
        produced: list[str] = []
        try:
            for index, chunk in enumerate(self.chunks):
                await asyncio.sleep(0)
                if signal is not None and signal.cancelled:
                    break
                if self.before_chunk is not None:
                    self.before_chunk(index)
                produced.append(chunk)
                yield chunk
            else:
                if self.error is not None:
                    raise self.error
        finally:
            self.history.append(("user", message))
            self.history.append(("model", "".join(produced)))

    async def reset_session(self) -> None:
        self.reset_calls += 1
        self.history = []

    def set_history(self, messages: list[ChatMessage]) -> None:
        self.set_history_calls.append(list(messages))
        self.history = [(m.role.value, m.content) for m in messages if not m.is_empty]


class ScriptedProber:
    """Catalog and probe source with scripted, optionally gated, outcomes.

    ``results`` maps a model id to a queue of outcomes, one per probe call;
    a model missing from it probes as available. A gate registered for a
    model holds its next probe until the gate is set.
    """

    def __init__(
        self,
        catalogs: dict[ProviderId, list[ModelOption] | Exception] | None = None,
        results: dict[str, list[AvailabilityResult]] | None = None,
    ) -> None:
        self.catalogs = dict(catalogs or {})
        self.results = {k: list(v) for k, v in (results or {}).items()}
        self.gates: dict[str, asyncio.Event] = {}
        self.catalog_calls: list[ProviderId] = []
        self.probe_calls: list[str] = []

    async def validate_key_and_get_models(
        self,
        provider: ProviderId,
        api_key: str,
    ) -> list[ModelOption]:
        self.catalog_calls.append(provider)
        catalog = self.catalogs.get(provider, [])
        if isinstance(catalog, Exception):
            raise catalog
        return list(catalog)

    async def check_model_availability(
        self,
        provider: ProviderId,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        self.probe_calls.append(model_id)
        queue = self.results.get(model_id)
        result = queue.pop(0) if queue else AvailabilityResult.ok()
        gate = self.gates.pop(model_id, None)
        if gate is not None:
            await gate.wait()
        return result


def model_option(model_id: str, provider: ProviderId = ProviderId.GROQ) -> ModelOption:
    return ModelOption(id=model_id, name=model_id, provider=provider)
