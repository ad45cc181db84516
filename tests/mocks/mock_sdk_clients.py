"""Fake SDK clients for the stateful provider adapters.

These stand in for ``google.genai.Client`` and ``anthropic.AsyncAnthropic``
by exposing only the attributes the adapters touch.
"""

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any


async def _aiter(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


class FakeGeminiChat:
    """Chat handle recording what it was created with and sent."""

    def __init__(self, owner: "FakeGeminiClient", model: str, config: Any, history: list) -> None:
        self.owner = owner
        self.model = model
        self.config = config
        self.history = history
        self.sent: list[list[Any]] = []

    async def send_message_stream(self, parts: list[Any]) -> AsyncIterator[Any]:
        self.sent.append(parts)
        error = self.owner.stream_errors.pop(0) if self.owner.stream_errors else None
        return self._stream(error)

    async def _stream(self, error: Exception | None) -> AsyncIterator[Any]:
        if error is not None:
            raise error
        for text in self.owner.chunks:
            yield SimpleNamespace(text=text)
        if self.owner.mid_stream_error is not None:
            raise self.owner.mid_stream_error


class FakeGeminiClient:
    """Stand-in for ``genai.Client`` with scripted catalog and stream."""

    def __init__(self) -> None:
        self.models: list[Any] = []
        self.list_error: Exception | None = None
        self.probe_error: Exception | None = None
        self.chunks: list[str] = []
        # One entry per send; raised on first iteration of that send's stream
        self.stream_errors: list[Exception] = []
        self.mid_stream_error: Exception | None = None
        self.chats: list[FakeGeminiChat] = []
        self.probes: list[dict[str, Any]] = []
        self.aio = SimpleNamespace(
            chats=SimpleNamespace(create=self._create_chat),
            models=SimpleNamespace(list=self._list, generate_content=self._generate),
        )

    def _create_chat(
        self, *, model: str, config: Any = None, history: Any = None
    ) -> FakeGeminiChat:
        chat = FakeGeminiChat(self, model, config, list(history or []))
        self.chats.append(chat)
        return chat

    async def _list(self) -> AsyncIterator[Any]:
        if self.list_error is not None:
            raise self.list_error
        return _aiter(self.models)

    async def _generate(self, **kwargs: Any) -> Any:
        self.probes.append(kwargs)
        if self.probe_error is not None:
            raise self.probe_error
        return SimpleNamespace(text="p")


def gemini_model(
    name: str,
    actions: list[str] | None = None,
    display_name: str | None = None,
    output_token_limit: int | None = 8192,
) -> SimpleNamespace:
    return SimpleNamespace(
        name=f"models/{name}",
        display_name=display_name,
        description=None,
        supported_actions=["generateContent"] if actions is None else actions,
        output_token_limit=output_token_limit,
    )


class FakeAnthropicStream:
    """Async iterable of Messages API stream events."""

    def __init__(self, events: list[Any]) -> None:
        self._events = events
        self.closed = False

    def __aiter__(self) -> AsyncIterator[Any]:
        return _aiter(self._events)

    async def close(self) -> None:
        self.closed = True


class FakeAnthropicClient:
    """Stand-in for ``AsyncAnthropic`` with scripted catalog and stream."""

    def __init__(self) -> None:
        self.model_ids: list[str] = []
        self.list_error: Exception | None = None
        self.create_error: Exception | None = None
        self.events: list[Any] = []
        self.requests: list[dict[str, Any]] = []
        self.streams: list[FakeAnthropicStream] = []
        self.models = SimpleNamespace(list=self._list)
        self.messages = SimpleNamespace(create=self._create)

    async def _list(self) -> AsyncIterator[Any]:
        if self.list_error is not None:
            raise self.list_error
        for model_id in self.model_ids:
            yield SimpleNamespace(id=model_id, display_name=None)

    async def _create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        if self.create_error is not None:
            raise self.create_error
        if kwargs.get("stream"):
            stream = FakeAnthropicStream(list(self.events))
            self.streams.append(stream)
            return stream
        return SimpleNamespace(content=[])


def text_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="content_block_delta",
        delta=SimpleNamespace(type="text_delta", text=text),
    )


def thinking_event(thinking: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="content_block_delta",
        delta=SimpleNamespace(type="thinking_delta", thinking=thinking),
    )
