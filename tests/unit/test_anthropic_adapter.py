"""Unit tests for the Anthropic adapter."""

import anthropic
import httpx
import pytest

from mocks.mock_sdk_clients import FakeAnthropicClient, text_event, thinking_event
from polychat.config import ProviderSettings
from polychat.errors import InvalidApiKeyError, ProviderStreamError
from polychat.infra.providers.anthropic_adapter import AnthropicAdapter
from polychat.models.availability import ErrorKind
from polychat.models.chat import Attachment, ChatMessage, Role
from polychat.utils.cancellation import CancellationToken

SYSTEM = "Be brief."
MODEL = "claude-3-5-haiku-latest"


def status_error(cls: type[anthropic.APIStatusError], status: int, message: str):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return cls(message, response=httpx.Response(status, request=request), body=None)


@pytest.fixture
def client() -> FakeAnthropicClient:
    return FakeAnthropicClient()


@pytest.fixture
def adapter(client: FakeAnthropicClient) -> AnthropicAdapter:
    settings = ProviderSettings(
        system_instruction=SYSTEM,
        anthropic_max_tokens=1024,
        _env_file=None,
    )
    return AnthropicAdapter(settings, client_factory=lambda key: client)


async def collect(adapter: AnthropicAdapter, message: str, **kwargs) -> list[str]:
    stream = adapter.send_message_stream(MODEL, "sk-ant-test", message, **kwargs)
    return [chunk async for chunk in stream]


class TestCatalog:
    """Tests for Claude model listing."""

    @pytest.mark.asyncio
    async def test_validate_key(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.model_ids = [
            "claude-3-5-haiku-20241022",
            "claude-sonnet-4-20250514",
            "claude-3-opus-20240229",
        ]

        models = await adapter.validate_key("sk-ant-test")

        assert [m.id for m in models] == [
            "claude-sonnet-4-20250514",
            "claude-3-opus-20240229",
            "claude-3-5-haiku-20241022",
        ]
        assert all(m.description == "Anthropic Model" for m in models)

    @pytest.mark.asyncio
    async def test_rejected_key_raises(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.list_error = status_error(anthropic.AuthenticationError, 401, "invalid x-api-key")
        with pytest.raises(InvalidApiKeyError):
            await adapter.validate_key("sk-ant-wrong")

    @pytest.mark.asyncio
    async def test_other_failure_yields_empty(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.list_error = status_error(anthropic.InternalServerError, 500, "Overloaded")
        assert await adapter.validate_key("sk-ant-test") == []


class TestProbe:
    """Tests for check_model_availability()."""

    @pytest.mark.asyncio
    async def test_probe_ok(self, adapter: AnthropicAdapter, client: FakeAnthropicClient) -> None:
        result = await adapter.check_model_availability(MODEL, "sk-ant-test")

        assert result.available is True
        assert client.requests[0]["max_tokens"] == 1

    @pytest.mark.asyncio
    async def test_probe_rate_limited(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.create_error = status_error(anthropic.RateLimitError, 429, "Number of requests")

        result = await adapter.check_model_availability(MODEL, "sk-ant-test")

        assert result.available is False
        assert result.error_code == ErrorKind.RATE_LIMITED


class TestStreaming:
    """Tests for send_message_stream()."""

    @pytest.mark.asyncio
    async def test_stream_and_history(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.events = [
            text_event("Hel"),
            text_event("lo"),
        ]

        assert await collect(adapter, "Hi") == ["Hel", "lo"]

        request = client.requests[0]
        assert request["system"] == SYSTEM
        assert request["max_tokens"] == 1024
        assert request["messages"] == [{"role": "user", "content": "Hi"}]
        assert adapter.history[-1] == {"role": "assistant", "content": "Hello"}
        assert client.streams[0].closed is True

    @pytest.mark.asyncio
    async def test_thinking_is_delimited(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.events = [thinking_event("Hmm."), text_event("Yes")]

        chunks = await collect(adapter, "Q")

        assert "".join(chunks) == "<think>Hmm.</think>Yes"

    @pytest.mark.asyncio
    async def test_cancellation(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.events = [text_event("A"), text_event("B")]
        token = CancellationToken()

        received = []
        async for chunk in adapter.send_message_stream(MODEL, "sk-ant-test", "Hi", signal=token):
            received.append(chunk)
            token.cancel()

        assert received == ["A"]
        assert client.streams[0].closed is True
        assert adapter.history[-1] == {"role": "assistant", "content": "A"}

    @pytest.mark.asyncio
    async def test_error_is_wrapped_and_empty_answer_skipped(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
    ) -> None:
        client.create_error = status_error(anthropic.RateLimitError, 429, "Rate limited")

        with pytest.raises(ProviderStreamError) as exc_info:
            await collect(adapter, "Hi")

        assert exc_info.value.status_code == 429
        assert adapter.history == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_image_blocks(
        self,
        adapter: AnthropicAdapter,
        client: FakeAnthropicClient,
        image_attachment: Attachment,
    ) -> None:
        client.events = [text_event("A pixel")]

        await collect(adapter, "What?", attachments=[image_attachment])

        content = client.requests[0]["messages"][-1]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/png"
        assert content[1] == {"type": "text", "text": "What?"}


class TestSessionHistory:
    """Tests for set_history()."""

    def test_set_history_skips_empty_model_turns(self, adapter: AnthropicAdapter) -> None:
        adapter.set_history(
            [
                ChatMessage(id="1", role=Role.USER, content="Hi", timestamp=1),
                ChatMessage(id="2", role=Role.MODEL, content="", timestamp=2),
                ChatMessage(id="3", role=Role.USER, content="Still there?", timestamp=3),
                ChatMessage(id="4", role=Role.MODEL, content="Yes", timestamp=4),
            ]
        )

        assert adapter.history == [
            {"role": "user", "content": "Hi"},
            {"role": "user", "content": "Still there?"},
            {"role": "assistant", "content": "Yes"},
        ]
