"""Unit tests for the MongoDB and Redis store implementations."""

from unittest.mock import MagicMock

import pytest

from mocks.mock_mongo import MockMongoClient
from polychat.config import RedisSettings
from polychat.infra.mongo.repositories import MongoConversationStore
from polychat.infra.redis.client import RedisFlatStore
from polychat.models.chat import ChatMessage, ConversationRecord
from polychat.services.persistence import sanitize_messages


class FakeRedis:
    """Dict-backed subset of the sync redis client."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.closed = False

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> bool:
        self.data[key] = value
        return True

    def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0

    def close(self) -> None:
        self.closed = True


class TestMongoConversationStore:
    """Tests for MongoConversationStore."""

    @pytest.mark.asyncio
    async def test_put_get_delete(self, sample_messages: list[ChatMessage]) -> None:
        client = MockMongoClient()
        store = MongoConversationStore(client)  # type: ignore[arg-type]
        record = ConversationRecord(
            id="default",
            messages=sanitize_messages(sample_messages),
            updated_at=1704067300000,
        )

        await store.put(record)
        loaded = await store.get("default")

        assert loaded == record
        doc = client["conversations"]._documents["default"]
        assert "data" not in doc["messages"][2]["attachments"][0]
        assert "attachments" not in doc["messages"][0]

        await store.delete("default")
        assert await store.get("default") is None

    @pytest.mark.asyncio
    async def test_put_replaces_whole_document(self, sample_messages: list[ChatMessage]) -> None:
        store = MongoConversationStore(MockMongoClient())  # type: ignore[arg-type]
        await store.put(ConversationRecord(id="c1", messages=sample_messages[:1], updated_at=1))
        await store.put(ConversationRecord(id="c1", messages=sample_messages[:2], updated_at=2))

        loaded = await store.get("c1")

        assert loaded is not None
        assert len(loaded.messages) == 2
        assert loaded.updated_at == 2

    @pytest.mark.asyncio
    async def test_failures_propagate(self) -> None:
        client = MockMongoClient()
        client.fail = True
        store = MongoConversationStore(client)  # type: ignore[arg-type]

        with pytest.raises(ConnectionError):
            await store.get("default")


class TestRedisFlatStore:
    """Tests for RedisFlatStore."""

    def test_items_use_key_prefix(self) -> None:
        redis = FakeRedis()
        store = RedisFlatStore(RedisSettings(key_prefix="polychat:", _env_file=None), redis)

        store.set_item("ccs_current_model", "gpt-4o")

        assert redis.data == {"polychat:ccs_current_model": "gpt-4o"}
        assert store.get_item("ccs_current_model") == "gpt-4o"
        store.remove_item("ccs_current_model")
        assert store.get_item("ccs_current_model") is None

    def test_not_connected(self) -> None:
        store = RedisFlatStore(RedisSettings(_env_file=None))
        with pytest.raises(RuntimeError, match="not connected"):
            store.get_item("key")

    def test_context_manager_closes_client(self) -> None:
        redis = FakeRedis()
        with RedisFlatStore(RedisSettings(_env_file=None), redis) as store:
            store.set_item("k", "v")

        assert redis.closed is True
        with pytest.raises(RuntimeError):
            store.get_item("k")

    def test_connect_uses_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        redis_cls = MagicMock()
        monkeypatch.setattr(
            "polychat.infra.redis.client.get_sync_redis",
            lambda: redis_cls,
        )
        store = RedisFlatStore(RedisSettings(url="redis://cache:6379/2", _env_file=None))

        store.connect()

        redis_cls.from_url.assert_called_once_with("redis://cache:6379/2", decode_responses=True)
        redis_cls.from_url.return_value.ping.assert_called_once()
