"""In-memory flat stores for testing."""

import asyncio

from polychat.models.chat import ConversationRecord


class InMemoryFlatStore:
    """Dict-backed FlatStore."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class InMemoryConversationStore:
    """Dict-backed ConversationStore that can be switched to failing."""

    def __init__(self) -> None:
        self.records: dict[str, ConversationRecord] = {}
        self.fail = False
        self.put_calls = 0
        self.put_delay = 0.0

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("primary store unavailable")

    async def get(self, conversation_id: str) -> ConversationRecord | None:
        self._check()
        return self.records.get(conversation_id)

    async def put(self, record: ConversationRecord) -> None:
        self._check()
        if self.put_delay:
            await asyncio.sleep(self.put_delay)
        self.put_calls += 1
        self.records[record.id] = record

    async def delete(self, conversation_id: str) -> None:
        self._check()
        self.records.pop(conversation_id, None)
