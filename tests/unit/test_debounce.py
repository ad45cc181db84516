"""Unit tests for the debounced conversation writer."""

import asyncio

import pytest

from polychat.models.chat import ChatMessage
from polychat.services.debounce import DebouncedWriter

DELAY = 0.01


class Recorder:
    """Collects async and sync writes."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.saves: list[list[ChatMessage]] = []
        self.sync_saves: list[list[ChatMessage]] = []

    async def save(self, messages: list[ChatMessage]) -> None:
        if self.fail:
            raise ConnectionError("store down")
        self.saves.append(messages)

    def save_sync(self, messages: list[ChatMessage]) -> None:
        self.sync_saves.append(messages)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def writer(recorder: Recorder) -> DebouncedWriter:
    return DebouncedWriter(recorder.save, recorder.save_sync, delay=DELAY)


async def settle(writer: DebouncedWriter) -> None:
    await asyncio.sleep(DELAY * 5)
    await writer.drain()


class TestDebouncedWriter:
    """Tests for DebouncedWriter."""

    @pytest.mark.asyncio
    async def test_nothing_written_before_hydration(
        self,
        writer: DebouncedWriter,
        recorder: Recorder,
        sample_messages: list[ChatMessage],
    ) -> None:
        assert writer.notify(sample_messages) is False
        writer.flush()
        await settle(writer)

        assert recorder.saves == []
        assert recorder.sync_saves == []

    @pytest.mark.asyncio
    async def test_updates_are_coalesced(
        self,
        writer: DebouncedWriter,
        recorder: Recorder,
        sample_messages: list[ChatMessage],
    ) -> None:
        writer.mark_hydrated([])

        assert writer.notify(sample_messages[:1]) is True
        assert writer.notify(sample_messages[:2]) is True
        assert writer.notify(sample_messages) is True
        assert writer.pending is True
        await settle(writer)

        assert recorder.saves == [sample_messages]
        assert writer.pending is False

    @pytest.mark.asyncio
    async def test_unchanged_list_is_not_rewritten(
        self,
        writer: DebouncedWriter,
        recorder: Recorder,
        sample_messages: list[ChatMessage],
    ) -> None:
        writer.mark_hydrated(sample_messages)

        assert writer.notify(list(sample_messages)) is False
        assert writer.notify(sample_messages, force=True) is True
        await settle(writer)

        assert len(recorder.saves) == 1

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_on_next_change(
        self,
        sample_messages: list[ChatMessage],
    ) -> None:
        recorder = Recorder(fail=True)
        writer = DebouncedWriter(recorder.save, recorder.save_sync, delay=DELAY)
        writer.mark_hydrated([])

        writer.notify(sample_messages)
        await settle(writer)
        recorder.fail = False

        assert writer.notify(sample_messages) is True
        await settle(writer)
        assert recorder.saves == [sample_messages]

    @pytest.mark.asyncio
    async def test_flush_replaces_scheduled_write(
        self,
        writer: DebouncedWriter,
        recorder: Recorder,
        sample_messages: list[ChatMessage],
    ) -> None:
        writer.mark_hydrated([])
        writer.notify(sample_messages)

        writer.flush()
        await settle(writer)

        assert recorder.sync_saves == [sample_messages]
        assert recorder.saves == []
        assert writer.notify(sample_messages) is False

    @pytest.mark.asyncio
    async def test_mark_hydrated_cancels_pending_write(
        self,
        writer: DebouncedWriter,
        recorder: Recorder,
        sample_messages: list[ChatMessage],
    ) -> None:
        writer.mark_hydrated(sample_messages)
        writer.notify(sample_messages[:1])

        writer.mark_hydrated([])
        await settle(writer)

        assert recorder.saves == []
        assert writer.is_hydrated is True
