"""Debounced conversation writes for polychat.

Streaming updates the message list many times per second. The writer
coalesces those updates into one write once the list has been quiet
for ``delay`` seconds, and decides cheaply whether a write is needed at
all by comparing the message count and last timestamp against what was
last saved.
"""

import asyncio
from collections.abc import Awaitable, Callable

from polychat.logging import get_logger
from polychat.models.chat import ChatMessage

__all__ = [
    "DebouncedWriter",
]

logger = get_logger(__name__)

Snapshot = tuple[int, int | None]


def _snapshot(messages: list[ChatMessage]) -> Snapshot:
    return len(messages), messages[-1].timestamp if messages else None


class DebouncedWriter:
    """Timer-based write scheduler, independent of any store.

    Nothing is written before ``mark_hydrated``, so an empty list seen
    during startup never overwrites the stored conversation.

    Example:
        writer = DebouncedWriter(persistence.save_messages, persistence.save_messages_sync)
        writer.mark_hydrated(loaded)
        writer.notify(messages)   # schedules a write in 2 seconds
        writer.flush()            # on teardown
    """

    def __init__(
        self,
        save: Callable[[list[ChatMessage]], Awaitable[None]],
        save_sync: Callable[[list[ChatMessage]], None],
        delay: float = 2.0,
    ) -> None:
        """Initialize writer.

        Args:
            save: Async write used when the timer fires
            save_sync: Blocking write used by ``flush``
            delay: Quiet period in seconds
        """
        self._save = save
        self._save_sync = save_sync
        self._delay = delay
        self._hydrated = False
        self._latest: list[ChatMessage] = []
        self._saved: Snapshot = (0, None)
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def pending(self) -> bool:
        """Whether a write is scheduled."""
        return self._handle is not None

    def mark_hydrated(self, messages: list[ChatMessage]) -> None:
        """Enable writes; ``messages`` is what storage currently holds."""
        self.cancel()
        self._hydrated = True
        self._latest = list(messages)
        self._saved = _snapshot(self._latest)

    def notify(self, messages: list[ChatMessage], *, force: bool = False) -> bool:
        """Report the current message list.

        Args:
            messages: Current conversation
            force: Schedule even if count and last timestamp are unchanged,
                for content-only edits such as a finished stream

        Returns:
            True if a write was (re)scheduled
        """
        if not self._hydrated:
            return False
        self._latest = list(messages)
        if not force and _snapshot(self._latest) == self._saved:
            return False

        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)
        return True

    def _fire(self) -> None:
        self._handle = None
        messages = self._latest
        self._task = asyncio.get_running_loop().create_task(self._write(messages))

    async def _write(self, messages: list[ChatMessage]) -> None:
        try:
            await self._save(messages)
        except Exception as e:
            logger.error("debounced_save_failed", error=str(e))
            return
        self._saved = _snapshot(messages)
        logger.debug("debounced_save_completed", message_count=len(messages))

    async def drain(self) -> None:
        """Wait for a write that has already started."""
        if self._task is not None:
            await self._task

    def cancel(self) -> None:
        """Drop the scheduled write, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Replace any scheduled write with an immediate blocking one."""
        self.cancel()
        if not self._hydrated:
            return
        self._save_sync(self._latest)
        self._saved = _snapshot(self._latest)
        logger.debug("messages_flushed", message_count=len(self._latest))
