"""Redis client for polychat.

This module provides the synchronous flat key-value store used as the
fallback persistence tier. It is deliberately blocking: the teardown
flush must complete before the process exits, without an event loop.
"""

from typing import TYPE_CHECKING, Any

from polychat.config import RedisSettings
from polychat.interfaces.storage import FlatStore
from polychat.logging import get_logger
from polychat.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from redis import Redis

__all__ = [
    "RedisFlatStore",
]

logger = get_logger(__name__)

get_sync_redis = lazy_import("redis", "Redis")


class RedisFlatStore(FlatStore):
    """Sync Redis implementation of FlatStore.

    Example:
        store = RedisFlatStore(settings)
        store.connect()
        store.set_item("ccs_current_model", "gpt-4o")
        value = store.get_item("ccs_current_model")
        store.disconnect()
    """

    def __init__(self, settings: RedisSettings, client: "Redis | None" = None) -> None:
        """Initialize store with settings.

        Args:
            settings: Redis connection settings
            client: Optional pre-built redis client
        """
        self._settings = settings
        self._redis = client

    def connect(self) -> None:
        """Initialize connection to Redis."""
        if self._redis is not None:
            return
        Redis = get_sync_redis()  # noqa: N806
        self._redis = Redis.from_url(self._settings.url, decode_responses=True)
        # Verify connection
        self._redis.ping()
        logger.info("connected_to_redis", url=self._settings.url)

    def disconnect(self) -> None:
        """Close connection to Redis."""
        if self._redis:
            self._redis.close()
            self._redis = None
            logger.info("disconnected_from_redis")

    @property
    def client(self) -> "Redis":
        """Get Redis client instance.

        Raises:
            RuntimeError: If not connected
        """
        if self._redis is None:
            raise RuntimeError("RedisFlatStore not connected. Call connect() first.")
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._settings.key_prefix}{key}"

    def get_item(self, key: str) -> str | None:
        """Get the raw value for a key."""
        return self.client.get(self._key(key))  # type: ignore[return-value]

    def set_item(self, key: str, value: str) -> None:
        """Set the raw value for a key."""
        self.client.set(self._key(key), value)

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        self.client.delete(self._key(key))

    def __enter__(self) -> "RedisFlatStore":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.disconnect()
