"""MongoDB client for polychat.

This module provides an async MongoDB client wrapper using Motor.
"""

from typing import TYPE_CHECKING, Any

from polychat.config import MongoSettings
from polychat.logging import get_logger
from polychat.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

__all__ = [
    "MongoClient",
]

logger = get_logger(__name__)

get_async_motor = lazy_import("motor.motor_asyncio", "AsyncIOMotorClient", package_hint="motor")


class MongoClient:
    """Async MongoDB client wrapper.

    Example:
        client = MongoClient(settings)
        await client.connect()

        await client.conversations.find_one({"id": "default"})

        await client.disconnect()
    """

    def __init__(self, settings: MongoSettings) -> None:
        """Initialize client with settings.

        Args:
            settings: MongoDB connection settings
        """
        self._settings = settings
        self._client = None
        self._db = None

    async def connect(self) -> None:
        """Initialize connection to MongoDB."""
        if self._client is not None:
            return
        AsyncIOMotorClient = get_async_motor()  # noqa: N806

        uri = self._settings.uri.get_secret_value()
        self._client = AsyncIOMotorClient(uri)
        self._db = self._client[self._settings.database]

        # Verify connection
        await self._client.admin.command("ping")
        logger.info(
            "connected_to_mongodb",
            database=self._settings.database,
        )

    async def disconnect(self) -> None:
        """Close connection to MongoDB."""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("disconnected_from_mongodb")

    @property
    def db(self) -> "AsyncIOMotorDatabase[dict[str, Any]]":
        """Get database instance.

        Raises:
            RuntimeError: If not connected
        """
        if self._db is None:
            raise RuntimeError("MongoClient not connected. Call connect() first.")
        return self._db

    def _collection(self, name: str) -> "AsyncIOMotorCollection[dict[str, Any]]":
        """Get collection with optional prefix."""
        full_name = f"{self._settings.collection_prefix}{name}"
        return self.db[full_name]

    @property
    def conversations(self) -> "AsyncIOMotorCollection[dict[str, Any]]":
        """Get conversations collection."""
        return self._collection("conversations")

    async def create_indexes(self) -> None:
        """Create indexes for all collections."""
        await self.conversations.create_index("id", unique=True)
        await self.conversations.create_index("updated_at")

        logger.info("created_mongodb_indexes")

    async def __aenter__(self) -> "MongoClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()
