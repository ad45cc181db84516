"""Redis infrastructure for polychat (fallback flat store)."""

from polychat.infra.redis.client import RedisFlatStore

__all__ = ["RedisFlatStore"]
