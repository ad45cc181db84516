"""Interface contracts for polychat.

This module exports all Protocol-based interfaces for dependency injection.
"""

from polychat.interfaces.provider import ProviderAdapter
from polychat.interfaces.storage import ConversationStore, FlatStore

__all__ = [
    "ConversationStore",
    "FlatStore",
    "ProviderAdapter",
]
