"""Service layer for polychat.

This module exports the main service entry points.
"""

# error_classifier has no polychat service dependencies and must load first:
# the provider adapters imported by the dispatcher depend on it
from polychat.services.error_classifier import classify, classify_exception, is_cancellation

from polychat.services.availability import AvailabilityState, ModelAvailabilityService
from polychat.services.chat_session import ChatSession, NoticeLevel
from polychat.services.debounce import DebouncedWriter
from polychat.services.dispatcher import UnifiedDispatcher
from polychat.services.persistence import (
    ConversationPersistence,
    restore_attachments,
    sanitize_messages,
)

__all__ = [
    "AvailabilityState",
    "ChatSession",
    "ConversationPersistence",
    "DebouncedWriter",
    "ModelAvailabilityService",
    "NoticeLevel",
    "UnifiedDispatcher",
    "classify",
    "classify_exception",
    "is_cancellation",
    "restore_attachments",
    "sanitize_messages",
]
