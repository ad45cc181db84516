"""Public data models for polychat.

This module exports all public data transfer objects.
"""

from polychat.models.availability import (
    AvailabilityResult,
    ErrorKind,
    RefreshMode,
    RefreshSummary,
)
from polychat.models.chat import Attachment, ChatMessage, ConversationRecord, Role
from polychat.models.provider import ModelOption, ProviderId

__all__ = [
    "Attachment",
    "AvailabilityResult",
    "ChatMessage",
    "ConversationRecord",
    "ErrorKind",
    "ModelOption",
    "ProviderId",
    "RefreshMode",
    "RefreshSummary",
    "Role",
]
