"""Chat models for polychat.

These models represent the canonical conversation shape shared by the
session loop, the provider adapters and the persistence layer.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

__all__ = [
    "Attachment",
    "ChatMessage",
    "ConversationRecord",
    "Role",
]

_VISUAL_PREFIXES = ("image/", "video/")


class Role(StrEnum):
    """Author of a chat turn."""

    USER = "user"
    MODEL = "model"


class Attachment(BaseModel, frozen=True):
    """Binary-bearing attachment metadata.

    ``data`` is session-only: it lives in memory while the session runs
    and is never written to durable storage. After a reload only the
    thumbnail and metadata remain, signalled by ``is_active=False``.

    Attributes:
        mime_type: Media type of the original file
        data: Base64 payload of the original file (session-only)
        name: Original file name
        size: Original size in bytes
        thumbnail: Base64 (or data URL) preview
        duration: Media duration in seconds, for audio/video
        dimensions: Pixel dimensions as (width, height), for image/video
        is_active: Whether the original bytes can still be sent to a backend
        is_thumbnail: Whether the thumbnail is standing in for the original
    """

    mime_type: str
    data: str | None = None
    name: str | None = None
    size: int | None = None
    thumbnail: str | None = None
    duration: float | None = None
    dimensions: tuple[int, int] | None = None
    is_active: bool = True
    is_thumbnail: bool = False

    @property
    def is_visual(self) -> bool:
        """Image and video media have a usable thumbnail-only fallback."""
        return self.mime_type.lower().startswith(_VISUAL_PREFIXES)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def has_payload(self) -> bool:
        """Whether the original bytes are available to send to a backend."""
        return self.is_active and bool(self.data)


class ChatMessage(BaseModel, frozen=True):
    """One conversation turn.

    Streaming never mutates a message in place; the session replaces it
    with a ``model_copy`` carrying the longer content.

    Attributes:
        id: Unique, monotonic timestamp-derived identifier
        role: Author of the turn
        content: Text content
        timestamp: Creation time in epoch milliseconds
        is_error: Whether the turn represents an error notice
        attachments: Files attached to a user turn
    """

    id: str
    role: Role
    content: str = ""
    timestamp: int = Field(description="Epoch milliseconds")
    is_error: bool = False
    attachments: list[Attachment] | None = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    @property
    def is_empty(self) -> bool:
        """Check if the turn carries neither text nor attachments."""
        return not self.content and not self.has_attachments


class ConversationRecord(BaseModel, frozen=True):
    """Durable conversation snapshot, keyed by conversation id.

    Messages stored here have already been through the sanitizer and
    never carry attachment ``data``.
    """

    id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    updated_at: int = Field(description="Epoch milliseconds")
