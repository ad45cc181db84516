"""Provider adapter interface for polychat.

This module defines the Protocol every backend adapter implements. The
rest of the system only talks to backends through this contract.
"""

from collections.abc import AsyncIterator
from typing import ClassVar, Protocol, runtime_checkable

from polychat.models.availability import AvailabilityResult
from polychat.models.chat import Attachment, ChatMessage
from polychat.models.provider import ModelOption, ProviderId
from polychat.utils.cancellation import CancellationToken

__all__ = [
    "ProviderAdapter",
]


@runtime_checkable
class ProviderAdapter(Protocol):
    """Contract for one LLM backend.

    An adapter owns the wire-protocol details of its backend (request
    shaping, stream decoding, catalog filtering) and keeps its own
    conversational history, independent from every other adapter.
    """

    provider_id: ClassVar[ProviderId]

    async def validate_key(self, api_key: str) -> list[ModelOption]:
        """List the models usable with a key.

        Args:
            api_key: Backend credential

        Returns:
            Filtered, sorted model options; empty on non-auth failures

        Raises:
            InvalidApiKeyError: If the backend rejects the credential
        """
        ...

    async def check_model_availability(
        self,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult:
        """Probe one model with a minimal real completion.

        Never raises; failures are reported through the result.
        """
        ...

    def send_message_stream(
        self,
        model_id: str,
        api_key: str,
        message: str,
        attachments: list[Attachment] | None = None,
        system_instruction: str | None = None,
        signal: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Stream one chat turn as text deltas.

        The sequence is single-pass. It ends silently once ``signal`` is
        cancelled, and in every case the user turn plus the concatenated
        deltas are appended to the adapter's history.
        """
        ...

    async def reset_session(self) -> None:
        """Forget all conversational history. Idempotent."""
        ...

    def set_history(self, messages: list[ChatMessage]) -> None:
        """Replace history with the native form of canonical messages."""
        ...
