"""Cooperative cancellation for streaming turns.

A token is created per send and shared with the adapter producing the
stream. Adapters poll it between chunks and stop yielding silently once
it is cancelled.
"""

__all__ = [
    "CancellationToken",
]


class CancellationToken:
    """One-shot cancellation flag.

    Example:
        token = CancellationToken()
        async for chunk in adapter.send_message_stream(..., signal=token):
            ...
        # elsewhere
        token.cancel("stopped")
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the token; later calls keep the first reason."""
        if not self._cancelled:
            self.reason = reason
            self._cancelled = True

    def __repr__(self) -> str:
        state = f"cancelled: {self.reason}" if self._cancelled else "active"
        return f"CancellationToken({state})"
