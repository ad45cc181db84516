"""Error classification for polychat.

Maps raw provider error text (and an optional HTTP status code) onto the
fixed ``ErrorKind`` taxonomy, so no other component inspects provider
error strings directly.
"""

import asyncio

from polychat.models.availability import ErrorKind

__all__ = [
    "classify",
    "classify_exception",
    "error_message",
    "is_cancellation",
    "status_code_of",
]

_RATE_LIMIT_MARKERS = (
    "rate",
    "quota",
    "tpm",
    "tokens per minute",
    "tokens-per-minute",
    "resource exhausted",
    "resource_exhausted",
)
_AUTH_MARKERS = (
    "restricted",
    "organization",
    "access denied",
    "not authorized",
    "permission",
    "org admin",
)
_UNSUPPORTED_MARKERS = (
    "not support",
    "invalid model",
    "unsupported",
    "not found",
    "not compatible",
)
_BILLING_MARKERS = ("billing", "payment", "upgrade", "subscription")
_CANCEL_MARKERS = ("aborted", "cancelled", "canceled")


def _mentions(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def classify(message: str | None, status_code: int | None = None) -> ErrorKind:
    """Classify an error message into a canonical error kind.

    Checks run in a fixed priority order; the first match wins, so a
    message matching several categories gets the earliest one.

    Args:
        message: Raw error text (matched case-insensitively)
        status_code: Optional HTTP status code

    Returns:
        The matching ErrorKind, GENERIC when nothing matches
    """
    text = (message or "").lower()

    if status_code == 429 or _mentions(text, _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if "terms" in text and "acceptance" in text:
        return ErrorKind.TERMS_REQUIRED
    if _mentions(text, _AUTH_MARKERS):
        return ErrorKind.AUTH_RESTRICTED
    if _mentions(text, _UNSUPPORTED_MARKERS):
        return ErrorKind.UNSUPPORTED
    if _mentions(text, _BILLING_MARKERS):
        return ErrorKind.BILLING
    if status_code == 400 or "invalid" in text:
        return ErrorKind.BAD_REQUEST
    return ErrorKind.GENERIC


def status_code_of(exc: BaseException) -> int | None:
    """Extract an HTTP status code from an SDK or polychat exception."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def error_message(exc: BaseException) -> str:
    """Best-effort human-readable message for an exception."""
    # openai/anthropic put the provider's text on ``message``
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__


def classify_exception(exc: BaseException) -> ErrorKind:
    """Classify an exception raised by a provider SDK or adapter."""
    return classify(error_message(exc), status_code_of(exc))


def is_cancellation(exc: BaseException) -> bool:
    """Whether an exception represents a user-initiated cancellation."""
    if isinstance(exc, asyncio.CancelledError):
        return True
    if type(exc).__name__ == "AbortError":
        return True
    return _mentions(str(exc).lower(), _CANCEL_MARKERS)
