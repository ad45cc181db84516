"""Utility helpers for polychat."""

from polychat.utils.cancellation import CancellationToken
from polychat.utils.ids import generate_message_id, now_ms

__all__ = [
    "CancellationToken",
    "generate_message_id",
    "now_ms",
]
