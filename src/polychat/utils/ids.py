"""Identifier and clock helpers for polychat.

Message identifiers are derived from a millisecond clock that never
repeats or goes backwards within a process, so ids double as a stable
chronological sort key.
"""

import threading
import time

__all__ = [
    "generate_message_id",
    "now_ms",
]

_lock = threading.Lock()
_last_issued = 0


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def generate_message_id() -> str:
    """Generate a unique, strictly increasing message id.

    Two calls within the same millisecond still produce distinct ids:
    the second is bumped one past the first.

    Returns:
        Decimal string of an epoch-millisecond value
    """
    global _last_issued
    with _lock:
        candidate = now_ms()
        if candidate <= _last_issued:
            candidate = _last_issued + 1
        _last_issued = candidate
        return str(candidate)
