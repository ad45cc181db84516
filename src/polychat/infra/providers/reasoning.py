"""Inline delimiting of model reasoning output.

Some backends stream chain-of-thought on a side channel next to the
answer. It is folded into the text stream between ``<think>`` and
``</think>`` so consumers can separate it without protocol support.
"""

__all__ = [
    "THINK_CLOSE",
    "THINK_OPEN",
    "ThinkTagger",
]

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


class ThinkTagger:
    """Merge reasoning and answer deltas into one delimited text stream.

    The opening tag is emitted with the first reasoning delta, the
    closing tag before the first answer delta that follows reasoning
    (or by ``close()`` if the stream ends while reasoning).
    """

    def __init__(self) -> None:
        self._open = False

    def feed(self, reasoning: str | None, content: str | None) -> str:
        """Return the text to emit for one streamed delta."""
        parts: list[str] = []
        if reasoning:
            if not self._open:
                parts.append(THINK_OPEN)
                self._open = True
            parts.append(reasoning)
        if content:
            if self._open:
                parts.append(THINK_CLOSE)
                self._open = False
            parts.append(content)
        return "".join(parts)

    def close(self) -> str:
        """Return the closing tag if reasoning is still open."""
        if self._open:
            self._open = False
            return THINK_CLOSE
        return ""
