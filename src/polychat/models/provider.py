"""Provider and model catalog models for polychat."""

from enum import StrEnum

from pydantic import BaseModel, Field

__all__ = [
    "ModelOption",
    "ProviderId",
]


class ProviderId(StrEnum):
    """Closed set of supported backends.

    The value doubles as the lookup key for adapter dispatch
    and for per-provider API keys.
    """

    GOOGLE = "google"
    OPENAI = "openai"
    GROQ = "groq"
    ANTHROPIC = "anthropic"


class ModelOption(BaseModel, frozen=True):
    """One selectable backend model.

    Sourced from a live catalog fetch and regenerated wholesale on
    every refresh; only ``id`` carries identity across refreshes.

    Attributes:
        id: Backend model identifier used in requests
        name: Human-readable display name
        description: Short description for the model picker
        provider: Backend that serves the model
        output_token_limit: Output (or context) token limit when known
    """

    id: str
    name: str
    description: str = ""
    provider: ProviderId
    output_token_limit: int | None = Field(default=None)
