"""Availability and error taxonomy models for polychat."""

from enum import StrEnum

from pydantic import BaseModel, Field

__all__ = [
    "AvailabilityResult",
    "ErrorKind",
    "RefreshMode",
    "RefreshSummary",
]


class ErrorKind(StrEnum):
    """Canonical error kinds shared by every provider adapter.

    ``PENDING`` is not produced by the classifier; it marks a model
    whose probe is still in flight.
    """

    RATE_LIMITED = "RateLimited"
    TERMS_REQUIRED = "TermsRequired"
    AUTH_RESTRICTED = "AuthRestricted"
    UNSUPPORTED = "Unsupported"
    BILLING = "Billing"
    BAD_REQUEST = "BadRequest"
    GENERIC = "Generic"
    PENDING = "Pending"

    @property
    def disables_model(self) -> bool:
        """Whether a live send failing with this kind disables the model."""
        return self is ErrorKind.RATE_LIMITED

    @property
    def user_notice(self) -> str:
        return _NOTICES[self]


_NOTICES: dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: "Oops! Rate limit exceeded (429). Please try again later.",
    ErrorKind.TERMS_REQUIRED: "This model requires accepting its terms in the provider console.",
    ErrorKind.AUTH_RESTRICTED: "Your API key or organization is not allowed to use this model.",
    ErrorKind.UNSUPPORTED: "This model does not support this kind of request.",
    ErrorKind.BILLING: "This model requires a paid plan or billing setup.",
    ErrorKind.BAD_REQUEST: "Oops! Invalid request (400). Please check your input.",
    ErrorKind.GENERIC: "Something went wrong while talking to the model.",
    ErrorKind.PENDING: "Verifying model availability...",
}


class AvailabilityResult(BaseModel, frozen=True):
    """Outcome of a single-model probe."""

    available: bool
    error: str | None = None
    error_code: ErrorKind | None = None

    @classmethod
    def ok(cls) -> "AvailabilityResult":
        return cls(available=True)


class RefreshMode(StrEnum):
    """Verification scope for a refresh cycle.

    SMART probes only new or previously failing models,
    FULL probes every model in the catalog.
    """

    SMART = "smart"
    FULL = "full"


class RefreshSummary(BaseModel, frozen=True):
    """User-facing summary of one refresh cycle.

    Attributes:
        generation: Refresh generation the summary belongs to
        total: Models in the merged catalog
        verified: Models probed in this cycle
        newly_available: Models that became available in this cycle
        newly_unavailable: Models that stopped being available in this cycle
        auto_selected: Model auto-selected by this cycle, if any
        stale: True if a newer cycle superseded this one
    """

    generation: int
    total: int = 0
    verified: int = 0
    newly_available: list[str] = Field(default_factory=list)
    newly_unavailable: list[str] = Field(default_factory=list)
    auto_selected: str | None = None
    stale: bool = False
