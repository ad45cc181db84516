"""Exception hierarchy for polychat."""

__all__ = [
    "InvalidApiKeyError",
    "MissingApiKeyError",
    "PolychatError",
    "ProviderNotImplementedError",
    "ProviderStreamError",
]


class PolychatError(Exception):
    """Base class for polychat errors."""


class InvalidApiKeyError(PolychatError):
    """The backend rejected the credential while listing models."""

    def __init__(self, provider: str, detail: str | None = None) -> None:
        self.provider = provider
        self.detail = detail
        super().__init__("Invalid API Key")


class MissingApiKeyError(PolychatError):
    """A send was attempted without a credential for the active provider."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"API Key missing for {provider}")


class ProviderNotImplementedError(PolychatError):
    """The dispatcher was operated with a provider that has no adapter.

    This indicates a setup bug, not a recoverable runtime condition.
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Provider '{provider}' not implemented")


class ProviderStreamError(PolychatError):
    """A backend failed while producing a chat turn.

    Carries the HTTP status code (when known) so the error classifier
    can use it without inspecting provider-specific exception types.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
