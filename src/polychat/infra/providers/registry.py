"""Provider adapter registry for polychat.

Dispatch from a provider id to its adapter always goes through this
lookup table, never through runtime type inspection.
"""

from typing import Any

from polychat.errors import ProviderNotImplementedError
from polychat.interfaces.provider import ProviderAdapter
from polychat.models.provider import ProviderId

__all__ = [
    "ProviderRegistry",
]


class ProviderRegistry:
    """Registry of adapter classes keyed by ``ProviderId``.

    Example:
        # Register an adapter (as decorator)
        @ProviderRegistry.register
        class MyAdapter:
            provider_id = ProviderId.GROQ
            ...

        # Create an adapter instance
        adapter = ProviderRegistry.create("groq")
    """

    _adapters: dict[ProviderId, type[ProviderAdapter]] = {}  # noqa: RUF012

    @classmethod
    def register(
        cls,
        adapter_cls: type[ProviderAdapter],
    ) -> type[ProviderAdapter]:
        """Register an adapter class under its ``provider_id``.

        Can be used as a decorator or called directly.

        Raises:
            ValueError: If the provider id is already registered
        """
        provider = ProviderId(adapter_cls.provider_id)
        if provider in cls._adapters:
            raise ValueError(f"Adapter already registered for provider: {provider}")
        cls._adapters[provider] = adapter_cls
        return adapter_cls

    @classmethod
    def get(cls, provider: ProviderId | str) -> type[ProviderAdapter]:
        """Get the adapter class for a provider.

        Raises:
            ProviderNotImplementedError: If no adapter is registered
        """
        try:
            return cls._adapters[ProviderId(provider)]
        except (KeyError, ValueError):
            raise ProviderNotImplementedError(str(provider)) from None

    @classmethod
    def create(cls, provider: ProviderId | str, **kwargs: Any) -> ProviderAdapter:
        """Create a fresh adapter instance for a provider."""
        return cls.get(provider)(**kwargs)

    @classmethod
    def providers(cls) -> list[ProviderId]:
        """List registered providers in registration order."""
        return list(cls._adapters)

    @classmethod
    def is_registered(cls, provider: ProviderId | str) -> bool:
        try:
            return ProviderId(provider) in cls._adapters
        except ValueError:
            return False
