"""Deferred imports for storage drivers.

The Mongo and Redis drivers are only loaded when a store is actually
connected, so importing polychat stays cheap for callers that bring
their own stores.
"""

from collections.abc import Callable
from functools import cache
from importlib import import_module

__all__ = [
    "lazy_import",
]


def lazy_import(
    module_name: str,
    attribute: str | None = None,
    *,
    package_hint: str | None = None,
) -> Callable[[], object]:
    """Return a loader that imports a module (or one of its attributes) on first call.

    Args:
        module_name: Dotted module path to import
        attribute: Optional attribute to fetch from the module
        package_hint: Distribution name shown in the error when the import fails

    Returns:
        Zero-argument callable returning the module or attribute
    """

    @cache
    def _load() -> object:
        try:
            module = import_module(module_name)
        except ImportError as e:
            hint = package_hint or module_name.split(".")[0]
            raise ImportError(
                f"{module_name} is required for this store; install '{hint}'"
            ) from e
        return getattr(module, attribute) if attribute else module

    return _load
