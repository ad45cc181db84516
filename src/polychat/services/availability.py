"""Model availability verification for polychat.

This module keeps track of which configured models can actually be
used. A refresh cycle fetches every provider's catalog, then probes a
subset of models concurrently and publishes each outcome as soon as it
arrives.

Overlapping cycles (rapid key edits) are resolved with a generation
counter: every cycle captures the generation it started with and stops
writing state as soon as a newer cycle has begun.
"""

import asyncio
import json
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pydantic import TypeAdapter, ValidationError

from polychat.config import ApiKeySettings
from polychat.errors import InvalidApiKeyError
from polychat.interfaces.storage import FlatStore
from polychat.logging import get_logger
from polychat.models.availability import AvailabilityResult, ErrorKind, RefreshMode, RefreshSummary
from polychat.models.provider import ModelOption, ProviderId
from polychat.services.dispatcher import UnifiedDispatcher
from polychat.services.error_classifier import classify_exception, error_message

__all__ = [
    "AvailabilityListener",
    "AvailabilityState",
    "ModelAvailabilityService",
    "ModelProber",
]

logger = get_logger(__name__)

CURRENT_MODEL_KEY = "ccs_current_model"
AVAILABLE_MODELS_KEY = "ccs_available_models"
UNAVAILABLE_MODELS_KEY = "ccs_unavailable_models"
UNAVAILABLE_ERRORS_KEY = "ccs_unavailable_model_errors"

PENDING_MESSAGE = "Verifying…"

_MODEL_LIST = TypeAdapter(list[ModelOption])


class AvailabilityState:
    """Shared, UI-facing availability state.

    Attributes:
        available_models: Merged catalog of every configured provider
        unavailable_models: Model id to error kind, for models not to attempt
        unavailable_errors: Model id to human-readable error message
        current_model: Selected model id
        previous_model: Last selected model known to work
        is_refreshing: Whether a refresh cycle is in progress
    """

    def __init__(self) -> None:
        self.available_models: list[ModelOption] = []
        self.unavailable_models: dict[str, ErrorKind] = {}
        self.unavailable_errors: dict[str, str] = {}
        self.current_model: str | None = None
        self.previous_model: str | None = None
        self.is_refreshing = False

    def model(self, model_id: str | None) -> ModelOption | None:
        """Get a catalog entry by id."""
        for option in self.available_models:
            if option.id == model_id:
                return option
        return None

    def is_listed(self, model_id: str | None) -> bool:
        return self.model(model_id) is not None

    def is_available(self, model_id: str | None) -> bool:
        """Check if a model is listed and not marked unavailable."""
        return self.is_listed(model_id) and model_id not in self.unavailable_models

    def mark_unavailable(self, model_id: str, kind: ErrorKind, message: str) -> None:
        self.unavailable_models[model_id] = kind
        self.unavailable_errors[model_id] = message

    def mark_available(self, model_id: str) -> bool:
        """Clear a model's unavailable entry.

        Returns:
            True if the model had been marked unavailable
        """
        self.unavailable_errors.pop(model_id, None)
        return self.unavailable_models.pop(model_id, None) is not None

    def select_model(self, model_id: str | None) -> None:
        """Select a model, remembering the outgoing one if it was usable."""
        if model_id == self.current_model:
            return
        if self.current_model and self.is_available(self.current_model):
            self.previous_model = self.current_model
        self.current_model = model_id

    def clear(self) -> None:
        """Forget every model."""
        self.available_models = []
        self.unavailable_models = {}
        self.unavailable_errors = {}
        self.current_model = None

    def load(self, flat: FlatStore) -> None:
        """Restore state saved by ``save``; unreadable entries are skipped."""
        self.current_model = flat.get_item(CURRENT_MODEL_KEY) or None

        raw = flat.get_item(AVAILABLE_MODELS_KEY)
        if raw:
            try:
                self.available_models = _MODEL_LIST.validate_json(raw)
            except ValidationError as e:
                logger.warning("stored_models_unreadable", error=str(e))

        for key, target, convert in (
            (UNAVAILABLE_MODELS_KEY, "unavailable_models", ErrorKind),
            (UNAVAILABLE_ERRORS_KEY, "unavailable_errors", str),
        ):
            raw = flat.get_item(key)
            if not raw:
                continue
            try:
                setattr(self, target, {k: convert(v) for k, v in json.loads(raw).items()})
            except (ValueError, AttributeError) as e:
                logger.warning("stored_availability_unreadable", key=key, error=str(e))

    def save(self, flat: FlatStore) -> None:
        if self.current_model:
            flat.set_item(CURRENT_MODEL_KEY, self.current_model)
        else:
            flat.remove_item(CURRENT_MODEL_KEY)
        flat.set_item(AVAILABLE_MODELS_KEY, _MODEL_LIST.dump_json(self.available_models).decode())
        flat.set_item(UNAVAILABLE_MODELS_KEY, json.dumps(self.unavailable_models))
        flat.set_item(UNAVAILABLE_ERRORS_KEY, json.dumps(self.unavailable_errors))


class ModelProber(Protocol):
    """Catalog and probe source, satisfied by ``UnifiedDispatcher``."""

    async def validate_key_and_get_models(
        self,
        provider: ProviderId,
        api_key: str,
    ) -> list[ModelOption]: ...

    async def check_model_availability(
        self,
        provider: ProviderId,
        model_id: str,
        api_key: str,
    ) -> AvailabilityResult: ...


AvailabilityListener = Callable[[AvailabilityState], Any]


class ModelAvailabilityService:
    """Refreshes and verifies the model catalog.

    Example:
        service = ModelAvailabilityService(state, ApiKeySettings())
        summary = await service.refresh(RefreshMode.FULL)
    """

    def __init__(
        self,
        state: AvailabilityState,
        api_keys: ApiKeySettings | Mapping[ProviderId, str] | None = None,
        prober: ModelProber | type[UnifiedDispatcher] = UnifiedDispatcher,
        *,
        flat_store: FlatStore | None = None,
        listeners: list[AvailabilityListener] | None = None,
    ) -> None:
        """Initialize service.

        Args:
            state: Shared availability state
            api_keys: Credentials per provider
            prober: Catalog/probe source
            flat_store: Optional store the state is saved to
            listeners: Callbacks invoked with the state on every change
        """
        self._state = state
        self._prober = prober
        self._flat_store = flat_store
        self._listeners: list[AvailabilityListener] = list(listeners or [])
        self._generation = 0
        self._api_keys: dict[ProviderId, str] = {}
        self.set_api_keys(api_keys or {})

    @property
    def state(self) -> AvailabilityState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def api_keys(self) -> dict[ProviderId, str]:
        return dict(self._api_keys)

    def set_api_keys(self, api_keys: ApiKeySettings | Mapping[ProviderId, str]) -> None:
        """Replace the credentials; takes effect on the next refresh."""
        if isinstance(api_keys, ApiKeySettings):
            api_keys = api_keys.configured()
        self._api_keys = {
            ProviderId(provider): key.strip()
            for provider, key in api_keys.items()
            if key and key.strip()
        }

    def add_listener(self, listener: AvailabilityListener) -> None:
        self._listeners.append(listener)

    def _publish(self) -> None:
        for listener in self._listeners:
            listener(self._state)

    def _save(self) -> None:
        if self._flat_store is None:
            return
        try:
            self._state.save(self._flat_store)
        except Exception as e:
            logger.warning("availability_save_failed", error=str(e))

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _needs_selection(self) -> bool:
        current = self._state.current_model
        if current is None or not self._state.is_listed(current):
            return True
        kind = self._state.unavailable_models.get(current)
        return kind is not None and kind is not ErrorKind.PENDING

    async def refresh(self, mode: RefreshMode = RefreshMode.SMART) -> RefreshSummary:
        """Run one refresh cycle.

        Args:
            mode: SMART probes new and previously failing models only,
                FULL probes every model

        Returns:
            Summary of the cycle; ``stale`` is set if a newer cycle
            superseded it before it finished
        """
        self._generation += 1
        generation = self._generation
        state = self._state

        previous_catalog = {m.id for m in state.available_models}
        previously_unavailable = set(state.unavailable_models)
        previously_usable = previous_catalog - previously_unavailable

        if not self._api_keys:
            state.clear()
            state.is_refreshing = False
            self._save()
            self._publish()
            logger.info("availability_cleared", reason="no api keys")
            return RefreshSummary(generation=generation)

        state.is_refreshing = True
        self._publish()

        keys = dict(self._api_keys)
        catalogs = await asyncio.gather(
            *(self._fetch_catalog(provider, key) for provider, key in keys.items())
        )
        if self._is_stale(generation):
            return RefreshSummary(generation=generation, stale=True)

        merged: list[ModelOption] = []
        seen: set[str] = set()
        for catalog in catalogs:
            for option in catalog:
                if option.id not in seen:
                    seen.add(option.id)
                    merged.append(option)

        state.available_models = merged
        for model_id in [m for m in state.unavailable_models if m not in seen]:
            state.mark_available(model_id)
        if state.current_model not in seen:
            state.current_model = None
        self._publish()

        if mode is RefreshMode.FULL:
            scope = list(merged)
        else:
            scope = [
                m for m in merged if m.id not in previous_catalog or m.id in previously_unavailable
            ]

        for option in scope:
            state.mark_unavailable(option.id, ErrorKind.PENDING, PENDING_MESSAGE)
        self._publish()

        auto_selected: str | None = None
        first_success: str | None = None

        async def verify(option: ModelOption) -> None:
            nonlocal auto_selected, first_success
            if self._is_stale(generation):
                return
            result = await self._probe(option, keys[option.provider])
            if self._is_stale(generation):
                return

            if result.available:
                state.mark_available(option.id)
                if first_success is None:
                    first_success = option.id
                candidate = option.id
            else:
                state.mark_unavailable(
                    option.id,
                    result.error_code or ErrorKind.GENERIC,
                    result.error or "",
                )
                candidate = first_success

            # First successful probe wins, once per cycle
            if auto_selected is None and candidate and self._needs_selection():
                state.select_model(candidate)
                auto_selected = candidate
                logger.info("model_auto_selected", model_id=candidate)
            self._publish()

        await asyncio.gather(*(verify(option) for option in scope))

        # Nothing probed may have succeeded while known-good models remain listed
        if auto_selected is None and not self._is_stale(generation) and self._needs_selection():
            candidate = next((m.id for m in merged if state.is_available(m.id)), None)
            if candidate is not None:
                state.select_model(candidate)
                auto_selected = candidate
                logger.info("model_auto_selected", model_id=candidate)
                self._publish()

        summary = RefreshSummary(
            generation=generation,
            total=len(merged),
            verified=len(scope),
            newly_available=[
                m.id for m in merged if state.is_available(m.id) and m.id not in previously_usable
            ],
            newly_unavailable=[
                m
                for m, kind in state.unavailable_models.items()
                if kind is not ErrorKind.PENDING and m not in previously_unavailable
            ],
            auto_selected=auto_selected,
            stale=self._is_stale(generation),
        )
        if summary.stale:
            return summary

        state.is_refreshing = False
        self._save()
        self._publish()
        logger.info(
            "availability_refreshed",
            generation=generation,
            mode=mode.value,
            total=summary.total,
            verified=summary.verified,
            unavailable=len(state.unavailable_models),
        )
        return summary

    async def _fetch_catalog(self, provider: ProviderId, api_key: str) -> list[ModelOption]:
        try:
            return await self._prober.validate_key_and_get_models(provider, api_key)
        except InvalidApiKeyError:
            logger.warning("invalid_api_key", provider=provider.value)
        except Exception as e:
            logger.warning("catalog_fetch_failed", provider=provider.value, error=str(e))
        return []

    async def _probe(self, option: ModelOption, api_key: str) -> AvailabilityResult:
        try:
            return await self._prober.check_model_availability(option.provider, option.id, api_key)
        except Exception as e:
            return AvailabilityResult(
                available=False,
                error=error_message(e),
                error_code=classify_exception(e),
            )

    # Live-send bookkeeping

    def mark_unavailable(self, model_id: str, kind: ErrorKind, message: str) -> None:
        self._state.mark_unavailable(model_id, kind, message)
        self._save()
        self._publish()

    def mark_available(self, model_id: str) -> bool:
        changed = self._state.mark_available(model_id)
        if changed:
            self._save()
            self._publish()
        return changed

    def select_model(self, model_id: str | None) -> None:
        self._state.select_model(model_id)
        self._save()
        self._publish()

    def fallback_to_previous_model(self) -> bool:
        """Switch back to the last model known to work.

        Returns:
            True if a fallback model was selected
        """
        state = self._state
        previous = state.previous_model
        if not previous or previous == state.current_model or not state.is_available(previous):
            return False
        logger.info("model_fallback", from_model=state.current_model, to_model=previous)
        self.select_model(previous)
        return True
