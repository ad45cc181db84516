"""Groq chat adapter for polychat.

Groq exposes an OpenAI-compatible API under ``/openai/v1``. Its catalog
mixes text, speech and guardrail models; only text models are kept so
new families show up without code changes.
"""

from typing import Any, ClassVar

from polychat.infra.providers.openai_compatible import OpenAICompatibleAdapter
from polychat.infra.providers.registry import ProviderRegistry
from polychat.models.provider import ModelOption, ProviderId

__all__ = [
    "GroqAdapter",
    "format_groq_model_name",
]

_EXCLUDED_MARKERS = ("whisper", "tts", "guard")
DEFAULT_CONTEXT_WINDOW = 8192

_WORD_NAMES = {
    "llama": "Llama",
    "llama3": "Llama",
    "mixtral": "Mixtral",
    "gemma": "Gemma",
    "gemma2": "Gemma 2",
    "deepseek": "DeepSeek",
    "qwen": "Qwen",
}


def format_groq_model_name(model_id: str) -> str:
    """Prettify a Groq model id.

    ``llama-3.1-8b-instant`` becomes ``Llama 3.1 8b Instant``. Any
    organisation prefix (``meta-llama/``) is dropped.
    """
    base = model_id.rsplit("/", 1)[-1]
    words = []
    for part in base.split("-"):
        if not part:
            continue
        words.append(_WORD_NAMES.get(part.lower(), part[:1].upper() + part[1:]))
    return " ".join(words)


@ProviderRegistry.register
class GroqAdapter(OpenAICompatibleAdapter):
    """Groq implementation of the provider adapter."""

    provider_id: ClassVar[ProviderId] = ProviderId.GROQ

    @property
    def base_url(self) -> str:
        return self._settings.groq_base_url

    def is_model_allowed(self, model_id: str) -> bool:
        model_id = model_id.lower()
        return not any(marker in model_id for marker in _EXCLUDED_MARKERS)

    def to_option(self, model: Any) -> ModelOption:
        context_window = getattr(model, "context_window", None)
        return ModelOption(
            id=model.id,
            name=format_groq_model_name(model.id),
            description=f"Groq - {model.id}",
            provider=self.provider_id,
            output_token_limit=context_window or DEFAULT_CONTEXT_WINDOW,
        )

    def sort_options(self, options: list[ModelOption]) -> list[ModelOption]:
        return sorted(options, key=lambda option: option.id)
