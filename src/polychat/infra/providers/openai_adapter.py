"""OpenAI chat adapter for polychat."""

from typing import Any, ClassVar

from polychat.infra.providers.openai_compatible import OpenAICompatibleAdapter
from polychat.infra.providers.registry import ProviderRegistry
from polychat.models.provider import ModelOption, ProviderId

__all__ = [
    "OpenAIAdapter",
    "is_openai_model_allowed",
]

_CHAT_PREFIXES = ("gpt-", "o1", "o3", "o4", "chatgpt-")
# Families that are listed by /models but are not served by chat/completions
_EXCLUDED_MARKERS = (
    "audio",
    "realtime",
    "tts",
    "transcribe",
    "search",
    "image",
    "embedding",
    "moderation",
    "instruct",
    "codex",
    "dall-e",
    "whisper",
)


def is_openai_model_allowed(model_id: str) -> bool:
    """Keep chat-completion models only."""
    model_id = model_id.lower()
    if not model_id.startswith(_CHAT_PREFIXES):
        return False
    return not any(marker in model_id for marker in _EXCLUDED_MARKERS)


@ProviderRegistry.register
class OpenAIAdapter(OpenAICompatibleAdapter):
    """OpenAI implementation of the provider adapter.

    Catalog sorted reverse-lexicographically so newer families
    (higher version numbers) come first.
    """

    provider_id: ClassVar[ProviderId] = ProviderId.OPENAI
    probe_token_param: ClassVar[str] = "max_completion_tokens"

    @property
    def base_url(self) -> str:
        return self._settings.openai_base_url

    def is_model_allowed(self, model_id: str) -> bool:
        return is_openai_model_allowed(model_id)

    def to_option(self, model: Any) -> ModelOption:
        # OpenAI does not return display names
        return ModelOption(
            id=model.id,
            name=model.id,
            description="OpenAI Model",
            provider=self.provider_id,
        )
