"""Configuration management for polychat.

This module provides typed configuration classes using pydantic-settings.
Configuration is loaded from environment variables with optional .env file support.
"""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from polychat.models.provider import ProviderId

__all__ = [
    "ApiKeySettings",
    "MongoSettings",
    "PolychatConfig",
    "ProviderSettings",
    "RedisSettings",
    "SessionSettings",
]

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a helpful AI assistant. You can analyze images and files. "
    "Be concise and accurate."
)


class ApiKeySettings(BaseSettings):
    """One credential per provider.

    Empty or missing keys mean the provider is not configured.
    """

    model_config = SettingsConfigDict(
        env_prefix="POLYCHAT_KEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    google: SecretStr | None = None
    openai: SecretStr | None = None
    groq: SecretStr | None = None
    anthropic: SecretStr | None = None

    def get(self, provider: ProviderId | str) -> str:
        """Return the plain key for a provider, or an empty string."""
        secret = getattr(self, str(provider), None)
        if secret is None:
            return ""
        return secret.get_secret_value().strip()

    def configured(self) -> dict[ProviderId, str]:
        """Return the providers that have a non-empty key, in declaration order."""
        return {
            provider: self.get(provider)
            for provider in ProviderId
            if self.get(provider)
        }


class ProviderSettings(BaseSettings):
    """Backend endpoints and request defaults."""

    model_config = SettingsConfigDict(
        env_prefix="POLYCHAT_PROVIDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_base_url: str = "https://api.openai.com/v1"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    anthropic_max_tokens: int = 4096
    request_timeout: float = 60.0


class MongoSettings(BaseSettings):
    """MongoDB connection settings for the primary conversation store."""

    model_config = SettingsConfigDict(
        env_prefix="POLYCHAT_MONGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    uri: SecretStr = SecretStr("mongodb://localhost:27017")
    database: str = "polychat"
    collection_prefix: str = ""


class RedisSettings(BaseSettings):
    """Redis settings for the synchronous flat fallback store."""

    model_config = SettingsConfigDict(
        env_prefix="POLYCHAT_REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = "redis://localhost:6379/0"
    key_prefix: str = ""


class SessionSettings(BaseSettings):
    """Conversation session behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="POLYCHAT_SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    conversation_id: str = "default"
    legacy_messages_key: str = "ccs_chat_messages"
    debounce_seconds: float = 2.0
    full_refresh_on_start: bool = False


class PolychatConfig(BaseSettings):
    """Main configuration aggregating all settings.

    Example usage:
        config = PolychatConfig()
        keys = config.api_keys.configured()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_keys: ApiKeySettings = ApiKeySettings()
    providers: ProviderSettings = ProviderSettings()
    mongo: MongoSettings = MongoSettings()
    redis: RedisSettings = RedisSettings()
    session: SessionSettings = SessionSettings()

    def section(self, settings_class: type[BaseSettings]) -> BaseSettings | None:
        """Return the configured section of the given settings class, if any."""
        for name in type(self).model_fields:
            value = getattr(self, name)
            if type(value) is settings_class:
                return value
        return None
