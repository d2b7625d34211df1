"""Library settings using Pydantic Settings.

Per-provider values live in `ProviderProfile`; these are the knobs shared by
every flow. Each can be overridden through `SOCIALLOGIN__*` environment
variables or a `.env` file, and again per flow through constructor arguments.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sociallogin.models.security import MAX_VERIFIER_LENGTH, MIN_VERIFIER_LENGTH


class SocialLoginSettings(BaseSettings):
    """Flow-wide defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SOCIALLOGIN__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    state_prefix: str = Field(
        default="auth_state:",
        description="Session key prefix for pending state tokens",
    )
    state_entropy_bytes: int = Field(
        default=16,
        ge=16,
        description="Random bytes per state token and nonce (hex doubles the length)",
    )
    pkce_verifier_length: int = Field(
        default=MAX_VERIFIER_LENGTH,
        ge=MIN_VERIFIER_LENGTH,
        le=MAX_VERIFIER_LENGTH,
        description="Length of generated PKCE code verifiers",
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for the default httpx transport",
    )


@lru_cache
def get_settings() -> SocialLoginSettings:
    return SocialLoginSettings()
