"""Configuration management for AIO Pulse Core."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Text-generation providers (blank means not configured)
    openrouter_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    cerebras_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Per-provider request timeouts in seconds
    openrouter_timeout: float = Field(default=45.0)  # online models search the web
    groq_timeout: float = Field(default=30.0)
    cerebras_timeout: float = Field(default=20.0)
    gemini_timeout: float = Field(default=30.0)

    # Transactional mail (Resend)
    resend_api_key: Optional[str] = None
    resend_from_email: str = Field(default="alerts@aio-pulse.com")
    email_timeout: float = Field(default=10.0)

    # Outbound webhooks
    webhook_timeout: float = Field(default=5.0)

    # Web
    app_url: str = Field(
        default="https://aio-pulse.com",
        description="Public dashboard URL used for deep links and provider referer",
    )

    # Monitoring pipeline
    analysis_response_max_chars: int = Field(default=3000)
    response_text_max_chars: int = Field(default=4000)

    # Rate limiting
    rate_limit_requests: int = Field(default=20)
    rate_limit_window_ms: int = Field(default=60_000)
    rate_limit_sweep_seconds: float = Field(default=300.0)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    @field_validator(
        "openrouter_api_key",
        "groq_api_key",
        "cerebras_api_key",
        "gemini_api_key",
        "resend_api_key",
    )
    @classmethod
    def blank_key_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("rate_limit_requests", "rate_limit_window_ms")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("rate limit values must be positive")
        return v

    def missing_provider_keys(self) -> list[str]:
        """Names of text-generation providers without a credential."""
        keys = {
            "openrouter": self.openrouter_api_key,
            "groq": self.groq_api_key,
            "cerebras": self.cerebras_api_key,
            "gemini": self.gemini_api_key,
        }
        return [name for name, key in keys.items() if not key]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
