"""Application Settings - Environment-based configuration.

Uses Pydantic Settings for validation and type coercion.

Service base URLs have no defaults; a gateway built without its URL
fails with MissingConfigError.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from callflow.config.constants import FLOW


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API bind host")
    api_port: int = Field(default=8090, ge=1024, le=65535, description="API port")
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment name"
    )

    # Inbound authentication (telephony layer -> orchestrator)
    api_key: str | None = Field(
        default=None,
        description="API key for inbound webhooks (required in production)",
    )
    auth_enabled: bool = Field(
        default=True,
        description="Enable API authentication (auto-disabled in development if no key)",
    )

    # Outbound authentication (orchestrator -> services)
    service_auth_token: str | None = Field(
        default=None,
        description="Bearer token sent to every external service",
    )

    # External services
    flow_state_url: str | None = Field(
        default=None, description="Flow State Service base URL"
    )
    synthesis_url: str | None = Field(
        default=None, description="Speech Synthesis Service base URL"
    )
    telephony_url: str | None = Field(
        default=None, description="Telephony Control Service base URL"
    )
    recognition_url: str | None = Field(
        default=None,
        description="Speech Recognition Service base URL (defaults to telephony_url)",
    )
    gateway_timeout_s: float = Field(
        default=FLOW.GATEWAY_TIMEOUT_S,
        gt=0,
        le=120,
        description="Timeout applied to every external service call",
    )

    # Session Configuration
    max_concurrent_calls: int = Field(
        default=FLOW.MAX_CONCURRENT_CALLS, ge=1, le=10000,
        description="Maximum concurrently executing calls",
    )
    replace_existing_sessions: bool = Field(
        default=False,
        description="On duplicate start, end the old session with a warning instead of failing",
    )

    # Auto-continuation timing
    say_continue_delay_ms: int = Field(
        default=FLOW.SAY_CONTINUE_DELAY_MS, ge=0, le=60_000,
        description="Delay before auto-advancing after a Say node",
    )
    decision_continue_delay_ms: int = Field(
        default=FLOW.DECISION_CONTINUE_DELAY_MS, ge=0, le=60_000,
        description="Delay before auto-advancing after a Decision node",
    )
    end_hangup_delay_ms: int = Field(
        default=FLOW.END_HANGUP_DELAY_MS, ge=0, le=60_000,
        description="Delay before ending the call after an End node",
    )

    # Speech Configuration
    default_voice_id: str = Field(
        default=FLOW.DEFAULT_VOICE_ID, description="Voice used when a call specifies none"
    )
    default_voice_tier: Literal["standard", "premium"] = Field(
        default=FLOW.DEFAULT_VOICE_TIER,
        description="Voice quality tier used when a call specifies none",
    )
    premium_tts_provider: str = Field(
        default=FLOW.PREMIUM_TTS_PROVIDER, description="Synthesis provider for premium voices"
    )
    standard_tts_provider: str = Field(
        default=FLOW.STANDARD_TTS_PROVIDER, description="Synthesis provider for standard voices"
    )
    recognition_language: str = Field(
        default=FLOW.RECOGNITION_LANGUAGE, description="Language passed when arming recognition"
    )
    recognition_interim_results: bool = Field(
        default=True, description="Request interim recognition results"
    )

    # Observability
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    def model_post_init(self, __context) -> None:
        """Validate conditional requirements after model creation."""
        if self.environment == "production" and self.auth_enabled and not self.api_key:
            raise ValueError(
                "api_key is required when auth_enabled=true in production environment"
            )

    @property
    def effective_recognition_url(self) -> str | None:
        """Recognition is served by the telephony adapter unless overridden."""
        return self.recognition_url or self.telephony_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
