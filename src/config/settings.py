"""Application Settings - Environment-based configuration.

Uses Pydantic Settings for validation and type coercion.

Required variables fail startup if missing.
Conditional variables are required only when their parent feature is enabled.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.constants import GATEWAY


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
    api_port: int = Field(default=8080, ge=1024, le=65535, description="API port")
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment name"
    )
    app_version: str = Field(default="development", description="Release identifier")

    # Identity provider
    identity_backend: Literal["mock", "http"] = Field(
        default="mock", description="Session verification backend (mock for dev/tests)"
    )
    identity_api_url: str | None = Field(
        default=None, description="Identity provider API base URL"
    )
    identity_secret_key: str | None = Field(
        default=None, description="Identity provider secret key"
    )
    identity_timeout_s: float = Field(
        default=GATEWAY.IDENTITY_TIMEOUT_S,
        gt=0,
        le=30,
        description="Timeout for a single session verification",
    )
    session_cookie_name: str = Field(
        default=GATEWAY.SESSION_COOKIE_NAME, description="Session cookie name"
    )
    sign_in_url: str = Field(
        default=GATEWAY.SIGN_IN_URL, description="Where interactive clients sign in"
    )
    mock_session_tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Session token to user id map for the mock backend",
    )

    # Route tables
    public_routes: list[str] = Field(
        default_factory=lambda: list(GATEWAY.PUBLIC_ROUTES),
        description="Patterns that never require a session (health probes are always added)",
    )
    protected_routes: list[str] = Field(
        default_factory=lambda: list(GATEWAY.PROTECTED_ROUTES),
        description="Patterns that require a verified session",
    )
    unclassified_policy: Literal["allow", "deny"] = Field(
        default="allow",
        description="Decision for paths in neither table (allow = open by default)",
    )

    # Observability
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics")
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN (disabled if unset)")
    sentry_traces_sample_rate: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Trace sample rate (defaults to 0.1 in production, 1.0 elsewhere)",
    )

    @field_validator("sign_in_url")
    @classmethod
    def validate_sign_in_url(cls, v: str) -> str:
        """Sign-in URL must be an absolute path or an http(s) URL."""
        if not v.startswith(("/", "http://", "https://")):
            raise ValueError("sign_in_url must start with '/' or http(s)://")
        return v

    def model_post_init(self, __context) -> None:
        """Validate conditional requirements after model creation."""
        if self.identity_backend == "http":
            if not self.identity_api_url or not self.identity_secret_key:
                raise ValueError(
                    "identity_api_url and identity_secret_key are required "
                    "when identity_backend=http"
                )

        if self.environment == "production" and self.identity_backend == "mock":
            raise ValueError(
                "identity_backend=mock is not allowed in production environment"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
