"""Configuration management for Storywire."""

import logging
import secrets
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


def _generate_dev_webhook_secret() -> str:
    """Generate a random signing secret for development use.

    Receivers cannot verify signatures made with it across restarts,
    which is acceptable outside production.

    Returns:
        A cryptographically secure random hex string (64 characters).
    """
    return secrets.token_hex(32)


class Settings(BaseSettings):
    """Storywire configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the STORYWIRE_ prefix. For example:
        STORYWIRE_QDRANT_URL=http://localhost:6333
        STORYWIRE_WEBHOOK_SECRET=<shared secret>

    Security Notes:
        - In production (STORYWIRE_ENV=production) the webhook secret is required
        - The secret is held as a SecretStr so it never appears in reprs or logs
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="storywire",
        description="Prefix for Qdrant collection names",
    )

    # Webhook delivery
    webhook_secret: SecretStr | None = Field(
        default=None,
        description=(
            "Shared secret for HMAC-SHA256 payload signatures. "
            "REQUIRED in production. In dev/test, a random secret is generated if not set."
        ),
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Hard timeout for a single delivery attempt",
    )
    webhook_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum delivery attempts per webhook event",
    )
    webhook_base_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=60000,
        description="Backoff before the second attempt (doubles after each failure)",
    )
    dispatch_max_concurrent: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum webhook events delivered concurrently",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # CORS Configuration
    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="List of allowed CORS origins. Use ['*'] for permissive mode (dev only).",
    )

    model_config = {
        "env_prefix": "STORYWIRE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def validate_webhook_secret(self) -> "Settings":
        """Resolve the signing secret once, at startup.

        - In production, a secret MUST be explicitly provided
        - In dev/test, a random secret is generated if not provided
        - An empty secret is rejected in every environment
        """
        if self.webhook_secret is not None and not self.webhook_secret.get_secret_value():
            raise ValueError("STORYWIRE_WEBHOOK_SECRET must not be empty")

        if self.webhook_secret is None:
            if self.env == "production":
                raise ValueError(
                    "STORYWIRE_WEBHOOK_SECRET must be set in production. "
                    'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
                )
            object.__setattr__(self, "webhook_secret", SecretStr(_generate_dev_webhook_secret()))
            logger.debug(
                "Generated random webhook secret for development (signatures change after restart)"
            )

        return self

    @property
    def effective_webhook_secret(self) -> str:
        """Get the signing secret as plain text.

        Raises:
            ValueError: If no secret is available (should not happen
                after validation).
        """
        if self.webhook_secret is None:
            raise ValueError("No webhook secret available")
        return self.webhook_secret.get_secret_value()


# Global settings instance
settings = Settings()
