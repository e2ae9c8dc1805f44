"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - The shared secret is validated at startup.
"""

import sys

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3000, validation_alias="PORT")
    api_title: str = "Aurora Receipt Relay"
    api_version: str = "0.1.0"
    api_description: str = "Validates App Store receipts and derives subscription status"

    # Secrets
    APP_SHARED_SECRET: str = ""  # App-specific shared secret from App Store Connect
    STRIPE_SECRET_KEY: str | None = None  # Reserved, not used for receipt validation

    # Apple verifyReceipt endpoints
    apple_production_url: str = "https://buy.itunes.apple.com/verifyReceipt"
    apple_sandbox_url: str = "https://sandbox.itunes.apple.com/verifyReceipt"
    apple_request_timeout: float = 10.0  # seconds, per outbound call

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "aurora-receipt-relay"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        Without the shared secret every verifyReceipt call for an
        auto-renewable subscription is rejected with 21004, so the app
        MUST NOT start.
        """
        errors: list[str] = []

        if not self.APP_SHARED_SECRET.strip():
            errors.append("APP_SHARED_SECRET is required but empty or missing")

        if self.apple_request_timeout <= 0:
            errors.append(
                f"APPLE_REQUEST_TIMEOUT must be positive, got: {self.apple_request_timeout}"
            )

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def missing_optional_secrets(self) -> list[str]:
        """Names of optional secrets that are not set."""
        missing = []
        if not self.STRIPE_SECRET_KEY:
            missing.append("STRIPE_SECRET_KEY")
        return missing

    @property
    def stripe_configured(self) -> bool:
        """Whether the reserved Stripe key is present."""
        return bool(self.STRIPE_SECRET_KEY)


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
