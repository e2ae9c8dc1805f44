"""
FastAPI Dependencies - Receipt validator wiring.

The validator is built once from settings and shared; tests replace it via
app.dependency_overrides.
"""

from app.config import Settings, settings
from app.models.apple_receipt import AppleReceiptConfig
from app.services.apple_receipt_validator import AppleReceiptValidator

_receipt_validator: AppleReceiptValidator | None = None


def build_receipt_config(app_settings: Settings) -> AppleReceiptConfig:
    """Build the immutable verifyReceipt config from application settings."""
    return AppleReceiptConfig(
        shared_secret=app_settings.APP_SHARED_SECRET,
        production_url=app_settings.apple_production_url,
        sandbox_url=app_settings.apple_sandbox_url,
        timeout_seconds=app_settings.apple_request_timeout,
    )


def get_receipt_validator() -> AppleReceiptValidator:
    """Get the shared receipt validator, creating it on first use."""
    global _receipt_validator

    if _receipt_validator is None:
        _receipt_validator = AppleReceiptValidator(build_receipt_config(settings))
    return _receipt_validator
