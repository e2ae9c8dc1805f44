"""
Apple receipt domain models - Immutable dataclasses for receipt verification.

NO DICTIONARIES - All data uses strongly typed models. The only raw JSON
kept is the transaction passthrough echoed back to the client.

Apple's legacy verifyReceipt endpoint takes a base64 receipt plus the app's
shared secret and answers with a numeric status and the receipt's
transaction history.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

# Status codes from
# https://developer.apple.com/documentation/appstorereceipts/status
STATUS_OK = 0
STATUS_SANDBOX_RECEIPT = 21007
STATUS_PRODUCTION_RECEIPT = 21008

APPLE_STATUS_MESSAGES: dict[int, str] = {
    21000: "The App Store could not read the JSON object you provided.",
    21002: "The data in the receipt-data property was malformed or missing.",
    21003: "The receipt could not be authenticated.",
    21004: "The shared secret you provided does not match the one on file.",
    21005: "The receipt server is not currently available.",
    21006: "The receipt is valid, but the subscription has expired.",
    21007: "This receipt is from the test environment. Retry against the sandbox server.",
    21008: "This receipt is from the production environment. "
    "Retry against the production server.",
}

UNKNOWN_STATUS_MESSAGE = "Apple receipt validation failed with unknown status."


def describe_status(status: int) -> str:
    """Map a verifyReceipt status code to a human-readable message."""
    return APPLE_STATUS_MESSAGES.get(status, UNKNOWN_STATUS_MESSAGE)


class Environment(str, Enum):
    """Apple receipt verification environment."""

    PRODUCTION = "Production"
    SANDBOX = "Sandbox"

    @classmethod
    def from_hint(cls, is_sandbox: bool) -> "Environment":
        """Environment the caller asked for."""
        return cls.SANDBOX if is_sandbox else cls.PRODUCTION


@dataclass(frozen=True)
class AppleReceiptConfig:
    """Configuration for the verifyReceipt client."""

    shared_secret: str = field(repr=False)  # App-specific shared secret
    production_url: str = "https://buy.itunes.apple.com/verifyReceipt"
    sandbox_url: str = "https://sandbox.itunes.apple.com/verifyReceipt"
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration fields."""
        if not self.shared_secret:
            raise ValueError("Receipt shared_secret is required")
        if not self.production_url or not self.sandbox_url:
            raise ValueError("Both production and sandbox URLs are required")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    def endpoint_for(self, environment: Environment) -> str:
        """Get the verifyReceipt URL for an environment."""
        if environment == Environment.SANDBOX:
            return self.sandbox_url
        return self.production_url


@dataclass(frozen=True)
class VerificationRequest:
    """Request body sent to verifyReceipt."""

    receipt_data: str = field(repr=False)
    password: str = field(repr=False)
    exclude_old_transactions: bool = True

    def to_payload(self) -> dict[str, object]:
        """Serialize to Apple's hyphenated JSON keys."""
        return {
            "receipt-data": self.receipt_data,
            "password": self.password,
            "exclude-old-transactions": self.exclude_old_transactions,
        }


@dataclass(frozen=True)
class VerificationResult:
    """Parsed verifyReceipt response."""

    status: int
    requested_environment: Environment  # Endpoint that produced this response
    environment: str | None = None  # As reported by Apple
    latest_receipt_info: object = None  # Raw JSON, handed to the status resolver
    latest_receipt: str | None = None
    pending_renewal_info: list[object] | None = None

    @property
    def is_valid(self) -> bool:
        """Check if Apple accepted the receipt."""
        return self.status == STATUS_OK

    @property
    def message(self) -> str:
        """Human-readable message for the status code."""
        return describe_status(self.status)

    @property
    def effective_environment(self) -> str:
        """Apple's reported environment, falling back to the one we called."""
        return self.environment or self.requested_environment.value

    @classmethod
    def from_response(
        cls, body: object, requested_environment: Environment
    ) -> "VerificationResult":
        """
        Build a result from a decoded verifyReceipt body.

        Raises:
            ValueError: If the body is not an object or has no integer status
        """
        if not isinstance(body, Mapping):
            raise ValueError(f"Expected JSON object, got {type(body).__name__}")

        status = body.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            raise ValueError(f"Missing or invalid status in response: {status!r}")

        environment = body.get("environment")
        latest_receipt = body.get("latest_receipt")
        pending = body.get("pending_renewal_info")

        return cls(
            status=status,
            requested_environment=requested_environment,
            environment=environment if isinstance(environment, str) else None,
            latest_receipt_info=body.get("latest_receipt_info"),
            latest_receipt=latest_receipt if isinstance(latest_receipt, str) else None,
            pending_renewal_info=list(pending) if isinstance(pending, list) else None,
        )


def parse_expires_ms(value: object) -> int | float | None:
    """
    Parse an expires_date_ms value.

    Apple sends it as a numeric string; ints and floats are accepted too.
    Integers (and integer strings) stay exact ints of any size; fractional
    values stay floats, so comparisons against now are never truncated.
    Returns None for missing, zero, boolean, non-numeric or non-finite values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            return int(text) or None
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number) or number == 0:
        return None
    return number


@dataclass(frozen=True)
class ReceiptTransaction:
    """One entry of latest_receipt_info.

    Multiple renewal entries may exist for the same product.
    """

    product_id: str | None
    expires_date_ms: int | float | None  # Exact int, or float for fractional values
    raw: object  # Original JSON entry, echoed back unchanged

    @classmethod
    def from_raw(cls, entry: object) -> "ReceiptTransaction":
        """Build a transaction from a raw JSON entry of any shape."""
        if not isinstance(entry, Mapping):
            return cls(product_id=None, expires_date_ms=None, raw=entry)

        product_id = entry.get("product_id")
        return cls(
            product_id=str(product_id) if product_id is not None else None,
            expires_date_ms=parse_expires_ms(entry.get("expires_date_ms")),
            raw=entry,
        )

    def is_active(self, now_ms: int) -> bool:
        """Check if the transaction expires strictly after now_ms."""
        return self.expires_date_ms is not None and self.expires_date_ms > now_ms


@dataclass(frozen=True)
class SubscriptionStatus:
    """Subscription status derived from a receipt's transactions."""

    is_premium: bool
    latest_transaction: ReceiptTransaction | None = None

    @classmethod
    def inactive(cls) -> "SubscriptionStatus":
        """Status for empty or unusable transaction data."""
        return cls(is_premium=False, latest_transaction=None)
