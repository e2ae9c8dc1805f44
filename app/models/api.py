"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.

JSON keys are camelCase to match the mobile client; Python attributes stay
snake_case.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes attributes as camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Receipt Verification Models
# ============================================================================


class VerifyReceiptRequest(BaseModel):
    """POST /verify-receipt request body.

    The receipt may arrive under Apple's own key, camelCase, or plain
    "receipt"; the first non-empty one wins in that order.
    """

    model_config = ConfigDict(populate_by_name=True)

    receipt_data: str | None = Field(None, alias="receipt-data")
    receipt_data_camel: str | None = Field(None, alias="receiptData")
    receipt: str | None = None
    product_id: str | None = Field(
        None, alias="productId", description="Echoed back on success"
    )
    is_sandbox: bool = Field(
        False, alias="isSandbox", description="Try the sandbox endpoint first"
    )

    @property
    def resolved_receipt_data(self) -> str | None:
        """The receipt under whichever key the client used."""
        return self.receipt_data or self.receipt_data_camel or self.receipt or None


class VerifyReceiptResponse(CamelModel):
    """POST /verify-receipt response when Apple accepts the receipt."""

    success: Literal[True] = True
    is_premium: bool
    environment: str | None
    latest_receipt: str | None
    latest_transaction: Any | None  # Raw latest_receipt_info entry
    pending_renewal_info: list[Any] | None = None
    product_id: str | None
    timestamp: str
    message: str = "Receipt validated successfully."


class ReceiptRejectedResponse(CamelModel):
    """POST /verify-receipt response when Apple rejects the receipt."""

    success: Literal[False] = False
    is_premium: bool
    status: int = Field(..., description="Apple verifyReceipt status code")
    message: str
    environment: str
    timestamp: str


# ============================================================================
# Status Models
# ============================================================================


class HealthResponse(CamelModel):
    """GET /status response."""

    success: bool = True
    message: str
    timestamp: str


class SubscriptionStatusResponse(CamelModel):
    """GET /subscription/status response.

    Subscription state is never stored server-side, so is_premium is always
    False here; clients must verify a receipt to learn their status.
    """

    success: bool = True
    is_premium: bool = False
    message: str
    timestamp: str


# ============================================================================
# Error Models
# ============================================================================


class ErrorResponse(CamelModel):
    """Error body for client input, upstream and routing failures."""

    success: Literal[False] = False
    message: str
    timestamp: str
