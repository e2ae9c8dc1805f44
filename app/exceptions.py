"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from app.models.apple_receipt import VerificationResult


class ReceiptRelayError(Exception):
    """Base exception for all receipt relay errors."""

    pass


class ClientInputError(ReceiptRelayError):
    """Raised when the caller's request is unusable. Never reaches Apple."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingReceiptDataError(ClientInputError):
    """Raised when no receipt data was supplied."""

    def __init__(self) -> None:
        super().__init__("Missing receipt data.")


class ReceiptRejectedError(ReceiptRelayError):
    """Raised when Apple answers with a non-zero status.

    Not a system failure: the result still carries whatever transaction
    data Apple returned alongside the rejection.
    """

    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        self.status = result.status
        self.message = result.message
        super().__init__(f"Receipt rejected with status {result.status}: {result.message}")


class UpstreamError(ReceiptRelayError):
    """Raised when verifyReceipt cannot be reached or answers garbage."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(f"Upstream error: {message}")
