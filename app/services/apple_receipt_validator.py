"""
Apple Receipt Validator - verifyReceipt client.

NO DICTIONARIES - Requests and results are strongly typed models.

Uses Apple's legacy verifyReceipt endpoint. A receipt issued in the sandbox
and sent to production comes back with status 21007; we then resend it to
the sandbox exactly once.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

import time

import httpx
from structlog import get_logger

from app.exceptions import MissingReceiptDataError, ReceiptRejectedError, UpstreamError
from app.models.apple_receipt import (
    STATUS_SANDBOX_RECEIPT,
    AppleReceiptConfig,
    Environment,
    VerificationRequest,
    VerificationResult,
)
from app.observability.metrics import metrics
from app.observability.tracing import add_span_attributes, get_tracer, set_span_error

logger = get_logger(__name__)
tracer = get_tracer(__name__)


class AppleReceiptValidator:
    """
    Validates App Store receipts against verifyReceipt.

    Holds only immutable configuration, so one instance can serve
    concurrent requests.
    """

    def __init__(self, config: AppleReceiptConfig) -> None:
        """
        Initialize the validator.

        Args:
            config: Endpoint URLs, shared secret and timeout
        """
        self.config = config

        logger.info(
            "apple_receipt_validator_initialized",
            production_url=config.production_url,
            sandbox_url=config.sandbox_url,
            timeout_seconds=config.timeout_seconds,
        )

    async def _post(
        self,
        environment: Environment,
        request: VerificationRequest,
    ) -> VerificationResult:
        """Send one verifyReceipt request and parse the response."""
        url = self.config.endpoint_for(environment)
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                response = await client.post(
                    url,
                    json=request.to_payload(),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            logger.warning(
                "apple_verify_receipt_timeout",
                environment=environment.value,
                timeout_seconds=self.config.timeout_seconds,
            )
            raise UpstreamError(
                f"verifyReceipt timed out after {self.config.timeout_seconds}s", exc
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "apple_verify_receipt_request_failed",
                environment=environment.value,
                error=str(exc),
            )
            raise UpstreamError(f"verifyReceipt request failed: {exc}", exc) from exc
        finally:
            metrics.record_upstream_call(environment.value, time.perf_counter() - start)

        if response.status_code >= 400:
            logger.error(
                "apple_verify_receipt_http_error",
                environment=environment.value,
                status=response.status_code,
            )
            raise UpstreamError(f"verifyReceipt returned HTTP {response.status_code}")

        try:
            return VerificationResult.from_response(response.json(), environment)
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError too
            logger.error(
                "apple_verify_receipt_malformed_response",
                environment=environment.value,
                error=str(exc),
            )
            raise UpstreamError(f"Malformed verifyReceipt response: {exc}", exc) from exc

    async def verify(
        self,
        receipt_data: str | None,
        prefer_sandbox: bool = False,
    ) -> VerificationResult:
        """
        Verify a receipt, following a single sandbox redirect.

        Returns the final result whatever its status.

        Args:
            receipt_data: Base64 receipt from the device
            prefer_sandbox: Try the sandbox endpoint first

        Raises:
            MissingReceiptDataError: If receipt_data is empty
            UpstreamError: If Apple cannot be reached or answers garbage
        """
        if not receipt_data or not receipt_data.strip():
            raise MissingReceiptDataError()

        request = VerificationRequest(
            receipt_data=receipt_data,
            password=self.config.shared_secret,
        )
        initial = Environment.from_hint(prefer_sandbox)

        with tracer.start_as_current_span("apple_verify_receipt") as span:
            add_span_attributes(span, initial_environment=initial.value)
            try:
                result = await self._post(initial, request)

                if result.status == STATUS_SANDBOX_RECEIPT and initial != Environment.SANDBOX:
                    logger.info("retrying_receipt_in_sandbox")
                    metrics.record_sandbox_redirect()
                    result = await self._post(Environment.SANDBOX, request)
            except UpstreamError as exc:
                set_span_error(span, exc)
                metrics.record_validation(initial.value, "error")
                metrics.record_error(type(exc).__name__, "verify_receipt")
                raise

            add_span_attributes(
                span,
                status=result.status,
                environment=result.effective_environment,
            )

        metrics.record_validation(
            result.effective_environment, "valid" if result.is_valid else "rejected"
        )
        logger.info(
            "apple_receipt_verified",
            status=result.status,
            environment=result.effective_environment,
            requested_environment=result.requested_environment.value,
        )

        return result

    async def validate(
        self,
        receipt_data: str | None,
        prefer_sandbox: bool = False,
    ) -> VerificationResult:
        """
        Verify a receipt and require Apple to accept it.

        Raises:
            MissingReceiptDataError: If receipt_data is empty
            ReceiptRejectedError: If the final status is non-zero
            UpstreamError: If Apple cannot be reached or answers garbage
        """
        result = await self.verify(receipt_data, prefer_sandbox=prefer_sandbox)
        if not result.is_valid:
            logger.info(
                "apple_receipt_rejected",
                status=result.status,
                message=result.message,
            )
            raise ReceiptRejectedError(result)
        return result
