"""
API Routes - FastAPI endpoints for receipt validation.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from app.api.dependencies import get_receipt_validator
from app.exceptions import ClientInputError, ReceiptRejectedError, UpstreamError
from app.models.api import (
    ErrorResponse,
    HealthResponse,
    ReceiptRejectedResponse,
    SubscriptionStatusResponse,
    VerifyReceiptRequest,
    VerifyReceiptResponse,
)
from app.models.apple_receipt import Environment
from app.observability.logging import log_context
from app.services.apple_receipt_validator import AppleReceiptValidator
from app.services.subscription_status import resolve_subscription_status

logger = get_logger(__name__)
router = APIRouter()


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def _json(
    model: ErrorResponse | ReceiptRejectedResponse | VerifyReceiptResponse, code: int
) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content=model.model_dump(mode="json", by_alias=True),
    )


@router.get("/status", response_model=HealthResponse)
async def service_status() -> HealthResponse:
    """Health probe. No dependencies are checked."""
    return HealthResponse(
        message="Aurora backend is running correctly.",
        timestamp=now_iso(),
    )


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
async def subscription_status() -> SubscriptionStatusResponse:
    """
    Placeholder subscription status.

    Nothing is persisted server-side, so this always reports is_premium=False.
    Clients learn their real status from POST /verify-receipt.
    """
    return SubscriptionStatusResponse(
        message="Subscription status endpoint active.",
        timestamp=now_iso(),
    )


@router.post(
    "/verify-receipt",
    response_model=VerifyReceiptResponse,
    responses={
        400: {"model": ReceiptRejectedResponse},
        500: {"model": ErrorResponse},
    },
)
async def verify_receipt(
    http_request: Request,
    payload: VerifyReceiptRequest | None = None,
    validator: AppleReceiptValidator = Depends(get_receipt_validator),
) -> JSONResponse:
    """
    Validate an App Store receipt and derive subscription status.

    - 200: Apple accepted the receipt
    - 400: receipt missing, or Apple rejected it (status and message included)
    - 500: Apple unreachable or returned an unusable response
    """
    timestamp = now_iso()
    payload = payload or VerifyReceiptRequest()
    request_id = http_request.headers.get("X-Request-ID", "unknown")

    with log_context(request_id=request_id, is_sandbox=payload.is_sandbox):
        try:
            result = await validator.validate(
                payload.resolved_receipt_data,
                prefer_sandbox=payload.is_sandbox,
            )
        except ClientInputError as exc:
            logger.info("verify_receipt_bad_request", error=exc.message)
            return _json(
                ErrorResponse(message=exc.message, timestamp=timestamp),
                status.HTTP_400_BAD_REQUEST,
            )
        except ReceiptRejectedError as exc:
            sub_status = resolve_subscription_status(exc.result.latest_receipt_info)
            return _json(
                ReceiptRejectedResponse(
                    is_premium=sub_status.is_premium,
                    status=exc.status,
                    message=exc.message,
                    environment=exc.result.environment
                    or Environment.from_hint(payload.is_sandbox).value,
                    timestamp=timestamp,
                ),
                status.HTTP_400_BAD_REQUEST,
            )
        except UpstreamError as exc:
            logger.error("verify_receipt_upstream_error", error=exc.message)
            return _json(
                ErrorResponse(message=exc.message or "Internal server error.", timestamp=timestamp),
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        sub_status = resolve_subscription_status(result.latest_receipt_info)
        latest = sub_status.latest_transaction

        logger.info(
            "verify_receipt_succeeded",
            environment=result.effective_environment,
            is_premium=sub_status.is_premium,
            product_id=latest.product_id if latest else None,
        )

        return _json(
            VerifyReceiptResponse(
                is_premium=sub_status.is_premium,
                environment=result.environment,
                latest_receipt=result.latest_receipt,
                latest_transaction=latest.raw if latest else None,
                pending_renewal_info=result.pending_renewal_info,
                product_id=payload.product_id or (latest.product_id if latest else None),
                timestamp=timestamp,
            ),
            status.HTTP_200_OK,
        )
