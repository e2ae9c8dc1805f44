"""
Pytest Configuration and Centralized Fixtures.

Provides reusable mocks and fixtures for testing:
- Receipt validator configuration
- Mocked httpx client standing in for verifyReceipt
- verifyReceipt response bodies and transaction entries
- API test client with the validator dependency overridden
"""

import os
import time
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("APP_SHARED_SECRET", "test-shared-secret")
os.environ.setdefault("TRACING_ENABLED", "false")

from app.models.apple_receipt import AppleReceiptConfig
from app.services.apple_receipt_validator import AppleReceiptValidator

PRODUCTION_URL = "https://buy.example.test/verifyReceipt"
SANDBOX_URL = "https://sandbox.example.test/verifyReceipt"
SHARED_SECRET = "test-shared-secret"

DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Response Builders
# ============================================================================


def make_http_response(body: Any, status_code: int = 200) -> MagicMock:
    """Build a mock httpx.Response returning body from .json()."""
    response = MagicMock()
    response.status_code = status_code
    response.json = MagicMock(return_value=body)
    return response


def make_transaction(
    product_id: str = "premium_monthly",
    expires_date_ms: Any = None,
    transaction_id: str = "1000000000000001",
) -> dict[str, Any]:
    """Build a latest_receipt_info entry as Apple sends it (ms as strings)."""
    entry: dict[str, Any] = {
        "product_id": product_id,
        "transaction_id": transaction_id,
        "original_transaction_id": "1000000000000000",
    }
    if expires_date_ms is not None:
        entry["expires_date_ms"] = expires_date_ms
    return entry


def make_apple_body(
    status: int = 0,
    environment: str | None = "Production",
    transactions: list[dict[str, Any]] | None = None,
    latest_receipt: str | None = "bGF0ZXN0LXJlY2VpcHQ=",
    pending_renewal_info: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a verifyReceipt response body."""
    body: dict[str, Any] = {"status": status}
    if environment is not None:
        body["environment"] = environment
    if transactions is not None:
        body["latest_receipt_info"] = transactions
    if latest_receipt is not None:
        body["latest_receipt"] = latest_receipt
    if pending_renewal_info is not None:
        body["pending_renewal_info"] = pending_renewal_info
    return body


# ============================================================================
# Validator Fixtures
# ============================================================================


@pytest.fixture
def receipt_config() -> AppleReceiptConfig:
    """Validator config pointing at fake endpoints."""
    return AppleReceiptConfig(
        shared_secret=SHARED_SECRET,
        production_url=PRODUCTION_URL,
        sandbox_url=SANDBOX_URL,
        timeout_seconds=10.0,
    )


@pytest.fixture
def validator(receipt_config: AppleReceiptConfig) -> AppleReceiptValidator:
    """Receipt validator under test."""
    return AppleReceiptValidator(receipt_config)


@pytest.fixture
def mock_http() -> Iterator[MagicMock]:
    """
    Patch httpx.AsyncClient.

    Yields the client class mock; its return_value is the client whose
    .post the tests configure.
    """
    with patch("httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(return_value=make_http_response(make_apple_body()))
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)
        MockClient.return_value = mock_client
        yield MockClient


@pytest.fixture
def apple_post(mock_http: MagicMock) -> AsyncMock:
    """The mocked client's post method."""
    return mock_http.return_value.post


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================


@pytest.fixture
def app() -> FastAPI:
    """Create FastAPI app for testing."""
    from app.main import app as main_app

    return main_app


@pytest.fixture
def client(app: FastAPI, validator: AppleReceiptValidator) -> Iterator[TestClient]:
    """Test client whose receipt validator targets the fake endpoints."""
    from app.api.dependencies import get_receipt_validator

    app.dependency_overrides[get_receipt_validator] = lambda: validator

    yield TestClient(app)

    app.dependency_overrides.clear()
