"""
Tests for API routes.

verifyReceipt is mocked at the httpx level; the validator dependency is
overridden to point at fake endpoints.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
from fastapi.testclient import TestClient

from tests.conftest import (
    DAY_MS,
    PRODUCTION_URL,
    SANDBOX_URL,
    make_apple_body,
    make_http_response,
    make_transaction,
    now_ms,
)

RECEIPT = "TUlJVFV3WUpLb1pJaHZjTkFRY0NvSUlUUkRDQ0UwQUNBUUV4Q3pBSkJn"


class TestHealthRoutes:
    """Tests for status endpoints."""

    def test_status(self, client: TestClient):
        """GET /status reports the service is up."""
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Aurora backend is running correctly."
        assert "timestamp" in data

    def test_subscription_status_placeholder(self, client: TestClient):
        """GET /subscription/status never reports server-held premium state."""
        response = client.get("/subscription/status")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["isPremium"] is False
        assert data["message"] == "Subscription status endpoint active."

    def test_root(self, client: TestClient):
        """GET / returns the service banner."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_unknown_route(self, client: TestClient):
        """Unknown paths get a JSON 404."""
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Endpoint not found."


class TestVerifyReceiptSuccess:
    """POST /verify-receipt when Apple accepts the receipt."""

    def test_valid_active_subscription(self, client: TestClient, apple_post: AsyncMock):
        """Status 0 with a future expiry is valid and premium."""
        future = str(now_ms() + 30 * DAY_MS)
        apple_post.return_value = make_http_response(
            make_apple_body(transactions=[make_transaction("p1", future)])
        )

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["isPremium"] is True
        assert data["environment"] == "Production"
        assert data["latestReceipt"] == "bGF0ZXN0LXJlY2VpcHQ="
        assert data["latestTransaction"]["product_id"] == "p1"
        assert data["latestTransaction"]["expires_date_ms"] == future
        assert data["productId"] == "p1"
        assert data["message"] == "Receipt validated successfully."

    def test_valid_expired_subscription(self, client: TestClient, apple_post: AsyncMock):
        """Valid receipt with only expired entries is not premium."""
        past = str(now_ms() - DAY_MS)
        apple_post.return_value = make_http_response(
            make_apple_body(transactions=[make_transaction("p1", past)])
        )

        response = client.post("/verify-receipt", json={"receiptData": RECEIPT})

        assert response.status_code == 200
        data = response.json()
        assert data["isPremium"] is False
        assert data["latestTransaction"]["expires_date_ms"] == past

    def test_valid_without_transactions(self, client: TestClient, apple_post: AsyncMock):
        """A receipt with no subscription history has no latest transaction."""
        apple_post.return_value = make_http_response(make_apple_body(latest_receipt=None))

        response = client.post("/verify-receipt", json={"receipt": RECEIPT})

        data = response.json()
        assert response.status_code == 200
        assert data["isPremium"] is False
        assert data["latestTransaction"] is None
        assert data["latestReceipt"] is None
        assert data["productId"] is None

    def test_product_id_echoed(self, client: TestClient, apple_post: AsyncMock):
        """The caller's productId wins over the transaction's."""
        apple_post.return_value = make_http_response(
            make_apple_body(transactions=[make_transaction("p1", str(now_ms() + DAY_MS))])
        )

        response = client.post(
            "/verify-receipt", json={"receipt-data": RECEIPT, "productId": "premium_yearly"}
        )

        assert response.json()["productId"] == "premium_yearly"

    def test_pending_renewal_info_passed_through(
        self, client: TestClient, apple_post: AsyncMock
    ):
        """Pending renewal records come back unchanged."""
        pending = [{"auto_renew_status": "1", "product_id": "p1"}]
        apple_post.return_value = make_http_response(
            make_apple_body(pending_renewal_info=pending)
        )

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.json()["pendingRenewalInfo"] == pending

    def test_sandbox_redirect(self, client: TestClient, apple_post: AsyncMock):
        """A sandbox receipt sent to production ends up validated in sandbox."""
        apple_post.side_effect = [
            make_http_response(make_apple_body(status=21007, environment=None)),
            make_http_response(make_apple_body(environment="Sandbox")),
        ]

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 200
        assert response.json()["environment"] == "Sandbox"
        assert [c.args[0] for c in apple_post.call_args_list] == [PRODUCTION_URL, SANDBOX_URL]

    def test_is_sandbox_hint(self, client: TestClient, apple_post: AsyncMock):
        """isSandbox sends the first call to sandbox."""
        apple_post.return_value = make_http_response(make_apple_body(environment="Sandbox"))

        client.post("/verify-receipt", json={"receipt-data": RECEIPT, "isSandbox": True})

        assert [c.args[0] for c in apple_post.call_args_list] == [SANDBOX_URL]

    def test_oversized_integer_expiry(self, client: TestClient, apple_post: AsyncMock):
        """An expiry too large for a float still yields a JSON response."""
        apple_post.return_value = make_http_response(
            make_apple_body(
                transactions=[
                    make_transaction("undated", None),
                    make_transaction("huge", "1" + "0" * 400),
                ]
            )
        )

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 200
        data = response.json()
        assert data["isPremium"] is True
        assert data["productId"] == "huge"


class TestVerifyReceiptRejected:
    """POST /verify-receipt when Apple rejects the receipt."""

    def test_shared_secret_mismatch(self, client: TestClient, apple_post: AsyncMock):
        """21004 returns the mapped message and code."""
        apple_post.return_value = make_http_response(make_apple_body(status=21004))

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["status"] == 21004
        assert data["message"] == "The shared secret you provided does not match the one on file."
        assert data["environment"] == "Production"

    def test_rejection_environment_falls_back_to_requested(
        self, client: TestClient, apple_post: AsyncMock
    ):
        """Without an environment from Apple the requested one is reported."""
        apple_post.return_value = make_http_response(
            make_apple_body(status=21002, environment=None)
        )

        response = client.post(
            "/verify-receipt", json={"receipt-data": RECEIPT, "isSandbox": True}
        )

        assert response.json()["environment"] == "Sandbox"

    def test_rejection_still_computes_premium(self, client: TestClient, apple_post: AsyncMock):
        """isPremium comes from whatever transactions accompanied the rejection."""
        apple_post.return_value = make_http_response(
            make_apple_body(
                status=21006,
                transactions=[make_transaction("p1", str(now_ms() + DAY_MS))],
            )
        )

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        data = response.json()
        assert data["status"] == 21006
        assert data["isPremium"] is True

    def test_unknown_status(self, client: TestClient, apple_post: AsyncMock):
        """Unknown codes get the generic message."""
        apple_post.return_value = make_http_response(make_apple_body(status=21100))

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Apple receipt validation failed with unknown status."
        )

    def test_rejection_after_redirect_reports_caller_environment(
        self, client: TestClient, apple_post: AsyncMock
    ):
        """After a sandbox redirect without an environment from Apple, the caller's hint wins."""
        apple_post.side_effect = [
            make_http_response(make_apple_body(status=21007, environment=None)),
            make_http_response(make_apple_body(status=21002, environment=None)),
        ]

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 400
        data = response.json()
        assert data["status"] == 21002
        assert data["environment"] == "Production"
        assert [c.args[0] for c in apple_post.call_args_list] == [PRODUCTION_URL, SANDBOX_URL]


class TestVerifyReceiptErrors:
    """POST /verify-receipt input and upstream failures."""

    def test_missing_receipt(self, client: TestClient, mock_http: MagicMock):
        """No receipt means 400 and no outbound call."""
        response = client.post("/verify-receipt", json={"productId": "p1"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Missing receipt data."
        mock_http.return_value.post.assert_not_called()

    def test_empty_body(self, client: TestClient, mock_http: MagicMock):
        """A request without a body is a missing receipt."""
        response = client.post("/verify-receipt")

        assert response.status_code == 400
        assert response.json()["message"] == "Missing receipt data."
        mock_http.return_value.post.assert_not_called()

    def test_timeout(self, client: TestClient, apple_post: AsyncMock):
        """Timeout is reported as an internal error, not an unhandled fault."""
        apple_post.side_effect = httpx.ReadTimeout("timed out")

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "timed out" in data["message"]

    def test_malformed_upstream_response(self, client: TestClient, apple_post: AsyncMock):
        """Garbage from Apple is an internal error."""
        apple_post.return_value = make_http_response(["not", "an", "object"])

        response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_shared_secret_never_returned(self, client: TestClient, apple_post: AsyncMock):
        """The shared secret does not leak into any response."""
        from tests.conftest import SHARED_SECRET

        for side_effect in (
            None,
            httpx.ConnectError("Connection refused"),
        ):
            apple_post.side_effect = side_effect
            response = client.post("/verify-receipt", json={"receipt-data": RECEIPT})
            assert SHARED_SECRET not in response.text
