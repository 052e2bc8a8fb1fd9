"""HTTP-level tests for the payment and admin endpoints.

The dispatcher dependency is replaced, so no database or Redis is needed.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from ticket_allocation.api.deps import get_dispatcher
from ticket_allocation.core.exceptions import (
    GatewayUnavailableError,
    NoStockError,
    NotFoundError,
    OrderNotPaidError,
    UnauthorizedError,
)
from ticket_allocation.core.security import create_access_token
from ticket_allocation.main import app
from ticket_allocation.middleware.metrics import normalize_path
from ticket_allocation.services.allocation_dispatcher import (
    DispatchResult,
    DispatchStatus,
    RevertResult,
)


@pytest.fixture
def dispatcher() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(dispatcher):
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def assigned(order_id, numbers, already=False) -> DispatchResult:
    return DispatchResult(
        ok=True,
        status=(
            DispatchStatus.APPROVED_ALREADY_ASSIGNED if already else DispatchStatus.APPROVED_ASSIGNED
        ),
        order_id=order_id,
        numbers=numbers,
        already_assigned=already,
    )


class TestWebhookEndpoint:
    """POST /api/v1/payments/webhook"""

    def test_passes_header_secret(self, client, dispatcher):
        order_id = uuid4()
        dispatcher.handle_webhook.return_value = assigned(order_id, [3, 8])

        response = client.post(
            "/api/v1/payments/webhook",
            json={"statusCode": 3, "clientTransactionId": "tx-1"},
            headers={"X-Webhook-Secret": "s3cret"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "APPROVED_ASSIGNED"
        assert body["orderId"] == str(order_id)
        assert body["numbers"] == [3, 8]
        assert body["alreadyAssigned"] is False
        dispatcher.handle_webhook.assert_awaited_once_with(
            {"statusCode": 3, "clientTransactionId": "tx-1"}, "s3cret"
        )

    def test_unauthorized(self, client, dispatcher):
        dispatcher.handle_webhook.side_effect = UnauthorizedError("Invalid webhook secret")

        response = client.post("/api/v1/payments/webhook", json={})

        assert response.status_code == 401
        assert response.json() == {
            "ok": False,
            "code": "UNAUTHORIZED",
            "error": "Invalid webhook secret",
        }

    @pytest.mark.parametrize("error", [NotFoundError("x"), NoStockError("x")])
    def test_not_actionable_events_are_acknowledged(self, client, dispatcher, error):
        dispatcher.handle_webhook.side_effect = error

        response = client.post(
            "/api/v1/payments/webhook", json={}, headers={"X-Webhook-Secret": "s3cret"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "IGNORED"

    def test_not_approved(self, client, dispatcher):
        dispatcher.handle_webhook.return_value = DispatchResult(
            ok=True, status=DispatchStatus.NOT_APPROVED
        )

        response = client.post(
            "/api/v1/payments/webhook", json={}, headers={"X-Webhook-Secret": "s3cret"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "NOT_APPROVED"


class TestConfirmEndpoint:
    """POST /api/v1/payments/confirm"""

    def test_accepts_aliases(self, client, dispatcher):
        order_id = uuid4()
        dispatcher.handle_client_confirmation.return_value = assigned(order_id, [1], already=True)

        response = client.post(
            "/api/v1/payments/confirm",
            json={"clientTransactionId": "tx-1", "payphoneId": 12345},
        )

        assert response.status_code == 200
        assert response.json()["alreadyAssigned"] is True
        dispatcher.handle_client_confirmation.assert_awaited_once_with("tx-1", "12345")

    @pytest.mark.parametrize("error", [NoStockError("x"), GatewayUnavailableError("x")])
    def test_buyer_sees_processing(self, client, dispatcher, error):
        dispatcher.handle_client_confirmation.side_effect = error

        response = client.post("/api/v1/payments/confirm", json={"clientTxId": "tx-1"})

        assert response.status_code == 202
        assert response.json() == {"ok": False, "status": "PROCESSING"}


class TestAdminEndpoints:
    """Operator endpoints pass the bearer identity to the dispatcher."""

    def test_mark_paid_with_admin_token(self, client, dispatcher):
        order_id = uuid4()
        dispatcher.handle_admin_override.return_value = assigned(order_id, [4, 5])
        token = create_access_token({"sub": "op-1", "role": "admin"})

        response = client.post(
            f"/api/v1/admin/orders/{order_id}/mark-paid",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["numbers"] == [4, 5]
        called_order_id, operator = dispatcher.handle_admin_override.await_args.args
        assert called_order_id == order_id
        assert operator.operator_id == "op-1"
        assert operator.is_admin is True

    def test_mark_paid_without_token_passes_none(self, client, dispatcher):
        dispatcher.handle_admin_override.side_effect = UnauthorizedError("Admin privileges required")
        order_id = uuid4()

        response = client.post(f"/api/v1/admin/orders/{order_id}/mark-paid")

        assert response.status_code == 401
        assert dispatcher.handle_admin_override.await_args.args == (order_id, None)

    def test_errors_surface_with_precise_code(self, client, dispatcher):
        dispatcher.handle_admin_override.side_effect = OrderNotPaidError("not paid")
        token = create_access_token({"sub": "op-1", "role": "admin"})

        response = client.post(
            f"/api/v1/admin/orders/{uuid4()}/mark-paid",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ORDER_NOT_PAID"

    def test_revert(self, client, dispatcher):
        order_id = uuid4()
        dispatcher.handle_admin_revert.return_value = RevertResult(
            order_id=order_id, status="cancelled", released=[2, 9]
        )
        token = create_access_token({"sub": "op-1", "role": "admin"})

        response = client.post(
            f"/api/v1/admin/orders/{order_id}/revert",
            json={"targetStatus": "cancelled"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "orderId": str(order_id),
            "status": "cancelled",
            "released": [2, 9],
        }

    def test_revert_rejects_unknown_target(self, client, dispatcher):
        response = client.post(
            f"/api/v1/admin/orders/{uuid4()}/revert", json={"targetStatus": "paid"}
        )

        assert response.status_code == 422
        dispatcher.handle_admin_revert.assert_not_called()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestMetricLabels:
    """Path labels stay low-cardinality."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/health", "/health"),
            ("/favicon.ico", "/other"),
            ("/api/v1/payments/webhook", "/api/v1/payments/webhook"),
            (
                "/api/v1/admin/orders/6f1c2a8e-3b4d-4c5e-9f60-7a8b9c0d1e2f/mark-paid",
                "/api/v1/admin/orders/{id}/mark-paid",
            ),
            (
                "/api/v1/raffles/6F1C2A8E-3B4D-4C5E-9F60-7A8B9C0D1E2F",
                "/api/v1/raffles/{id}",
            ),
            ("/api/v1/orders/by-reference/tx-123", "/api/v1/orders/by-reference/{ref}"),
        ],
    )
    def test_normalize_path(self, path, expected):
        assert normalize_path(path) == expected
