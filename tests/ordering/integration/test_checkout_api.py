"""Integration tests for the Payment and Order API endpoints via TestClient."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_error_handlers
from ordering.api.routes import cart_router, order_router, payment_router
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import Order
from protean import current_domain

CUSTOMER = {"X-User-Id": "cust-001", "X-User-Role": "customer"}
OTHER_CUSTOMER = {"X-User-Id": "cust-002", "X-User-Role": "customer"}
VENDOR_A = {"X-User-Id": "vendor-a", "X-User-Role": "vendor"}
VENDOR_B = {"X-User-Id": "vendor-b", "X-User-Role": "vendor"}
ADMIN = {"X-User-Id": "ops-1", "X-User-Role": "admin"}


@pytest.fixture()
def client():
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(cart_router)
    app.include_router(payment_router)
    app.include_router(order_router)
    return TestClient(app)


@pytest.fixture()
def place_order(client, catalogue, gateway, address):
    """Buy two kurtas and one scarf through the API; returns (order, intent)."""

    def _place(payment_id="pay_api_0001"):
        client.post("/cart/items", json={"product_id": catalogue["kurta"], "quantity": 2}, headers=CUSTOMER)
        client.post("/cart/items", json={"product_id": catalogue["scarf"], "quantity": 1}, headers=CUSTOMER)
        intent = client.post("/payments/create-order", headers=CUSTOMER).json()["data"]
        response = client.post(
            "/payments/verify",
            json={
                "intent_id": intent["intent_id"],
                "payment_id": payment_id,
                "signature": gateway.sign_client_proof(intent["intent_id"], payment_id),
                "shipping_address": address,
                "payment_method": "upi",
            },
            headers=CUSTOMER,
        )
        assert response.status_code == 200, response.json()
        return response.json()["data"], intent

    return _place


def _signed_webhook(client, gateway, payload):
    body = json.dumps(payload)
    return client.post(
        "/payments/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Gateway-Signature": gateway.sign_webhook(body)},
    )


def _item(order, product_name):
    return next(i for i in order["items"] if i["product"]["name"] == product_name)


class TestCreatePaymentOrder:
    def test_returns_intent_for_cart_total(self, client, catalogue):
        client.post("/cart/items", json={"product_id": catalogue["kurta"], "quantity": 2}, headers=CUSTOMER)
        client.post("/cart/coupons", json={"code": "SAVE20"}, headers=CUSTOMER)

        response = client.post("/payments/create-order", headers=CUSTOMER)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["amount"] == 223964
        assert data["currency"] == "INR"
        assert data["key_id"] == "test_key_id"
        assert data["intent_id"].startswith("order_")

    def test_empty_cart(self, client):
        response = client.post("/payments/create-order", headers=CUSTOMER)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Cart is empty",
            "errors": {"cart": ["Cart is empty"]},
        }

    def test_gateway_timeout_is_503(self, client, catalogue, gateway):
        client.post("/cart/items", json={"product_id": catalogue["kurta"], "quantity": 1}, headers=CUSTOMER)
        gateway.configure(unavailable=True)

        response = client.post("/payments/create-order", headers=CUSTOMER)

        assert response.status_code == 503
        assert response.json()["success"] is False


class TestVerifyPayment:
    def test_places_order(self, place_order, catalogue, client):
        order, _ = place_order()

        assert order["status"] == "pending"
        assert order["order_number"].startswith("ORD-")
        assert order["payment"]["payment_method"] == "upi"
        assert order["total_amount"] == pytest.approx(2248.0 + 404.64)
        assert len(order["vendor_groups"]) == 2
        assert InventoryLedger().available(catalogue["kurta"]) == 8
        assert client.get("/cart", headers=CUSTOMER).json()["data"]["items"] == []

    def test_replayed_verify_returns_same_order(self, place_order, client, gateway, address):
        order, intent = place_order()

        response = client.post(
            "/payments/verify",
            json={
                "intent_id": intent["intent_id"],
                "payment_id": "pay_api_0001",
                "signature": gateway.sign_client_proof(intent["intent_id"], "pay_api_0001"),
                "shipping_address": address,
            },
            headers=CUSTOMER,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Payment already confirmed"
        assert response.json()["data"]["id"] == order["id"]
        assert len(current_domain.repository_for(Order).for_customer("cust-001")) == 1

    def test_bad_signature(self, client, catalogue, address):
        client.post("/cart/items", json={"product_id": catalogue["kurta"], "quantity": 1}, headers=CUSTOMER)
        intent = client.post("/payments/create-order", headers=CUSTOMER).json()["data"]

        response = client.post(
            "/payments/verify",
            json={
                "intent_id": intent["intent_id"],
                "payment_id": "pay_x",
                "signature": "forged",
                "shipping_address": address,
            },
            headers=CUSTOMER,
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid payment signature"}

    def test_missing_address(self, client):
        response = client.post(
            "/payments/verify",
            json={"intent_id": "order_1", "payment_id": "pay_1", "signature": "sig"},
            headers=CUSTOMER,
        )
        assert response.status_code == 400


class TestWebhook:
    def test_invalid_signature(self, client):
        response = client.post(
            "/payments/webhook",
            content=b'{"event": "payment.captured"}',
            headers={"X-Gateway-Signature": "bad"},
        )
        assert response.status_code == 400

    def test_captured(self, client, gateway, place_order):
        order, intent = place_order()

        payload = {
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_api_0001", "order_id": intent["intent_id"]}}},
        }
        response = _signed_webhook(client, gateway, payload)

        assert response.status_code == 200
        assert response.json()["message"] == "processed"
        payment = client.get(f"/payments/order/{order['id']}", headers=CUSTOMER).json()["data"]
        assert payment["payment_status"] == "completed"

    def test_unknown_event_acknowledged(self, client, gateway):
        response = _signed_webhook(client, gateway, {"event": "order.paid", "payload": {}})

        assert response.status_code == 200
        assert response.json()["message"] == "ignored"

    def test_missing_event_acknowledged(self, client, gateway):
        response = _signed_webhook(client, gateway, {"payload": {}})

        assert response.status_code == 200
        assert response.json()["message"] == "ignored"

    def test_malformed_body(self, client, gateway):
        body = "not json"
        response = client.post("/payments/webhook", content=body, headers={"X-Gateway-Signature": gateway.sign_webhook(body)})

        assert response.status_code == 400


class TestRefundEndpoint:
    def _capture(self, client, gateway, intent):
        _signed_webhook(
            client,
            gateway,
            {
                "event": "payment.captured",
                "payload": {"payment": {"entity": {"id": "pay_api_0001", "order_id": intent["intent_id"]}}},
            },
        )

    def test_vendor_refunds_own_item(self, client, gateway, place_order):
        order, intent = place_order()
        self._capture(client, gateway, intent)
        kurta = _item(order, "Block Print Kurta")

        response = client.post(
            "/payments/refund",
            json={"order_id": order["id"], "item_id": kurta["id"], "amount": 999.0, "reason": "Damaged"},
            headers=VENDOR_A,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["refund"]["gateway_refund_id"].startswith("rfnd_")
        assert data["order"]["payment"]["payment_status"] == "partially_refunded"
        assert _item(data["order"], "Block Print Kurta")["refund_amount"] == 999.0

    def test_vendor_cannot_refund_another_vendors_item(self, client, gateway, place_order):
        order, intent = place_order()
        self._capture(client, gateway, intent)
        kurta = _item(order, "Block Print Kurta")

        response = client.post(
            "/payments/refund",
            json={"order_id": order["id"], "item_id": kurta["id"], "amount": 100.0},
            headers=VENDOR_B,
        )
        assert response.status_code == 403

    def test_customer_cannot_refund(self, client, place_order):
        order, _ = place_order()
        kurta = _item(order, "Block Print Kurta")

        response = client.post(
            "/payments/refund",
            json={"order_id": order["id"], "item_id": kurta["id"], "amount": 100.0},
            headers=CUSTOMER,
        )
        assert response.status_code == 403

    def test_refund_rejected_by_gateway_is_502(self, client, gateway, place_order):
        order, intent = place_order()
        self._capture(client, gateway, intent)
        gateway.configure(should_succeed=False)

        response = client.post(
            "/payments/refund",
            json={"order_id": order["id"], "item_id": _item(order, "Banarasi Scarf")["id"], "amount": 100.0},
            headers=ADMIN,
        )
        assert response.status_code == 502


class TestOrderEndpoints:
    def test_list_and_get(self, client, place_order):
        order, _ = place_order()

        listing = client.get("/orders", headers=CUSTOMER).json()["data"]
        assert [o["id"] for o in listing] == [order["id"]]

        response = client.get(f"/orders/{order['id']}", headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["data"]["status_history"][0]["status"] == "pending"

    def test_other_customer_cannot_view(self, client, place_order):
        order, _ = place_order()

        assert client.get(f"/orders/{order['id']}", headers=OTHER_CUSTOMER).status_code == 403

    def test_vendor_can_view_order_with_their_items(self, client, place_order):
        order, _ = place_order()

        assert client.get(f"/orders/{order['id']}", headers=VENDOR_B).status_code == 200
        stranger = {"X-User-Id": "vendor-z", "X-User-Role": "vendor"}
        assert client.get(f"/orders/{order['id']}", headers=stranger).status_code == 403

    def test_missing_order(self, client):
        response = client.get("/orders/does-not-exist", headers=ADMIN)

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert "does-not-exist" in body["message"]

    def test_admin_changes_status(self, client, place_order):
        order, _ = place_order()

        response = client.patch(
            f"/orders/{order['id']}/status",
            json={"status": "confirmed", "reason": "Verified", "note": "Priority"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["status_history"][-1]["actor"] == "admin:ops-1"

    def test_customer_cannot_change_status(self, client, place_order):
        order, _ = place_order()

        response = client.patch(f"/orders/{order['id']}/status", json={"status": "shipped"}, headers=CUSTOMER)
        assert response.status_code == 403

    def test_unknown_status_value(self, client, place_order):
        order, _ = place_order()

        response = client.patch(f"/orders/{order['id']}/status", json={"status": "lost"}, headers=ADMIN)
        assert response.status_code == 400

    def test_vendor_updates_own_item(self, client, place_order):
        order, _ = place_order()
        scarf = _item(order, "Banarasi Scarf")

        response = client.patch(
            f"/orders/{order['id']}/items/{scarf['id']}/status",
            json={"status": "processing"},
            headers=VENDOR_B,
        )

        assert response.status_code == 200
        groups = {g["vendor_id"]: g["status"] for g in response.json()["data"]["vendor_groups"]}
        assert groups == {"vendor-a": "pending", "vendor-b": "processing"}

    def test_vendor_cannot_update_other_vendors_item(self, client, place_order):
        order, _ = place_order()
        kurta = _item(order, "Block Print Kurta")

        response = client.patch(
            f"/orders/{order['id']}/items/{kurta['id']}/status",
            json={"status": "shipped"},
            headers=VENDOR_B,
        )
        assert response.status_code == 403

    def test_item_refund_needs_the_refund_endpoint(self, client, place_order):
        order, _ = place_order()
        kurta = _item(order, "Block Print Kurta")

        response = client.patch(
            f"/orders/{order['id']}/items/{kurta['id']}/status",
            json={"status": "refunded"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        stored = client.get(f"/orders/{order['id']}", headers=ADMIN).json()["data"]
        assert _item(stored, "Block Print Kurta")["status"] == "pending"

    def test_tracking(self, client, place_order):
        order, _ = place_order()
        kurta = _item(order, "Block Print Kurta")

        response = client.patch(
            f"/orders/{order['id']}/items/{kurta['id']}/tracking",
            json={"tracking_number": "AWB123", "tracking_url": "https://track.example/AWB123"},
            headers=VENDOR_A,
        )

        assert response.status_code == 200
        item = _item(response.json()["data"], "Block Print Kurta")
        assert item["status"] == "shipped"
        assert item["tracking_number"] == "AWB123"


class TestCancelEndpoint:
    def test_customer_cancels_within_window(self, client, catalogue, place_order):
        order, _ = place_order()

        response = client.patch(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=CUSTOMER)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
        assert InventoryLedger().available(catalogue["kurta"]) == 10

    def test_customer_cancel_after_window(self, client, place_order):
        order, _ = place_order()
        repo = current_domain.repository_for(Order)
        stored = repo.get(order["id"])
        stored.created_at = datetime.now(UTC) - timedelta(minutes=61)
        repo.add(stored)

        response = client.patch(f"/orders/{order['id']}/cancel", headers=CUSTOMER)

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_other_customer_cannot_cancel(self, client, place_order):
        order, _ = place_order()

        response = client.patch(f"/orders/{order['id']}/cancel", headers=OTHER_CUSTOMER)
        assert response.status_code == 403

    def test_admin_cancel_uses_status_change(self, client, place_order):
        order, _ = place_order()
        client.patch(f"/orders/{order['id']}/status", json={"status": "confirmed"}, headers=ADMIN)

        response = client.patch(f"/orders/{order['id']}/cancel", json={"reason": "Fraud"}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
