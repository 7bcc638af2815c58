"""Tests for gateway signatures and the Razorpay adapter over a mock transport."""

import json

import httpx
import pytest
from ordering.exceptions import ExternalGatewayError
from ordering.payment.gateway import get_gateway, reset_gateway
from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import compute_signature
from ordering.payment.gateway.razorpay_adapter import RazorpayGateway


def _razorpay(handler):
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        webhook_secret="whsec",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


class TestSignatures:
    def test_client_proof_round_trip(self):
        gateway = FakeGateway()
        signature = gateway.sign_client_proof("order_abc", "pay_xyz")

        assert gateway.verify_client_proof("order_abc", "pay_xyz", signature)
        assert not gateway.verify_client_proof("order_abc", "pay_other", signature)

    def test_client_proof_is_hmac_of_intent_and_payment(self):
        expected = compute_signature("test_key_secret", "order_abc|pay_xyz")
        assert FakeGateway().verify_client_proof("order_abc", "pay_xyz", expected)

    def test_missing_parts_fail_verification(self):
        gateway = FakeGateway()
        assert not gateway.verify_client_proof("order_abc", "pay_xyz", "")
        assert not gateway.verify_client_proof("", "pay_xyz", "sig")

    def test_webhook_signature_over_raw_body(self):
        gateway = FakeGateway()
        body = b'{"event": "payment.captured"}'

        assert gateway.verify_webhook_signature(body, gateway.sign_webhook(body))
        assert not gateway.verify_webhook_signature(body + b" ", gateway.sign_webhook(body))
        assert not gateway.verify_webhook_signature(body, "")


class TestFakeGateway:
    def test_create_intent_records_call(self):
        gateway = FakeGateway()
        result = gateway.create_intent(223964, "INR", receipt="cart_1")

        assert result.intent_id.startswith("order_")
        assert result.amount_minor == 223964
        assert gateway.calls[0]["method"] == "create_intent"

    def test_refund_failure(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Insufficient balance")

        result = gateway.create_refund("pay_1", 1000)

        assert result.success is False
        assert result.failure_reason == "Insufficient balance"

    def test_unavailable_gateway_is_retryable(self):
        gateway = FakeGateway()
        gateway.configure(unavailable=True)

        with pytest.raises(ExternalGatewayError) as exc:
            gateway.create_intent(100, "INR", receipt="r")
        assert exc.value.retryable is True
        assert exc.value.status_code == 503


class TestRazorpayGateway:
    def test_create_intent(self):
        def handler(request):
            assert request.url.path == "/v1/orders"
            assert request.headers["authorization"].startswith("Basic ")
            body = json.loads(request.content)
            assert body["amount"] == 223964
            return httpx.Response(
                200,
                json={"id": "order_Nf8a1b", "amount": 223964, "currency": "INR", "receipt": "cart_1", "status": "created"},
            )

        result = _razorpay(handler).create_intent(223964, "INR", receipt="cart_1")

        assert result.intent_id == "order_Nf8a1b"
        assert result.gateway_status == "created"

    def test_rejected_intent_is_not_retryable(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "Amount too small"}})

        with pytest.raises(ExternalGatewayError) as exc:
            _razorpay(handler).create_intent(1, "INR", receipt="cart_1")
        assert exc.value.retryable is False
        assert exc.value.status_code == 502
        assert "Amount too small" in exc.value.message

    def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ExternalGatewayError) as exc:
            _razorpay(handler).create_intent(100, "INR", receipt="cart_1")
        assert exc.value.retryable is True

    def test_server_error_is_retryable(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(ExternalGatewayError) as exc:
            _razorpay(handler).create_refund("pay_1", 100)
        assert exc.value.status_code == 503

    def test_refund(self):
        def handler(request):
            assert request.url.path == "/v1/payments/pay_1/refund"
            return httpx.Response(200, json={"id": "rfnd_1", "status": "processed"})

        result = _razorpay(handler).create_refund("pay_1", 50000, notes={"reason": "Damaged"})

        assert result.success is True
        assert result.gateway_refund_id == "rfnd_1"

    def test_refund_rejection_is_a_result(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "Payment not captured"}})

        result = _razorpay(handler).create_refund("pay_1", 50000)

        assert result.success is False
        assert result.failure_reason == "Payment not captured"


class TestGatewayFactory:
    def test_defaults_to_fake(self, monkeypatch):
        monkeypatch.delenv("PAYMENT_GATEWAY", raising=False)
        reset_gateway()

        assert isinstance(get_gateway(), FakeGateway)

    def test_razorpay_from_environment(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "razorpay")
        monkeypatch.setenv("PAYMENT_KEY_ID", "rzp_live_key")
        monkeypatch.setenv("PAYMENT_KEY_SECRET", "secret")
        monkeypatch.setenv("PAYMENT_WEBHOOK_SECRET", "whsec")
        monkeypatch.setenv("PAYMENT_GATEWAY_TIMEOUT", "3")
        reset_gateway()

        gateway = get_gateway()

        assert isinstance(gateway, RazorpayGateway)
        assert gateway.key_id == "rzp_live_key"
        assert gateway.timeout == 3.0
