"""Razorpay payment gateway adapter.

Talks to the Razorpay REST API with an ``httpx`` client. Every call carries a
bounded timeout; timeouts, connection failures and 5xx responses surface as a
retryable ``ExternalGatewayError`` so the caller can answer 503 instead of
hanging the request.
"""

import httpx
import structlog

from ordering.exceptions import ExternalGatewayError
from ordering.payment.gateway.port import IntentResult, PaymentGateway, RefundResult

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        timeout: float = 10.0,
        base_url: str = "https://api.razorpay.com/v1",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(key_id, key_secret, webhook_secret)
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            response = self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Payment gateway timed out", path=path, timeout=self.timeout)
            raise ExternalGatewayError("Payment gateway timed out", retryable=True) from exc
        except httpx.TransportError as exc:
            logger.warning("Payment gateway unreachable", path=path, error=type(exc).__name__)
            raise ExternalGatewayError("Payment gateway unreachable", retryable=True) from exc

        if response.status_code >= 500:
            logger.warning("Payment gateway error", path=path, status_code=response.status_code)
            raise ExternalGatewayError(
                f"Payment gateway returned {response.status_code}",
                retryable=True,
            )
        return response

    @staticmethod
    def _error_description(response: httpx.Response) -> str:
        try:
            return response.json().get("error", {}).get("description") or response.text
        except ValueError:
            return response.text

    def create_intent(self, amount_minor, currency, receipt, notes=None) -> IntentResult:
        response = self._post(
            "/orders",
            {
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        if response.status_code >= 400:
            raise ExternalGatewayError(
                f"Payment intent rejected: {self._error_description(response)}",
                retryable=False,
            )

        body = response.json()
        return IntentResult(
            intent_id=body["id"],
            amount_minor=body.get("amount", amount_minor),
            currency=body.get("currency", currency),
            receipt=body.get("receipt", receipt),
            gateway_status=body.get("status"),
        )

    def create_refund(self, payment_id, amount_minor, notes=None) -> RefundResult:
        response = self._post(
            f"/payments/{payment_id}/refund",
            {"amount": amount_minor, "notes": notes or {}},
        )
        if response.status_code >= 400:
            return RefundResult(
                success=False,
                gateway_status="failed",
                failure_reason=self._error_description(response),
            )

        body = response.json()
        return RefundResult(
            success=True,
            gateway_refund_id=body.get("id"),
            gateway_status=body.get("status"),
        )
