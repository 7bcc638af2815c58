"""Gateway webhook processing: command and handler.

Each event type maps to an idempotent state change. Replays of an event that
was already applied, and event types this service does not care about, are
acknowledged without changing anything.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.payment.intent import PaymentIntent

logger = structlog.get_logger(__name__)

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
REFUND_PROCESSED = "refund.processed"


@ordering.command(part_of="PaymentIntent")
class ProcessGatewayWebhook:
    event_type = String(required=True, max_length=100)
    intent_id = String(max_length=100)
    payment_id = String(max_length=100)
    refund_id = String(max_length=100)
    reason = String(max_length=500)


def parse_webhook(payload: dict) -> dict:
    """Pull the identifiers out of a gateway webhook body."""
    body = payload.get("payload") or {}
    payment = (body.get("payment") or {}).get("entity") or {}
    refund = (body.get("refund") or {}).get("entity") or {}
    return {
        "event_type": payload.get("event") or "",
        "intent_id": payment.get("order_id"),
        "payment_id": payment.get("id") or refund.get("payment_id"),
        "refund_id": refund.get("id"),
        "reason": payment.get("error_description"),
    }


@ordering.command_handler(part_of=PaymentIntent)
class GatewayWebhookHandler:
    @handle(ProcessGatewayWebhook)
    def process_webhook(self, command):
        if command.event_type == PAYMENT_CAPTURED:
            return self._payment_captured(command)
        if command.event_type == PAYMENT_FAILED:
            return self._payment_failed(command)
        if command.event_type == REFUND_PROCESSED:
            return self._refund_processed(command)

        logger.info("Ignoring unhandled webhook event", webhook_event=command.event_type)
        return "ignored"

    def _payment_captured(self, command):
        intents = current_domain.repository_for(PaymentIntent)
        intent = intents.find_by_intent_id(command.intent_id) if command.intent_id else None
        if intent is None:
            logger.warning("Capture for unknown payment intent", intent_id=command.intent_id)
            return "ignored"

        if intent.mark_captured(command.payment_id):
            intents.add(intent)

        orders = current_domain.repository_for(Order)
        order = orders.find_by_intent(command.intent_id)
        if order is None:
            # Verify has not run yet; the order will be created as paid.
            logger.info("Payment captured before confirmation", intent_id=command.intent_id)
            return "recorded"

        if order.mark_payment_captured(command.payment_id):
            orders.add(order)
            logger.info("Payment captured", intent_id=command.intent_id, order_id=str(order.id))
            return "processed"
        return "duplicate"

    def _payment_failed(self, command):
        intents = current_domain.repository_for(PaymentIntent)
        intent = intents.find_by_intent_id(command.intent_id) if command.intent_id else None
        if intent is None:
            logger.warning("Failure for unknown payment intent", intent_id=command.intent_id)
            return "ignored"

        if intent.mark_failed(command.payment_id, reason=command.reason):
            intents.add(intent)

        orders = current_domain.repository_for(Order)
        order = orders.find_by_intent(command.intent_id)
        if order is None:
            return "recorded"

        if order.mark_payment_failed(command.payment_id, reason=command.reason or "Payment failed"):
            orders.add(order)
            logger.info("Payment failed, order cancelled", intent_id=command.intent_id, order_id=str(order.id))
            return "processed"
        return "duplicate"

    def _refund_processed(self, command):
        orders = current_domain.repository_for(Order)
        order = orders.find_by_transaction(command.payment_id) if command.payment_id else None
        if order is None:
            logger.warning("Refund for unknown payment", payment_id=command.payment_id)
            return "ignored"

        try:
            changed = order.settle_refund(command.refund_id)
        except ObjectNotFoundError:
            logger.warning("Refund id not recorded on order", order_id=str(order.id), refund_id=command.refund_id)
            return "ignored"

        if changed:
            orders.add(order)
            logger.info("Refund settled", order_id=str(order.id), refund_id=command.refund_id)
            return "processed"
        return "duplicate"
