"""Order aggregate (CQRS): the immutable record of a confirmed purchase.

An order is created once, at payment confirmation, from a snapshot of the
cart. After that only the lifecycle methods below may change it: status
transitions (order-wide or per item), tracking, payment outcome and refunds.
Every change appends to ``status_history``; nothing is ever removed from it.

Items are partitioned into one VendorOrderGroup per vendor so that each
vendor can fulfil its part independently while the customer sees one order.
"""

import json
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.exceptions import CancellationWindowExpired
from ordering.order.events import (
    OrderCancelled,
    OrderItemRefunded,
    OrderItemShipped,
    OrderItemStatusChanged,
    OrderPaymentCaptured,
    OrderPaymentFailed,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    RefundSettled,
)
from ordering.order.lifecycle import (
    ALLOWED_TRANSITIONS,
    CAPTURED_PAYMENT_STATUSES,
    SELF_CANCELLATION_WINDOW,
    UNSHIPPED_STATUSES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    derive_group_status,
    is_terminal,
)
from ordering.shared.address import ShippingAddress
from ordering.shared.pricing import money

SYSTEM_ACTOR = "system"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class OrderPricing:
    """Financial summary locked at checkout.

    ``total_amount`` always equals subtotal + tax + shipping - discount and is
    never negative.
    """

    subtotal = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    shipping_fee = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    total_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="INR")

    @invariant.post
    def total_matches_components(self):
        expected = (self.subtotal or 0) + (self.tax_amount or 0) + (self.shipping_fee or 0) - (self.discount_amount or 0)
        if abs(money(expected) - (self.total_amount or 0)) > 0.01:
            raise ValidationError({"total_amount": ["Total must equal subtotal + tax + shipping - discount"]})

    @invariant.post
    def discount_cannot_exceed_subtotal(self):
        if (self.discount_amount or 0) > (self.subtotal or 0) + 0.005:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the subtotal"]})


@ordering.value_object(part_of="Order")
class ProductSnapshot:
    """Product details as they were when the order was placed."""

    name = String(required=True, max_length=255)
    images = Text()  # JSON array
    category = String(max_length=100)
    size = String(max_length=50)
    color = String(max_length=50)


@ordering.value_object(part_of="Order")
class VendorSnapshot:
    name = String(max_length=255)
    store_name = String(max_length=255)
    location = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A purchased line, with its own fulfilment status and refund record."""

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    shop_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    size = String(max_length=50)
    color = String(max_length=50)
    product_snapshot = ValueObject(ProductSnapshot)
    vendor_snapshot = ValueObject(VendorSnapshot)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    tracking_number = String(max_length=100)
    tracking_url = String(max_length=500)
    shipped_at = DateTime()
    delivered_at = DateTime()
    refund_amount = Float(default=0.0, min_value=0.0)
    refund_reason = String(max_length=500)
    refunded_at = DateTime()
    refund_status = String(choices=RefundStatus)
    gateway_refund_id = String(max_length=100)
    stock_released = Boolean(default=False)

    @invariant.post
    def refund_cannot_exceed_line_total(self):
        if (self.refund_amount or 0) > money(self.unit_price * self.quantity) + 0.005:
            raise ValidationError({"refund_amount": ["Refund cannot exceed the amount paid for the item"]})

    @property
    def line_total(self):
        return money(self.unit_price * self.quantity)

    @property
    def refundable_amount(self):
        return money(self.line_total - (self.refund_amount or 0.0))

    @property
    def display_name(self):
        return self.product_snapshot.name if self.product_snapshot else str(self.product_id)


@ordering.entity(part_of="Order")
class VendorOrderGroup:
    vendor_id = Identifier(required=True)
    shop_id = Identifier()
    item_ids = Text(required=True)  # JSON array of OrderItem ids
    subtotal = Float(default=0.0, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)

    @property
    def item_id_list(self):
        return json.loads(self.item_ids) if self.item_ids else []


@ordering.entity(part_of="Order")
class StatusHistoryEntry:
    """One audit trail record. Entries are appended, never edited."""

    status = String(required=True, max_length=50)
    actor = String(required=True, max_length=255)
    reason = String(max_length=500)
    note = Text()
    item_id = Identifier()
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    vendor_groups = HasMany(VendorOrderGroup)
    status_history = HasMany(StatusHistoryEntry)
    pricing = ValueObject(OrderPricing)
    applied_coupons = Text()  # JSON array of {code, discount_amount, discount_type}
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod, required=True)
    payment_gateway = String(max_length=50)
    payment_intent_id = String(required=True, max_length=100, unique=True)
    transaction_id = String(max_length=100)
    payment_captured_at = DateTime()
    shipping_address = ValueObject(ShippingAddress, required=True)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        items,
        pricing,
        shipping_address,
        payment_method,
        payment_gateway,
        payment_intent_id,
        transaction_id=None,
        payment_status=PaymentStatus.PENDING.value,
        applied_coupons=None,
        placed_at=None,
    ):
        """Create a pending order from already-snapshotted items."""
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = placed_at or datetime.now(UTC)

        groups = {}
        for item in items:
            groups.setdefault(str(item.vendor_id), []).append(item)

        vendor_groups = [
            VendorOrderGroup(
                vendor_id=vendor_id,
                shop_id=vendor_items[0].shop_id,
                item_ids=json.dumps([str(i.id) for i in vendor_items]),
                subtotal=money(sum(i.line_total for i in vendor_items)),
                status=OrderStatus.PENDING.value,
            )
            for vendor_id, vendor_items in groups.items()
        ]

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            items=list(items),
            vendor_groups=vendor_groups,
            status_history=[
                StatusHistoryEntry(
                    status=OrderStatus.PENDING.value,
                    actor=SYSTEM_ACTOR,
                    reason="Order placed",
                    changed_at=now,
                )
            ],
            pricing=pricing,
            applied_coupons=json.dumps(applied_coupons or []),
            status=OrderStatus.PENDING.value,
            payment_status=payment_status,
            payment_method=payment_method,
            payment_gateway=payment_gateway,
            payment_intent_id=payment_intent_id,
            transaction_id=transaction_id,
            payment_captured_at=now if payment_status == PaymentStatus.COMPLETED.value else None,
            shipping_address=shipping_address,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                payment_intent_id=payment_intent_id,
                total_amount=pricing.total_amount,
                item_count=len(items),
                vendor_ids=json.dumps(list(groups)),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def item(self, item_id) -> OrderItem:
        found = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if found is None:
            raise ObjectNotFoundError({"item_id": f"Item {item_id} not found in order {self.order_number}"})
        return found

    def group_for(self, item) -> VendorOrderGroup | None:
        return next((g for g in self.vendor_groups if str(item.id) in g.item_id_list), None)

    def involves_vendor(self, vendor_id) -> bool:
        return any(str(i.vendor_id) == str(vendor_id) for i in self.items)

    @property
    def has_captured_payment(self) -> bool:
        return PaymentStatus(self.payment_status) in CAPTURED_PAYMENT_STATUSES

    @property
    def total_refunded(self) -> float:
        return money(sum(i.refund_amount or 0.0 for i in self.items))

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _record(self, status, actor, reason=None, note=None, item_id=None, at=None):
        self.add_status_history(
            StatusHistoryEntry(
                status=status,
                actor=actor,
                reason=reason,
                note=note,
                item_id=str(item_id) if item_id else None,
                changed_at=at or datetime.now(UTC),
            )
        )

    def _refresh_groups(self):
        items_by_id = {str(i.id): i for i in self.items}
        for group in self.vendor_groups:
            statuses = [items_by_id[i].status for i in group.item_id_list if i in items_by_id]
            derived = derive_group_status(statuses)
            if group.status != derived:
                group.status = derived

    def _release_stock(self, item) -> dict:
        """Mark an item's stock as returned and describe what goes back."""
        item.stock_released = True
        return {
            "item_id": str(item.id),
            "product_id": str(item.product_id),
            "size": item.size,
            "color": item.color,
            "quantity": item.quantity,
        }

    @staticmethod
    def _ensure_fulfillable(item):
        """Stock already returned to the ledger cannot be shipped."""
        if item.stock_released:
            raise ValidationError(
                {"status": [f"Stock for {item.display_name} was returned to inventory; the item cannot be fulfilled"]}
            )

    @staticmethod
    def _can_release(item, previous_status) -> bool:
        return OrderStatus(previous_status) in UNSHIPPED_STATUSES and not item.stock_released

    def _apply_status(self, new_status, actor, reason=None, note=None):
        """Set the order status, cascading cancellation; returns (previous, released)."""
        now = datetime.now(UTC)
        previous = self.status
        released = []

        self.status = new_status
        self.updated_at = now
        self._record(new_status, actor, reason=reason, note=note, at=now)

        if new_status == OrderStatus.CANCELLED.value:
            cascade = not self.has_captured_payment
            for item in self.items:
                item_previous = item.status
                if cascade and not is_terminal(item_previous):
                    item.status = OrderStatus.CANCELLED.value
                if self._can_release(item, item_previous):
                    released.append(self._release_stock(item))
            self._refresh_groups()

        return previous, released

    def _announce(self, previous, new_status, actor, reason, released):
        now = datetime.now(UTC)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=new_status,
                actor=actor,
                reason=reason,
                changed_at=now,
            )
        )
        if new_status == OrderStatus.CANCELLED.value:
            self.raise_(
                OrderCancelled(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    actor=actor,
                    reason=reason,
                    released_items=json.dumps(released),
                    cancelled_at=now,
                )
            )

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def transition(self, new_status, actor, reason=None, note=None):
        """Move the order to ``new_status``, recording who did it and why."""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown status {new_status!r}"]}) from None

        current = OrderStatus(self.status)
        if target == current:
            raise ValidationError({"status": [f"Order is already {current.value}"]})
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot move a {current.value} order to {target.value}"]})

        with atomic_change(self):
            previous, released = self._apply_status(target.value, actor, reason=reason, note=note)

        self._announce(previous, target.value, actor, reason, released)
        return self

    def update_item_status(self, item_id, new_status, actor, reason=None):
        """Move a single item, keeping its vendor group in step."""
        item = self.item(item_id)
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown status {new_status!r}"]}) from None

        current = OrderStatus(item.status)
        if target == current:
            raise ValidationError({"status": [f"Item is already {current.value}"]})
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot move a {current.value} item to {target.value}"]})
        if target == OrderStatus.REFUNDED:
            raise ValidationError({"status": ["Items are refunded through a refund, not a status change"]})
        if target != OrderStatus.CANCELLED:
            self._ensure_fulfillable(item)

        now = datetime.now(UTC)
        released_quantity = 0

        with atomic_change(self):
            item.status = target.value
            if target == OrderStatus.SHIPPED and item.shipped_at is None:
                item.shipped_at = now
            if target == OrderStatus.DELIVERED:
                item.delivered_at = now
            if target in (OrderStatus.CANCELLED, OrderStatus.REFUNDED) and self._can_release(item, current.value):
                released_quantity = self._release_stock(item)["quantity"]

            self._refresh_groups()
            self.updated_at = now
            self._record(
                target.value,
                actor,
                reason=f"Item {item.display_name}: {reason or target.value}",
                item_id=item.id,
                at=now,
            )

        self.raise_(
            OrderItemStatusChanged(
                order_id=str(self.id),
                item_id=str(item.id),
                previous_status=current.value,
                new_status=target.value,
                actor=actor,
                reason=reason,
                product_id=str(item.product_id),
                size=item.size,
                color=item.color,
                released_quantity=released_quantity,
            )
        )
        return item

    def add_tracking(self, item_id, tracking_number, actor, tracking_url=None):
        """Attach tracking details to an item and mark it shipped."""
        if not tracking_number:
            raise ValidationError({"tracking_number": ["Tracking number is required"]})

        item = self.item(item_id)
        if is_terminal(item.status):
            raise ValidationError({"status": [f"Cannot ship a {item.status} item"]})
        self._ensure_fulfillable(item)

        with atomic_change(self):
            item.tracking_number = tracking_number
            item.tracking_url = tracking_url

        if item.status != OrderStatus.SHIPPED.value:
            self.update_item_status(item_id, OrderStatus.SHIPPED.value, actor, reason="Shipped with tracking")

        self.raise_(
            OrderItemShipped(
                order_id=str(self.id),
                item_id=str(item.id),
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                shipped_at=item.shipped_at or datetime.now(UTC),
            )
        )
        return item

    def cancel_by_customer(self, customer_id, reason=None, now=None):
        """Customer self-service cancellation.

        Allowed only for the order's own customer, only while the order is
        pending, and only within ``SELF_CANCELLATION_WINDOW`` of creation.
        """
        if str(customer_id) != str(self.customer_id):
            raise ValidationError({"customer_id": ["Order belongs to another customer"]})
        if self.status != OrderStatus.PENDING.value:
            raise ValidationError({"status": ["Only pending orders can be cancelled by the customer"]})

        now = now or datetime.now(UTC)
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        if now - created_at > SELF_CANCELLATION_WINDOW:
            raise CancellationWindowExpired(
                "Orders can only be cancelled within 1 hour of placing them",
                order_id=str(self.id),
            )

        return self.transition(
            OrderStatus.CANCELLED.value,
            actor=f"customer:{customer_id}",
            reason=reason or "Cancelled by customer",
        )

    # -------------------------------------------------------------------
    # Payment outcome
    # -------------------------------------------------------------------
    def mark_payment_captured(self, payment_id=None) -> bool:
        """Record a captured payment. Returns False when nothing changed."""
        if self.payment_status != PaymentStatus.PENDING.value:
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            self.payment_status = PaymentStatus.COMPLETED.value
            self.payment_captured_at = now
            if payment_id and not self.transaction_id:
                self.transaction_id = payment_id
            self.updated_at = now
            self._record(self.status, "gateway", reason="Payment captured", at=now)

        self.raise_(OrderPaymentCaptured(order_id=str(self.id), payment_id=payment_id or self.transaction_id))
        return True

    def mark_payment_failed(self, payment_id=None, reason=None) -> bool:
        """Record a failed payment and cancel the order if it is still open."""
        if self.payment_status in (PaymentStatus.FAILED.value, *(s.value for s in CAPTURED_PAYMENT_STATUSES)):
            return False

        with atomic_change(self):
            self.payment_status = PaymentStatus.FAILED.value
            self.updated_at = datetime.now(UTC)

        self.raise_(OrderPaymentFailed(order_id=str(self.id), payment_id=payment_id, reason=reason))

        if not is_terminal(self.status):
            self.transition(OrderStatus.CANCELLED.value, actor="gateway", reason=reason or "Payment failed")
        return True

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def record_item_refund(self, item_id, amount, reason, actor, gateway_refund_id=None):
        """Book money already returned by the gateway against one item."""
        item = self.item(item_id)
        amount = money(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > item.refundable_amount + 0.005:
            raise ValidationError(
                {"amount": [f"Refund amount exceeds the refundable amount of {item.refundable_amount}"]}
            )

        now = datetime.now(UTC)
        previous_status = item.status
        restock = 0

        with atomic_change(self):
            item.refund_amount = money((item.refund_amount or 0.0) + amount)
            item.refund_reason = reason
            item.refunded_at = now
            item.refund_status = RefundStatus.INITIATED.value
            item.gateway_refund_id = gateway_refund_id
            if previous_status != OrderStatus.REFUNDED.value:
                item.status = OrderStatus.REFUNDED.value
            if self._can_release(item, previous_status):
                restock = self._release_stock(item)["quantity"]

            fully_refunded = all(i.refundable_amount <= 0.005 for i in self.items)
            self.payment_status = (
                PaymentStatus.REFUNDED.value if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED.value
            )
            self._refresh_groups()
            self.updated_at = now
            self._record(
                OrderStatus.REFUNDED.value,
                actor,
                reason=f"Item {item.display_name}: {reason or 'refunded'}",
                note=f"Refunded {amount}",
                item_id=item.id,
                at=now,
            )

        self.raise_(
            OrderItemRefunded(
                order_id=str(self.id),
                item_id=str(item.id),
                amount=amount,
                total_refunded=item.refund_amount,
                reason=reason,
                gateway_refund_id=gateway_refund_id,
                product_id=str(item.product_id),
                size=item.size,
                color=item.color,
                restock_quantity=restock,
            )
        )

        all_items_refunded = all(i.status == OrderStatus.REFUNDED.value for i in self.items)
        if all_items_refunded and self.status != OrderStatus.REFUNDED.value:
            # Derived transition: allowed even from a terminal order status.
            with atomic_change(self):
                previous, released = self._apply_status(
                    OrderStatus.REFUNDED.value,
                    SYSTEM_ACTOR,
                    reason="All items refunded",
                )
            self._announce(previous, OrderStatus.REFUNDED.value, SYSTEM_ACTOR, "All items refunded", released)
            self.raise_(OrderRefunded(order_id=str(self.id), total_refunded=self.total_refunded))

        return item

    def settle_refund(self, gateway_refund_id) -> bool:
        """Mark the item refunded under ``gateway_refund_id`` as processed."""
        item = next((i for i in self.items if i.gateway_refund_id == gateway_refund_id), None)
        if item is None:
            raise ObjectNotFoundError({"gateway_refund_id": f"No item refunded under {gateway_refund_id}"})
        if item.refund_status == RefundStatus.PROCESSED.value:
            return False

        with atomic_change(self):
            item.refund_status = RefundStatus.PROCESSED.value
            self.updated_at = datetime.now(UTC)

        self.raise_(
            RefundSettled(
                order_id=str(self.id),
                item_id=str(item.id),
                gateway_refund_id=gateway_refund_id,
            )
        )
        return True
