"""Order and item status lifecycle.

The same status enum drives the order and each of its items. The transition
table is permissive: any non-terminal status may move to any
other status, and terminal statuses accept nothing further. Tightening the
lifecycle means editing ``ALLOWED_TRANSITIONS`` only.
"""

from datetime import timedelta
from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(Enum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"


class RefundStatus(Enum):
    INITIATED = "initiated"
    PROCESSED = "processed"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Items in these statuses have not left the vendor; their stock can go back.
UNSHIPPED_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})

# Forward progression, used to derive a vendor group's status from its items.
FORWARD_ORDER = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

ALLOWED_TRANSITIONS = {
    status: (frozenset() if status in TERMINAL_STATUSES else frozenset(OrderStatus) - {status})
    for status in OrderStatus
}

# Payment states in which money has actually been taken.
CAPTURED_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED}
)

SELF_CANCELLATION_WINDOW = timedelta(hours=1)


def can_transition(current, new) -> bool:
    return OrderStatus(new) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def is_terminal(status) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def derive_group_status(statuses) -> str:
    """Status of a vendor group from its items' statuses.

    Uniform items give their shared status. Otherwise cancelled/refunded items
    are ignored and the least advanced remaining item sets the pace.
    """
    statuses = [OrderStatus(s) for s in statuses]
    if not statuses:
        return OrderStatus.PENDING.value
    if len(set(statuses)) == 1:
        return statuses[0].value

    progressing = [s for s in statuses if s in FORWARD_ORDER]
    if not progressing:
        if OrderStatus.REFUNDED in statuses:
            return OrderStatus.REFUNDED.value
        return OrderStatus.CANCELLED.value
    return min(progressing, key=FORWARD_ORDER.index).value
