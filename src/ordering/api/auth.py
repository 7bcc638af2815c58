"""Caller identity and ownership checks.

Authentication happens upstream; the gateway in front of this service passes
the verified caller in ``X-User-Id`` and ``X-User-Role``. The helpers here
only decide what that caller may touch.
"""

from dataclasses import dataclass
from enum import Enum

from fastapi import Header

from ordering.exceptions import Forbidden, Unauthorized


class Role(Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def label(self) -> str:
        return f"{self.role.value}:{self.user_id}"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def current_actor(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default="customer"),
) -> Actor:
    if not x_user_id:
        raise Unauthorized("Authentication required")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise Unauthorized(f"Unknown role {x_user_role!r}") from None
    return Actor(user_id=x_user_id, role=role)


def ensure_customer_owns(actor: Actor, order) -> None:
    if str(order.customer_id) != actor.user_id:
        raise Forbidden("You can only act on your own orders", order_id=str(order.id))


def ensure_can_view(actor: Actor, order) -> None:
    if actor.is_admin or str(order.customer_id) == actor.user_id:
        return
    if actor.role == Role.VENDOR and order.involves_vendor(actor.user_id):
        return
    raise Forbidden("Not allowed to view this order", order_id=str(order.id))


def ensure_can_manage(actor: Actor, order) -> None:
    """Order-wide changes: admins, or a vendor with items in the order."""
    if actor.is_admin:
        return
    if actor.role == Role.VENDOR and order.involves_vendor(actor.user_id):
        return
    raise Forbidden("Only the order's vendors or an admin can change it", order_id=str(order.id))


def ensure_can_manage_item(actor: Actor, order, item) -> None:
    """Item changes and refunds: admins, or the vendor who sold the item."""
    if actor.is_admin:
        return
    if actor.role == Role.VENDOR and str(item.vendor_id) == actor.user_id:
        return
    raise Forbidden("Only the item's vendor or an admin can change it", order_id=str(order.id))
