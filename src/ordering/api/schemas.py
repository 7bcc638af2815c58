"""Pydantic request/response schemas for the checkout API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Bodies are validated here once; handlers never
see malformed input.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

PaymentMethodName = Literal["cod", "card", "upi", "netbanking", "wallet"]
StatusName = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"]


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=1, max_length=20)
    country: str = "India"
    phone: str = Field(min_length=1, max_length=20)


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint."""

    success: bool = True
    message: str | None = None
    data: Any = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    size: str | None = None
    color: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "size": "M",
                    "color": "Indigo",
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class VerifyPaymentRequest(BaseModel):
    intent_id: str
    payment_id: str
    signature: str
    shipping_address: AddressSchema
    payment_method: PaymentMethodName = "card"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "intent_id": "order_Nf8a1b2c3d4e5f",
                    "payment_id": "pay_Nf8a9z8y7x6w5v",
                    "signature": "5f2b...e91c",
                    "shipping_address": {
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "zip_code": "560001",
                        "country": "India",
                        "phone": "9876543210",
                    },
                    "payment_method": "upi",
                }
            ]
        }
    }


class RefundRequest(BaseModel):
    order_id: str
    item_id: str
    amount: float = Field(gt=0)
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class UpdateStatusRequest(BaseModel):
    status: StatusName
    reason: str | None = Field(default=None, max_length=500)
    note: str | None = Field(default=None, max_length=1000)


class TrackingRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=100)
    tracking_url: str | None = Field(default=None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
