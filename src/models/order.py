"""Order model type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, TypedDict
from uuid import UUID


# Order status enum values matching database enum
OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "ready",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
    "on-hold",
    "failed",
]

PaymentStatus = Literal["pending", "paid", "failed", "refunded"]

PaymentMethodType = Literal["card", "paypal", "apple_pay", "google_pay"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "cancelled", "refunded"})

# Statuses an order may not be cancelled from
SHIPPED_STATUSES: frozenset[str] = frozenset({"shipped", "delivered"})

ORDER_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "processing", "on-hold", "cancelled", "failed"}),
    "confirmed": frozenset({"processing", "ready", "on-hold", "cancelled"}),
    "processing": frozenset({"ready", "shipped", "on-hold", "cancelled"}),
    "ready": frozenset({"shipped", "on-hold", "cancelled"}),
    "on-hold": frozenset({"pending", "confirmed", "processing", "ready", "cancelled"}),
    "shipped": frozenset({"delivered", "refunded"}),
    "failed": frozenset({"pending", "cancelled"}),
    "delivered": frozenset({"refunded"}),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Check whether an order may move from ``current`` to ``target`` status.

    Re-applying the current status is always allowed so bulk actions stay idempotent.
    """
    if current == target:
        return True
    return target in ORDER_STATUS_TRANSITIONS.get(current, frozenset())


class OrderItem(TypedDict):
    """Order line item row.

    Product name and SKU are snapshotted so later catalogue edits
    do not rewrite order history.
    """

    id: UUID
    order_id: UUID
    product_id: UUID
    quantity: int
    price: Decimal
    total: Decimal
    product_name: str
    product_sku: str | None
    created_at: datetime


class Order(TypedDict):
    """Order table row representation.

    Represents an order stored in the orders table.
    Maps directly to the database schema.
    """

    id: UUID
    order_number: str | None
    customer_id: UUID | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethodType | None
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str
    notes: str | None
    billing_address_id: UUID | None
    shipping_address_id: UUID | None
    stripe_payment_intent_id: str | None
    paypal_order_id: str | None
    tracking_number: str | None
    shipped_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict, total=False):
    """Data required to insert a new order row."""

    customer_id: UUID | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethodType
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str
    notes: str | None
    billing_address_id: UUID | None
    shipping_address_id: UUID | None


class OrderUpdate(TypedDict, total=False):
    """Data that can be updated on an order."""

    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    notes: str | None
    stripe_payment_intent_id: str
    paypal_order_id: str
    tracking_number: str | None
    shipped_at: str
