"""Checkout intent log type definitions.

A checkout intent is the persisted record of one attempt to turn a cart
into a paid order. It lets the reconciliation job find orders that were
created but never paid or compensated.
"""

from datetime import datetime
from typing import Any, Literal, TypedDict
from uuid import UUID


CheckoutIntentState = Literal[
    "started",
    "order_created",
    "payment_pending",
    "succeeded",
    "failed",
    "compensated",
    "compensation_failed",
]

# States the reconciliation job treats as unresolved
OPEN_INTENT_STATES: tuple[str, ...] = ("started", "order_created", "payment_pending", "compensation_failed")

INTENT_TRANSITIONS: dict[str, frozenset[str]] = {
    "started": frozenset({"order_created", "failed"}),
    "order_created": frozenset({"payment_pending", "succeeded", "failed"}),
    "payment_pending": frozenset({"succeeded", "failed"}),
    "failed": frozenset({"compensated", "compensation_failed"}),
    "compensation_failed": frozenset({"compensated"}),
    "succeeded": frozenset(),
    "compensated": frozenset(),
}


class CheckoutIntent(TypedDict):
    """checkout_intents table row representation."""

    id: UUID
    idempotency_key: str | None
    order_id: UUID | None
    customer_id: UUID | None
    provider: str
    state: CheckoutIntentState
    provider_reference: str | None
    failure_reason: str | None
    response: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime
