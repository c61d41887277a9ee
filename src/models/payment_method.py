"""Saved payment method type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

from src.models.order import PaymentMethodType


PaymentProvider = Literal["stripe", "paypal"]


class PaymentMethod(TypedDict):
    """Payment method table row representation.

    Rows are never hard-deleted; removing a method clears is_active.
    At most one active method per customer has is_default set.
    """

    id: UUID
    customer_id: UUID
    type: PaymentMethodType
    provider: PaymentProvider
    provider_payment_method_id: str
    provider_customer_id: str | None
    display_name: str | None
    brand: str | None
    last_four: str | None
    exp_month: int | None
    exp_year: int | None
    paypal_email: str | None
    billing_address_id: UUID | None
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PaymentMethodCreate(TypedDict, total=False):
    """Data required to save a payment method."""

    customer_id: UUID
    type: PaymentMethodType
    provider: PaymentProvider
    provider_payment_method_id: str
    provider_customer_id: str | None
    display_name: str | None
    brand: str | None
    last_four: str | None
    exp_month: int | None
    exp_year: int | None
    paypal_email: str | None
    billing_address_id: UUID | None
    is_default: bool
