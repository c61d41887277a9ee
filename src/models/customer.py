"""Customer model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Customer(TypedDict):
    """Customer table row representation.

    Address, payment method and order counts are not stored; they are
    derived at query time by the customer service.
    """

    id: UUID
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    marketing_consent: bool
    stripe_customer_id: str | None
    created_at: datetime
    updated_at: datetime


class CustomerCreate(TypedDict, total=False):
    """Data required to create a new customer. Only email is required."""

    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    marketing_consent: bool


class CustomerUpdate(TypedDict, total=False):
    """Data that can be updated on a customer."""

    first_name: str | None
    last_name: str | None
    phone: str | None
    marketing_consent: bool
    stripe_customer_id: str
