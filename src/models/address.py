"""Address model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


AddressType = Literal["billing", "shipping"]


class Address(TypedDict):
    """Address table row representation.

    At most one address per (customer_id, type) has is_default set.
    """

    id: UUID
    customer_id: UUID
    type: AddressType
    label: str | None
    first_name: str
    last_name: str
    company: str | None
    address_line_1: str
    address_line_2: str | None
    city: str
    county: str | None
    postcode: str
    country: str
    phone: str | None
    is_default: bool
    created_at: datetime
    updated_at: datetime


class AddressCreate(TypedDict, total=False):
    """Data required to create a new address."""

    customer_id: UUID
    type: AddressType
    label: str | None
    first_name: str
    last_name: str
    company: str | None
    address_line_1: str
    address_line_2: str | None
    city: str
    county: str | None
    postcode: str
    country: str
    phone: str | None
    is_default: bool


class AddressUpdate(TypedDict, total=False):
    """Data that can be updated on an address."""

    label: str | None
    first_name: str
    last_name: str
    company: str | None
    address_line_1: str
    address_line_2: str | None
    city: str
    county: str | None
    postcode: str
    country: str
    phone: str | None
    is_default: bool
