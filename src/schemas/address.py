"""Address Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


AddressType = Literal["billing", "shipping"]


class AddressBase(BaseModel):
    """Fields shared by address create requests and responses."""

    model_config = ConfigDict(from_attributes=True)

    type: AddressType = Field(description="Address type")
    label: str | None = Field(default=None, max_length=50, description="Friendly label, e.g. 'Home'")
    first_name: str = Field(min_length=1, max_length=100, description="Recipient first name")
    last_name: str = Field(min_length=1, max_length=100, description="Recipient last name")
    company: str | None = Field(default=None, max_length=100, description="Company name")
    address_line_1: str = Field(min_length=1, max_length=200, description="First address line")
    address_line_2: str | None = Field(default=None, max_length=200, description="Second address line")
    city: str = Field(min_length=1, max_length=100, description="Town or city")
    county: str | None = Field(default=None, max_length=100, description="County")
    postcode: str = Field(min_length=1, max_length=20, description="Postcode")
    country: str = Field(default="GB", min_length=2, max_length=2, description="ISO 3166-1 alpha-2 country code")
    phone: str | None = Field(default=None, max_length=30, description="Contact phone")


class AddressCreate(AddressBase):
    """Schema for creating an address."""

    customer_id: UUID | None = Field(default=None, description="Owning customer; defaults to the caller's customer record")
    is_default: bool = Field(default=False, description="Make this the default address for its type")


class AddressUpdate(BaseModel):
    """Schema for updating an address. All fields optional."""

    model_config = ConfigDict(from_attributes=True)

    label: str | None = Field(default=None, max_length=50)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    company: str | None = Field(default=None, max_length=100)
    address_line_1: str | None = Field(default=None, min_length=1, max_length=200)
    address_line_2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, min_length=1, max_length=100)
    county: str | None = Field(default=None, max_length=100)
    postcode: str | None = Field(default=None, min_length=1, max_length=20)
    country: str | None = Field(default=None, min_length=2, max_length=2)
    phone: str | None = Field(default=None, max_length=30)
    is_default: bool | None = Field(default=None, description="Set true to make this the default")


class AddressResponse(AddressBase):
    """Schema for address API responses."""

    id: UUID = Field(description="Address unique identifier")
    customer_id: UUID = Field(description="Owning customer")
    is_default: bool = Field(description="Whether this is the default for its type")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class AddressListResponse(BaseModel):
    """Schema for address list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[AddressResponse] = Field(description="Addresses, default first then newest")
