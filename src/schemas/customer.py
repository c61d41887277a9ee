"""Customer Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.schemas.common import PaginatedMeta


class CustomerCreate(BaseModel):
    """Schema for creating a customer via POST /customers."""

    model_config = ConfigDict(from_attributes=True)

    email: EmailStr = Field(description="Customer email (unique)")
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    marketing_consent: bool = Field(default=False, description="Opted in to marketing email")


class CustomerUpdate(BaseModel):
    """Schema for updating a customer. All fields optional."""

    model_config = ConfigDict(from_attributes=True)

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    marketing_consent: bool | None = Field(default=None)


class CustomerResponse(BaseModel):
    """Schema for customer API responses, including derived counts."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Customer unique identifier")
    email: str = Field(description="Customer email")
    first_name: str | None = Field(default=None)
    last_name: str | None = Field(default=None)
    phone: str | None = Field(default=None)
    marketing_consent: bool = Field(default=False)
    stripe_customer_id: str | None = Field(default=None, description="Linked Stripe customer")
    address_count: int = Field(default=0, description="Number of saved addresses")
    payment_method_count: int = Field(default=0, description="Number of active saved payment methods")
    order_count: int = Field(default=0, description="Number of orders")
    created_at: datetime = Field(description="Creation timestamp")


class CustomerCreateResponse(CustomerResponse):
    """Customer creation response. ``existing`` is true when the email was already registered."""

    existing: bool = Field(default=False, description="Whether an existing customer was returned")


class CustomerListResponse(BaseModel):
    """Schema for customer list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CustomerResponse] = Field(description="Customers, newest first")
    meta: PaginatedMeta = Field(description="Pagination metadata")


class CustomerDeleteRequest(BaseModel):
    """Typed confirmation required to delete a customer."""

    model_config = ConfigDict(from_attributes=True)

    confirmation: str = Field(description="Must be exactly 'DELETE'")


class CustomerDeleteResponse(BaseModel):
    """Result of a customer deletion."""

    model_config = ConfigDict(from_attributes=True)

    deleted: bool = Field(description="Whether the customer was deleted")
    addresses_deleted: int = Field(description="Addresses removed")
    payment_methods_deactivated: int = Field(description="Payment methods deactivated")
