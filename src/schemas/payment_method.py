"""Saved payment method Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


PaymentMethodType = Literal["card", "paypal", "apple_pay", "google_pay"]


class PaymentMethodCreate(BaseModel):
    """Schema for saving a payment method after a successful setup intent."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID | None = Field(default=None, description="Owning customer; defaults to the caller's customer record")
    type: PaymentMethodType = Field(description="Payment method type")
    provider: Literal["stripe", "paypal"] = Field(default="stripe", description="Processor holding the method")
    provider_payment_method_id: str = Field(min_length=1, description="Processor-side payment method ID (pm_...)")
    provider_customer_id: str | None = Field(default=None, description="Processor-side customer ID (cus_...)")
    display_name: str | None = Field(default=None, max_length=100, description="Friendly name")
    brand: str | None = Field(default=None, description="Card brand")
    last_four: str | None = Field(default=None, pattern=r"^\d{4}$", description="Last four card digits")
    exp_month: int | None = Field(default=None, ge=1, le=12, description="Card expiry month")
    exp_year: int | None = Field(default=None, ge=2000, le=2100, description="Card expiry year")
    paypal_email: str | None = Field(default=None, description="PayPal account email")
    billing_address_id: UUID | None = Field(default=None, description="Linked billing address")
    is_default: bool = Field(default=False, description="Make this the default method")


class PaymentMethodUpdate(BaseModel):
    """Schema for updating a saved payment method."""

    model_config = ConfigDict(from_attributes=True)

    display_name: str | None = Field(default=None, max_length=100)
    billing_address_id: UUID | None = Field(default=None)
    set_as_default: bool | None = Field(default=None, description="Set true to make this the default")


class PaymentMethodResponse(BaseModel):
    """Schema for payment method API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Payment method unique identifier")
    customer_id: UUID = Field(description="Owning customer")
    type: PaymentMethodType = Field(description="Payment method type")
    provider: str = Field(description="Processor holding the method")
    display_name: str | None = Field(default=None)
    brand: str | None = Field(default=None)
    last_four: str | None = Field(default=None)
    exp_month: int | None = Field(default=None)
    exp_year: int | None = Field(default=None)
    paypal_email: str | None = Field(default=None)
    billing_address_id: UUID | None = Field(default=None)
    is_default: bool = Field(description="Whether this is the default method")
    created_at: datetime = Field(description="Creation timestamp")


class PaymentMethodListResponse(BaseModel):
    """Schema for payment method list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[PaymentMethodResponse] = Field(description="Active payment methods, default first")
