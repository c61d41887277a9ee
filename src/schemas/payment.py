"""Payment provider Pydantic schemas (Stripe, PayPal, Apple Pay)."""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.schemas.common import Money


class StripeCustomerRequest(BaseModel):
    """Schema for POST /stripe/customers."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID = Field(description="Our customer ID")


class StripeCustomerResponse(BaseModel):
    """Linked Stripe customer."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    stripe_customer_id: str
    created: bool = Field(description="Whether a new Stripe customer was created")


class SetupIntentRequest(BaseModel):
    """Schema for POST /stripe/setup-intent."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID = Field(description="Customer the method will be saved for")
    payment_method_types: list[str] = Field(default_factory=lambda: ["card"])


class SetupIntentResponse(BaseModel):
    """Setup intent for saving a card via Stripe Elements."""

    model_config = ConfigDict(from_attributes=True)

    client_secret: str
    setup_intent_id: str
    stripe_customer_id: str


class PaymentIntentRequest(BaseModel):
    """Schema for POST /stripe/create-payment-intent. The amount comes from the order."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order to collect payment for")
    payment_method_types: list[str] = Field(default_factory=lambda: ["card"])


class PaymentIntentResponse(BaseModel):
    """PaymentIntent handed to Stripe.js or a wallet payment sheet."""

    model_config = ConfigDict(from_attributes=True)

    client_secret: str
    payment_intent_id: str
    amount: Money
    currency: str


class SavedPaymentRequest(BaseModel):
    """Schema for POST /stripe/process-saved-payment."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order to pay")
    payment_method_id: UUID = Field(description="Saved payment method ID")


class PaymentProcessRequest(BaseModel):
    """Schema for POST /payments/process."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order to pay")
    payment_method: Literal["card", "paypal", "apple_pay", "google_pay"]
    stripe_payment_method_id: str | None = Field(default=None, description="pm_ id for card and wallet payments")
    paypal_order_id: str | None = Field(default=None, description="Approved PayPal order to capture")

    @model_validator(mode="after")
    def check_provider_reference(self) -> "PaymentProcessRequest":
        """Each method needs its provider reference."""
        if self.payment_method == "paypal" and not self.paypal_order_id:
            raise ValueError("paypal_order_id is required for PayPal payments")
        if self.payment_method != "paypal" and not self.stripe_payment_method_id:
            raise ValueError("stripe_payment_method_id is required for card and wallet payments")
        return self


class PaymentResultResponse(BaseModel):
    """Outcome of processing a payment for an existing order."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    order_id: UUID
    payment_id: str | None = None
    payment_status: str
    order_status: str
    requires_action: bool = False
    client_secret: str | None = None


class ApplePayValidateRequest(BaseModel):
    """Schema for POST /apple-pay/validate-merchant."""

    model_config = ConfigDict(from_attributes=True)

    validation_url: str = Field(min_length=1, description="URL from the onvalidatemerchant event")
    domain_name: str | None = Field(default=None)
    display_name: str | None = Field(default=None)


class ApplePayValidateResponse(BaseModel):
    """Opaque merchant session returned by Apple."""

    model_config = ConfigDict(from_attributes=True)

    merchant_session: dict[str, Any]


class PayPalOrderRequest(BaseModel):
    """Schema for POST /paypal/create-order."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Pending order to pay with PayPal")


class PayPalOrderResponse(BaseModel):
    """PayPal order awaiting the customer's approval."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    paypal_order_id: str
    approval_url: str | None = None
