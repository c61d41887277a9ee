"""Checkout Pydantic schemas for API request/response models.

Request fields accept empty strings; the checkout service reports every
missing field at once as a field map.
"""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.address import AddressResponse
from src.schemas.cart import CartResponse
from src.schemas.common import Money
from src.schemas.customer import CustomerResponse
from src.schemas.payment_method import PaymentMethodResponse


CheckoutOutcome = Literal["succeeded", "requires_action", "approval_required", "processing"]


class CheckoutContact(BaseModel):
    """Customer contact fields from the checkout form."""

    model_config = ConfigDict(from_attributes=True)

    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    marketing_consent: bool = Field(default=False)


class CheckoutAddress(BaseModel):
    """Address fields from the checkout form."""

    model_config = ConfigDict(from_attributes=True)

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    company: str | None = Field(default=None, max_length=100)
    address_line_1: str = Field(default="", max_length=200)
    address_line_2: str | None = Field(default=None, max_length=200)
    city: str = Field(default="", max_length=100)
    county: str | None = Field(default=None, max_length=100)
    postcode: str = Field(default="", max_length=20)
    country: str = Field(default="GB", max_length=2)
    phone: str | None = Field(default=None, max_length=30)
    save_to_account: bool = Field(default=False, description="Save the address for signed-in customers")


class CheckoutPayment(BaseModel):
    """Payment selection from the checkout form."""

    model_config = ConfigDict(from_attributes=True)

    method: str = Field(default="", description="card, paypal, apple_pay or google_pay")
    saved_payment_method_id: UUID | None = Field(default=None, description="Saved method to charge")
    stripe_payment_method_id: str | None = Field(
        default=None,
        description="pm_ id from the embedded card form or the wallet payment sheet",
    )
    save_payment_method: bool = Field(default=False, description="Keep the card for future orders")


class CheckoutRequest(BaseModel):
    """Schema for POST /checkout."""

    model_config = ConfigDict(from_attributes=True)

    customer: CheckoutContact = Field(default_factory=CheckoutContact)
    billing: CheckoutAddress | None = Field(default=None, description="Entered billing address")
    shipping: CheckoutAddress | None = Field(default=None, description="Entered shipping address")
    same_as_billing: bool = Field(default=True)
    billing_address_id: UUID | None = Field(default=None, description="Saved billing address")
    shipping_address_id: UUID | None = Field(default=None, description="Saved shipping address")
    payment: CheckoutPayment = Field(default_factory=CheckoutPayment)
    notes: str | None = Field(default=None, max_length=2000)


class CheckoutResponse(BaseModel):
    """Outcome of a checkout submission.

    ``succeeded``: paid; redirect to ``confirmation_url``.
    ``requires_action``: confirm ``client_secret`` with Stripe.js, then call confirm.
    ``approval_required``: open ``approval_url`` for PayPal, then capture or poll.
    """

    model_config = ConfigDict(from_attributes=True)

    outcome: CheckoutOutcome = Field(description="What the client must do next")
    order_id: UUID = Field(description="Created order ID")
    order_number: str = Field(description="Human-readable order number")
    total: Money = Field(description="Charged total")
    currency: str = Field(default="GBP")
    payment_status: str = Field(description="Current payment status")
    confirmation_url: str | None = Field(default=None, description="Where to send the customer once paid")
    client_secret: str | None = Field(default=None, description="Stripe PaymentIntent client secret")
    approval_url: str | None = Field(default=None, description="PayPal approval URL")
    paypal_order_id: str | None = Field(default=None, description="PayPal order ID")


class PayPalCaptureRequest(BaseModel):
    """Schema for POST /checkout/paypal/capture."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Our order ID")
    paypal_order_id: str = Field(min_length=1, description="Approved PayPal order ID")


class CheckoutContextResponse(BaseModel):
    """Everything the checkout page needs to pre-fill the form."""

    model_config = ConfigDict(from_attributes=True)

    cart: CartResponse
    customer: CustomerResponse | None = None
    default_billing_address: AddressResponse | None = None
    default_shipping_address: AddressResponse | None = None
    default_payment_method: PaymentMethodResponse | None = None
    saved_payment_methods: list[PaymentMethodResponse] = Field(default_factory=list)
    stripe_publishable_key: str | None = None
    paypal_enabled: bool = False
    apple_pay_enabled: bool = False
