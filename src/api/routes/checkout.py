"""Checkout API routes: cart to paid order."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Header, status

from src.api.deps import CartSession, CheckoutRateLimit, OptionalUser
from src.api.routes.cart import build_cart_response
from src.schemas.address import AddressResponse
from src.schemas.checkout import (
    CheckoutContextResponse,
    CheckoutRequest,
    CheckoutResponse,
    PayPalCaptureRequest,
)
from src.schemas.customer import CustomerResponse
from src.schemas.payment_method import PaymentMethodResponse
from src.services.checkout_service import CheckoutService, get_checkout_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def _queue_notifications(
    background_tasks: BackgroundTasks,
    service: CheckoutService,
    result: dict,
) -> None:
    if result.get("outcome") == "succeeded":
        background_tasks.add_task(service.send_order_notifications, result["order_id"])


@router.get(
    "/context",
    response_model=CheckoutContextResponse,
    summary="Checkout page context",
    description="Cart, saved customer details and enabled payment methods for pre-filling the checkout form.",
)
async def get_checkout_context(
    user: OptionalUser,
    cart_session: CartSession,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutContextResponse:
    """Get everything the checkout page needs.

    Guests get the cart and payment configuration only; signed-in
    customers also get their default addresses and saved payment methods.
    """
    context = await service.get_context(user, cart_session)

    def _optional(schema, value):
        return schema(**value) if value else None

    return CheckoutContextResponse(
        cart=build_cart_response(context["cart"]),
        customer=_optional(CustomerResponse, context["customer"]),
        default_billing_address=_optional(AddressResponse, context["default_billing_address"]),
        default_shipping_address=_optional(AddressResponse, context["default_shipping_address"]),
        default_payment_method=_optional(PaymentMethodResponse, context["default_payment_method"]),
        saved_payment_methods=[PaymentMethodResponse(**m) for m in context["saved_payment_methods"]],
        stripe_publishable_key=context["stripe_publishable_key"],
        paypal_enabled=context["paypal_enabled"],
        apple_pay_enabled=context["apple_pay_enabled"],
    )


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit checkout",
    description=(
        "Creates an order from the cart and takes payment. Send an Idempotency-Key header "
        "to make retries return the first outcome."
    ),
    responses={
        402: {"description": "Payment declined; the order was cancelled"},
        409: {"description": "The same checkout is still being processed"},
        422: {"description": "Form fields missing or invalid"},
        429: {"description": "Too many checkout attempts"},
    },
)
async def submit_checkout(
    data: CheckoutRequest,
    background_tasks: BackgroundTasks,
    user: OptionalUser,
    cart_session: CartSession,
    _rate_limit: CheckoutRateLimit,
    idempotency_key: Annotated[str | None, Header(max_length=255)] = None,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Submit the checkout form.

    Outcomes:
    - ``succeeded``: paid; emails are queued and the cart is cleared.
    - ``requires_action``: confirm the client secret with Stripe.js, then
      call ``POST /checkout/orders/{id}/confirm``.
    - ``approval_required``: open the PayPal approval URL, then call
      ``POST /checkout/paypal/capture``.
    - ``processing``: Stripe has not settled the payment yet; poll the
      order status until the webhook marks it paid.
    """
    result = await service.submit(
        data,
        cart_session_id=cart_session,
        user=user,
        idempotency_key=idempotency_key,
    )
    _queue_notifications(background_tasks, service, result)
    return CheckoutResponse(**result)


@router.post(
    "/orders/{order_id}/confirm",
    response_model=CheckoutResponse,
    summary="Confirm card payment",
    description="Settles a Stripe payment after 3-D Secure or a wallet payment sheet completed on the client.",
)
async def confirm_payment(
    order_id: UUID,
    background_tasks: BackgroundTasks,
    cart_session: CartSession,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Finish a Stripe payment that required client action."""
    result = await service.confirm_card_payment(order_id, cart_session_id=cart_session)
    _queue_notifications(background_tasks, service, result)
    return CheckoutResponse(**result)


@router.post(
    "/paypal/capture",
    response_model=CheckoutResponse,
    summary="Capture PayPal payment",
    description="Captures an approved PayPal order and marks our order paid.",
)
async def capture_paypal_payment(
    data: PayPalCaptureRequest,
    background_tasks: BackgroundTasks,
    cart_session: CartSession,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Capture PayPal after the customer approved it in the popup."""
    result = await service.capture_paypal(
        data.order_id,
        data.paypal_order_id,
        cart_session_id=cart_session,
    )
    _queue_notifications(background_tasks, service, result)
    return CheckoutResponse(**result)
