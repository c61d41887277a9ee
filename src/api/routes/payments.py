"""Payment provider API routes: Stripe, PayPal, Apple Pay and order payments."""

import logging
from uuid import UUID

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends

from src.api.deps import CartSession, CurrentUser, is_admin_user
from src.api.middleware.error_handler import NotFoundError, PaymentError, ServiceUnavailableError
from src.core.apple_pay import ApplePayError, ApplePayNotConfiguredError, validate_merchant
from src.schemas.auth import UserContext
from src.schemas.checkout import CheckoutResponse, PayPalCaptureRequest
from src.schemas.payment import (
    ApplePayValidateRequest,
    ApplePayValidateResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentProcessRequest,
    PaymentResultResponse,
    PayPalOrderRequest,
    PayPalOrderResponse,
    SavedPaymentRequest,
    SetupIntentRequest,
    SetupIntentResponse,
    StripeCustomerRequest,
    StripeCustomerResponse,
)
from src.services.checkout_service import CheckoutService, get_checkout_service
from src.services.customer_service import CustomerService
from src.services.payment_service import PaymentService, get_payment_service

logger = logging.getLogger(__name__)

stripe_router = APIRouter(prefix="/stripe", tags=["stripe"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])
paypal_router = APIRouter(prefix="/paypal", tags=["paypal"])
apple_pay_router = APIRouter(prefix="/apple-pay", tags=["apple-pay"])


async def _check_customer_access(customer_id: UUID, user: UserContext) -> None:
    """Customers may only act on their own record; admins on any."""
    customer = await CustomerService().get_customer(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    if is_admin_user(user):
        return
    if not user.email or customer["email"].lower() != user.email.lower():
        raise NotFoundError("Customer not found")


# === Stripe ===


@stripe_router.post(
    "/customers",
    response_model=StripeCustomerResponse,
    summary="Link Stripe customer",
    description="Returns the customer's Stripe customer, creating and storing one if needed.",
)
async def create_stripe_customer(
    data: StripeCustomerRequest,
    user: CurrentUser,
) -> StripeCustomerResponse:
    """Ensure the customer has a Stripe customer record."""
    await _check_customer_access(data.customer_id, user)
    try:
        stripe_customer_id, created = await CustomerService().ensure_stripe_customer(data.customer_id)
    except stripe.error.StripeError as e:
        logger.error("Stripe customer creation failed for %s: %s", data.customer_id, str(e))
        raise ServiceUnavailableError("Payment provider is unavailable") from e

    return StripeCustomerResponse(
        customer_id=data.customer_id,
        stripe_customer_id=stripe_customer_id,
        created=created,
    )


@stripe_router.post(
    "/setup-intent",
    response_model=SetupIntentResponse,
    summary="Create setup intent",
    description="Creates a Stripe SetupIntent so a card can be saved without charging it.",
)
async def create_setup_intent(
    data: SetupIntentRequest,
    user: CurrentUser,
    payment_service: PaymentService = Depends(get_payment_service),
) -> SetupIntentResponse:
    """Start saving a card for later."""
    await _check_customer_access(data.customer_id, user)
    try:
        stripe_customer_id, _ = await CustomerService().ensure_stripe_customer(data.customer_id)
        result = payment_service.create_setup_intent(
            stripe_customer_id,
            payment_method_types=data.payment_method_types,
            customer_id=str(data.customer_id),
        )
    except stripe.error.StripeError as e:
        logger.error("SetupIntent creation failed for %s: %s", data.customer_id, str(e))
        raise ServiceUnavailableError("Payment provider is unavailable") from e

    return SetupIntentResponse(**result)


@stripe_router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create payment intent",
    description="Creates a Stripe PaymentIntent for a pending order. The amount is the order's server-side total.",
)
async def create_payment_intent(
    data: PaymentIntentRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> PaymentIntentResponse:
    """Create a PaymentIntent for the card form or a wallet payment sheet."""
    try:
        result = await service.create_order_payment_intent(
            data.order_id,
            payment_method_types=data.payment_method_types,
        )
    except stripe.error.StripeError as e:
        logger.error("PaymentIntent creation failed for order %s: %s", data.order_id, str(e))
        raise PaymentError(
            message=getattr(e, "user_message", None) or "Payment could not be started",
            order_id=str(data.order_id),
        ) from e

    return PaymentIntentResponse(**result)


@stripe_router.post(
    "/process-saved-payment",
    response_model=PaymentResultResponse,
    summary="Pay with saved method",
    description="Charges a saved card off-session for a pending order.",
)
async def process_saved_payment(
    data: SavedPaymentRequest,
    background_tasks: BackgroundTasks,
    service: CheckoutService = Depends(get_checkout_service),
) -> PaymentResultResponse:
    """Charge a saved payment method for an order.

    Raises:
        PaymentError: If the card was declined; the order has been cancelled.
    """
    result = await service.pay_existing_order(
        data.order_id,
        method="card",
        saved_payment_method_id=data.payment_method_id,
    )
    if result["success"]:
        background_tasks.add_task(service.send_order_notifications, result["order_id"])
    return PaymentResultResponse(**result)


# === Order payments ===


@payments_router.post(
    "/process",
    response_model=PaymentResultResponse,
    summary="Process payment",
    description="Takes payment for an existing pending order by card, wallet token or approved PayPal order.",
    responses={402: {"description": "Payment declined; the order was cancelled"}},
)
async def process_payment(
    data: PaymentProcessRequest,
    background_tasks: BackgroundTasks,
    service: CheckoutService = Depends(get_checkout_service),
) -> PaymentResultResponse:
    """Pay for an order created earlier."""
    result = await service.pay_existing_order(
        data.order_id,
        method=data.payment_method,
        stripe_payment_method_id=data.stripe_payment_method_id,
        paypal_order_id=data.paypal_order_id,
    )
    if result["success"]:
        background_tasks.add_task(service.send_order_notifications, result["order_id"])
    return PaymentResultResponse(**result)


# === PayPal ===


@paypal_router.post(
    "/create-order",
    response_model=PayPalOrderResponse,
    summary="Create PayPal order",
    description="Creates a PayPal order for a pending order and returns the approval URL.",
)
async def create_paypal_order(
    data: PayPalOrderRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> PayPalOrderResponse:
    """Start PayPal approval for an existing order."""
    result = await service.start_paypal_payment(data.order_id)
    return PayPalOrderResponse(**result)


@paypal_router.post(
    "/capture-order",
    response_model=CheckoutResponse,
    summary="Capture PayPal order",
    description="Captures an approved PayPal order and marks our order paid.",
)
async def capture_paypal_order(
    data: PayPalCaptureRequest,
    background_tasks: BackgroundTasks,
    cart_session: CartSession,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Capture PayPal after approval."""
    result = await service.capture_paypal(data.order_id, data.paypal_order_id, cart_session_id=cart_session)
    if result["outcome"] == "succeeded":
        background_tasks.add_task(service.send_order_notifications, result["order_id"])
    return CheckoutResponse(**result)


# === Apple Pay ===


@apple_pay_router.post(
    "/validate-merchant",
    response_model=ApplePayValidateResponse,
    summary="Validate Apple Pay merchant",
    description="Exchanges the browser's validation URL for an opaque Apple Pay merchant session.",
    responses={503: {"description": "Apple Pay is not configured"}},
)
async def validate_apple_pay_merchant(data: ApplePayValidateRequest) -> ApplePayValidateResponse:
    """Validate the merchant with Apple.

    Raises:
        ServiceUnavailableError: If the merchant certificate is not configured.
        PaymentError: If Apple rejects the validation request.
    """
    try:
        session = validate_merchant(
            data.validation_url,
            domain_name=data.domain_name,
            display_name=data.display_name,
        )
    except ApplePayNotConfiguredError as e:
        raise ServiceUnavailableError("Apple Pay is not available") from e
    except ApplePayError as e:
        raise PaymentError(message=str(e)) from e

    return ApplePayValidateResponse(merchant_session=session)
