"""Payment provider calls: Stripe cards and wallets, PayPal, setup intents."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import stripe

from src.core.config import get_settings
from src.core.paypal import PayPalError, get_paypal_client
from src.core.stripe import from_minor_units, get_stripe, to_minor_units

logger = logging.getLogger(__name__)

WALLET_METHODS = frozenset({"apple_pay", "google_pay"})


@dataclass
class PaymentResult:
    """Outcome of a provider call.

    ``requires_action`` means the customer must complete 3-D Secure (or
    approve in PayPal) before the payment can settle. ``processing`` means
    Stripe accepted the payment but has not settled it yet; the webhook
    finishes it. Neither is a failure.
    """

    success: bool
    provider: str
    payment_id: str | None = None
    status: str | None = None
    error: str | None = None
    requires_action: bool = False
    client_secret: str | None = None
    approval_url: str | None = None
    processing: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def failed(self) -> bool:
        return not self.success and not self.requires_action and not self.processing


class PaymentService:
    """Thin wrapper over the Stripe SDK and PayPal REST client."""

    def __init__(self) -> None:
        """Initialize payment service with provider clients."""
        self.stripe = get_stripe()
        self.settings = get_settings()

    def _intent_result(self, intent: Any) -> PaymentResult:
        if intent.status == "succeeded":
            return PaymentResult(success=True, provider="stripe", payment_id=intent.id, status=intent.status)
        if intent.status == "requires_action":
            return PaymentResult(
                success=False,
                provider="stripe",
                payment_id=intent.id,
                status=intent.status,
                requires_action=True,
                client_secret=intent.client_secret,
            )
        if intent.status == "processing":
            return PaymentResult(
                success=False,
                provider="stripe",
                payment_id=intent.id,
                status=intent.status,
                processing=True,
            )
        return PaymentResult(
            success=False,
            provider="stripe",
            payment_id=intent.id,
            status=intent.status,
            error="Payment failed. Please try again.",
        )

    def charge_stripe(
        self,
        order: dict[str, Any],
        payment_method_id: str,
        stripe_customer_id: str | None = None,
        save_payment_method: bool = False,
        method: str = "card",
    ) -> PaymentResult:
        """Create and confirm a PaymentIntent for an order.

        Used for saved cards, card-form payment methods and wallet tokens
        (Apple Pay / Google Pay arrive as Stripe payment methods).

        Args:
            order: Order row with ``id``, ``order_number``, ``total`` and ``currency``.
            payment_method_id: Stripe ``pm_`` ID.
            stripe_customer_id: Stripe customer the method belongs to.
            save_payment_method: Attach the method to the customer for reuse.
            method: card, apple_pay or google_pay (recorded in metadata).

        Returns:
            PaymentResult: Success, requires-action or failure.
        """
        if not self.settings.stripe_secret_key:
            return PaymentResult(success=False, provider="stripe", error="Card payments are not available")

        currency = (order.get("currency") or self.settings.currency).lower()
        params: dict[str, Any] = {
            "amount": to_minor_units(order["total"], currency),
            "currency": currency,
            "payment_method": payment_method_id,
            "confirm": True,
            "return_url": f"{self.settings.frontend_url}/checkout/confirmation",
            "metadata": {
                "order_id": str(order["id"]),
                "order_number": order.get("order_number") or "",
                "payment_method": method,
                "source": "ashhadu_checkout",
            },
            "idempotency_key": f"order-{order['id']}-{payment_method_id}",
        }
        if order.get("order_number"):
            params["description"] = f"Order {order['order_number']}"
        if stripe_customer_id:
            params["customer"] = stripe_customer_id
            if save_payment_method and method == "card":
                params["setup_future_usage"] = "off_session"

        try:
            intent = self.stripe.PaymentIntent.create(**params)
        except stripe.error.CardError as e:
            logger.info("Card declined for order %s: %s", order["id"], e.user_message)
            intent_id = e.error.payment_intent.id if e.error and e.error.payment_intent else None
            return PaymentResult(
                success=False,
                provider="stripe",
                payment_id=intent_id,
                status="declined",
                error=e.user_message or "Your card was declined",
            )
        except stripe.error.StripeError as e:
            logger.error("Stripe error charging order %s: %s", order["id"], str(e))
            return PaymentResult(
                success=False,
                provider="stripe",
                status="error",
                error=e.user_message or "Payment could not be processed",
            )

        result = self._intent_result(intent)
        logger.info("Stripe PaymentIntent %s for order %s: %s", intent.id, order["id"], intent.status)
        return result

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentResult:
        """Re-read a PaymentIntent after the client completed 3-D Secure."""
        try:
            intent = self.stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.error.StripeError as e:
            logger.error("Failed to retrieve PaymentIntent %s: %s", payment_intent_id, str(e))
            return PaymentResult(success=False, provider="stripe", status="error", error="Payment could not be verified")

        result = self._intent_result(intent)
        result.raw = {"metadata": dict(intent.metadata or {})}
        return result

    def create_payment_intent(
        self,
        order: dict[str, Any],
        payment_method_types: list[str] | None = None,
        stripe_customer_id: str | None = None,
    ) -> dict[str, Any]:
        """Create an unconfirmed PaymentIntent for the client to confirm.

        Returns:
            dict: ``client_secret``, ``payment_intent_id``, ``amount`` and ``currency``.

        Raises:
            stripe.error.StripeError: If Stripe rejects the request.
        """
        currency = (order.get("currency") or self.settings.currency).lower()
        params: dict[str, Any] = {
            "amount": to_minor_units(order["total"], currency),
            "currency": currency,
            "payment_method_types": payment_method_types or ["card"],
            "metadata": {"order_id": str(order["id"]), "order_number": order.get("order_number") or ""},
        }
        if stripe_customer_id:
            params["customer"] = stripe_customer_id

        intent = self.stripe.PaymentIntent.create(**params)
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount": from_minor_units(intent.amount, currency),
            "currency": currency.upper(),
        }

    def create_setup_intent(
        self,
        stripe_customer_id: str,
        payment_method_types: list[str] | None = None,
        customer_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a SetupIntent for saving a card without charging it.

        Raises:
            stripe.error.StripeError: If Stripe rejects the request.
        """
        intent = self.stripe.SetupIntent.create(
            customer=stripe_customer_id,
            payment_method_types=payment_method_types or ["card"],
            usage="off_session",
            metadata={"supabase_customer_id": customer_id or ""},
        )
        return {
            "client_secret": intent.client_secret,
            "setup_intent_id": intent.id,
            "stripe_customer_id": stripe_customer_id,
        }

    def create_paypal_order(self, order: dict[str, Any]) -> PaymentResult:
        """Create a PayPal order for approval; our order ID is the reference."""
        frontend = self.settings.frontend_url
        try:
            paypal_order = get_paypal_client().create_order(
                reference_id=str(order["id"]),
                amount=Decimal(str(order["total"])),
                currency=order.get("currency") or self.settings.currency,
                return_url=f"{frontend}/checkout/paypal/return?order_id={order['id']}",
                cancel_url=f"{frontend}/checkout/paypal/cancel?order_id={order['id']}",
                description=f"Ashhadu Islamic Art order {order.get('order_number') or ''}".strip(),
            )
        except PayPalError as e:
            logger.error("PayPal order creation failed for order %s: %s", order["id"], e.message)
            return PaymentResult(success=False, provider="paypal", status="error", error=e.message)

        return PaymentResult(
            success=False,
            provider="paypal",
            payment_id=paypal_order["id"],
            status=paypal_order.get("status"),
            requires_action=True,
            approval_url=paypal_order.get("approval_url"),
        )

    def capture_paypal_order(self, paypal_order_id: str, order_id: str) -> PaymentResult:
        """Capture an approved PayPal order and check it belongs to our order.

        Returns:
            PaymentResult: ``payment_id`` is the PayPal capture ID on success.
        """
        try:
            capture = get_paypal_client().capture_order(paypal_order_id)
        except PayPalError as e:
            logger.warning("PayPal capture failed for %s: %s", paypal_order_id, e.message)
            return PaymentResult(success=False, provider="paypal", payment_id=paypal_order_id, status="error", error=e.message)

        units = capture.get("purchase_units") or []
        reference = units[0].get("reference_id") if units else None
        if reference and reference != str(order_id):
            logger.error("PayPal order %s references %s, not %s", paypal_order_id, reference, order_id)
            return PaymentResult(
                success=False,
                provider="paypal",
                payment_id=paypal_order_id,
                status="mismatch",
                error="PayPal order does not match this order",
            )

        captures = (units[0].get("payments") or {}).get("captures") or [] if units else []
        capture_id = captures[0]["id"] if captures else paypal_order_id
        if capture.get("status") != "COMPLETED":
            return PaymentResult(
                success=False,
                provider="paypal",
                payment_id=paypal_order_id,
                status=capture.get("status"),
                error="PayPal payment was not completed",
            )

        logger.info("Captured PayPal order %s (capture %s) for order %s", paypal_order_id, capture_id, order_id)
        return PaymentResult(success=True, provider="paypal", payment_id=capture_id, status="COMPLETED", raw=capture)


def get_payment_service() -> PaymentService:
    """Get payment service instance."""
    return PaymentService()
