"""Checkout orchestration: cart to paid order, with compensation on failure.

The flow for one submission:

1. Resolve the customer and their saved defaults.
2. Validate the form into a field -> message map.
3. Record a checkout intent (idempotent on the ``Idempotency-Key`` header).
4. Create the order (pending) from the server-side cart.
5. Call the payment provider.
6. Success: mark paid, clear the cart. Failure: cancel the order, mark
   payment failed, restore stock. A failed compensation leaves the intent
   open for the reconciliation job.
"""

import logging
from typing import Any
from uuid import UUID

import stripe
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.api.middleware.error_handler import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    PaymentError,
    ServiceUnavailableError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.paypal import PayPalError, get_paypal_client
from src.core.stripe import get_stripe
from src.schemas.auth import UserContext
from src.schemas.checkout import CheckoutAddress, CheckoutRequest
from src.services.address_service import AddressService
from src.services.cart_store import CartStore, get_cart_store
from src.services.checkout_intent_service import (
    CheckoutIntentService,
    IntentTransitionError,
    scoped_idempotency_key,
)
from src.services.customer_service import CustomerService
from src.services.email_service import EmailService
from src.services.order_service import OrderService
from src.services.payment_method_service import PaymentMethodService
from src.services.payment_service import WALLET_METHODS, PaymentResult, PaymentService

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("card", "paypal", "apple_pay", "google_pay")

_email_adapter = TypeAdapter(EmailStr)


def _address_errors(prefix: str, address: CheckoutAddress | None) -> dict[str, str]:
    if address is None:
        return {f"{prefix}.address_line_1": "Address is required"}
    errors = {}
    if not address.address_line_1.strip():
        errors[f"{prefix}.address_line_1"] = "Address is required"
    if not address.city.strip():
        errors[f"{prefix}.city"] = "City is required"
    if not address.postcode.strip():
        errors[f"{prefix}.postcode"] = "Postcode is required"
    if not (address.country or "").strip():
        errors[f"{prefix}.country"] = "Country is required"
    return errors


def validate_checkout_form(request: CheckoutRequest) -> dict[str, str]:
    """Collect every checkout form problem into a field -> message map.

    An empty map means the form may be submitted.
    """
    errors: dict[str, str] = {}
    contact = request.customer

    if not contact.first_name.strip():
        errors["customer.first_name"] = "First name is required"
    if not contact.last_name.strip():
        errors["customer.last_name"] = "Last name is required"
    if not contact.email.strip():
        errors["customer.email"] = "Email is required"
    else:
        try:
            _email_adapter.validate_python(contact.email.strip())
        except PydanticValidationError:
            errors["customer.email"] = "Please enter a valid email address"

    if request.billing_address_id is None:
        errors.update(_address_errors("billing", request.billing))
    if not request.same_as_billing and request.shipping_address_id is None:
        errors.update(_address_errors("shipping", request.shipping))

    payment = request.payment
    if not payment.method:
        errors["payment.method"] = "Please select a payment method"
    elif payment.method not in PAYMENT_METHODS:
        errors["payment.method"] = "Unsupported payment method"
    elif payment.method == "card" and not (payment.saved_payment_method_id or payment.stripe_payment_method_id):
        errors["payment.card"] = "Please enter your card details"

    return errors


def _address_dict(address: CheckoutAddress | None, contact: Any) -> dict[str, Any] | None:
    if address is None:
        return None
    data = address.model_dump(exclude={"save_to_account"})
    data["first_name"] = data.get("first_name") or contact.first_name
    data["last_name"] = data.get("last_name") or contact.last_name
    data["phone"] = data.get("phone") or contact.phone
    return data


class CheckoutService:
    """Service that turns a cart into a paid order."""

    def __init__(
        self,
        orders: OrderService | None = None,
        payments: PaymentService | None = None,
        intents: CheckoutIntentService | None = None,
        customers: CustomerService | None = None,
        addresses: AddressService | None = None,
        payment_methods: PaymentMethodService | None = None,
        cart_store: CartStore | None = None,
    ) -> None:
        """Initialize checkout service with its collaborators."""
        self.orders = orders or OrderService()
        self.payments = payments or PaymentService()
        self.intents = intents or CheckoutIntentService()
        self.customers = customers or CustomerService()
        self.addresses = addresses or AddressService()
        self.payment_methods = payment_methods or PaymentMethodService()
        self.cart_store = cart_store or get_cart_store()
        self.stripe = get_stripe()
        self.settings = get_settings()

    # === Context ===

    async def resolve_customer(self, user: UserContext | None) -> dict[str, Any] | None:
        """Customer record linked to a signed-in user, by email."""
        if user is None or not user.email:
            return None
        return await self.customers.get_customer_by_email(user.email)

    async def get_context(self, user: UserContext | None, cart_session_id: str) -> dict[str, Any]:
        """Everything the checkout page needs to pre-fill the form."""
        cart = self.cart_store.get(cart_session_id)
        context: dict[str, Any] = {
            "cart": cart,
            "customer": None,
            "default_billing_address": None,
            "default_shipping_address": None,
            "default_payment_method": None,
            "saved_payment_methods": [],
            "stripe_publishable_key": self.settings.stripe_publishable_key or None,
            "paypal_enabled": self.settings.is_paypal_configured,
            "apple_pay_enabled": self.settings.is_apple_pay_configured,
        }

        customer = await self.resolve_customer(user)
        if customer:
            context["customer"] = await self.customers.get_customer(customer["id"])
            context["default_billing_address"] = await self.addresses.get_default_address(customer["id"], "billing")
            context["default_shipping_address"] = await self.addresses.get_default_address(customer["id"], "shipping")
            methods = await self.payment_methods.list_payment_methods(customer["id"])
            context["saved_payment_methods"] = methods
            context["default_payment_method"] = next((m for m in methods if m.get("is_default")), None)

        return context

    async def _apply_customer_defaults(self, request: CheckoutRequest, customer: dict[str, Any]) -> None:
        contact = request.customer
        contact.first_name = contact.first_name or customer.get("first_name") or ""
        contact.last_name = contact.last_name or customer.get("last_name") or ""
        contact.email = contact.email or customer.get("email") or ""
        contact.phone = contact.phone or customer.get("phone")

        if request.billing is None and request.billing_address_id is None:
            default_billing = await self.addresses.get_default_address(customer["id"], "billing")
            if default_billing:
                request.billing_address_id = UUID(str(default_billing["id"]))

        if (
            not request.same_as_billing
            and request.shipping is None
            and request.shipping_address_id is None
        ):
            default_shipping = await self.addresses.get_default_address(customer["id"], "shipping")
            if default_shipping:
                request.shipping_address_id = UUID(str(default_shipping["id"]))

        payment = request.payment
        if payment.method == "card" and not payment.saved_payment_method_id and not payment.stripe_payment_method_id:
            default_method = await self.payment_methods.get_default_payment_method(customer["id"])
            if default_method and default_method.get("type") == "card":
                payment.saved_payment_method_id = UUID(str(default_method["id"]))

    # === Submission ===

    async def submit(
        self,
        request: CheckoutRequest,
        cart_session_id: str,
        user: UserContext | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """Run a checkout submission end to end.

        Args:
            request: The checkout form.
            cart_session_id: Cart to check out.
            user: Signed-in user, if any.
            idempotency_key: Client key that makes retries return the first outcome.

        Returns:
            dict: CheckoutResponse fields.

        Raises:
            ValidationError: With the field map when the form is incomplete.
            BusinessRuleError: If the cart is empty or stock is short.
            ConflictError: If the same idempotency key is still being processed.
            PaymentError: If the provider declined; the order has been cancelled.
        """
        customer = await self.resolve_customer(user)
        if customer:
            await self._apply_customer_defaults(request, customer)

        errors = validate_checkout_form(request)
        if errors:
            raise ValidationError(
                message="Please correct the highlighted fields",
                details=[
                    {"loc": field.split("."), "msg": message, "type": "value_error"}
                    for field, message in errors.items()
                ],
            )

        cart = self.cart_store.peek(cart_session_id)
        if cart is None or cart.is_empty:
            raise BusinessRuleError("Your cart is empty")

        method = request.payment.method
        provider = "paypal" if method == "paypal" else "stripe"
        scoped_key = None
        if idempotency_key:
            owner = f"customer:{customer['id']}" if customer else f"cart:{cart_session_id}"
            scoped_key = scoped_idempotency_key(idempotency_key, owner)
        intent, created = await self.intents.start(
            provider=provider,
            customer_id=customer["id"] if customer else None,
            idempotency_key=scoped_key,
        )
        if not created:
            stored = intent.get("response")
            if not stored:
                raise ConflictError("This checkout is already being processed")
            logger.info("Replaying checkout outcome for idempotency key %s", idempotency_key)
            if stored.get("outcome") == "failed":
                raise PaymentError(message=stored["message"], order_id=stored.get("order_id"))
            return stored

        contact = request.customer
        try:
            order = await self.orders.create_order(
                customer=contact.model_dump(),
                items=[{"product_id": line.product_id, "quantity": line.quantity} for line in cart.lines],
                billing_address=_address_dict(request.billing, contact),
                shipping_address=_address_dict(request.shipping, contact),
                same_as_billing=request.same_as_billing,
                billing_address_id=request.billing_address_id,
                shipping_address_id=request.shipping_address_id,
                payment_method=method,
                discount=cart.discount,
                notes=request.notes,
                customer_id=customer["id"] if customer else None,
                performed_by=user.user_id if user else None,
            )
        except Exception as e:
            # No order exists, so the key is released for a corrected retry
            intent = await self.intents.transition(
                intent, "failed", failure_reason=str(e)[:500], idempotency_key=None
            )
            await self.intents.transition(intent, "compensated")
            raise

        intent = await self.intents.transition(intent, "order_created", order_id=order["id"])

        try:
            result = await self._dispatch_payment(request, order, customer)
        except Exception as e:
            logger.error("Payment provider error for order %s: %s", order["id"], str(e))
            await self.compensate(order["id"], intent, "Payment provider error")
            raise

        response = await self._settle(order, intent, result, cart_session_id)
        if request.billing and request.billing.save_to_account and customer and response["outcome"] == "succeeded":
            await self._save_address(customer["id"], request.billing)
        return response

    async def _dispatch_payment(
        self,
        request: CheckoutRequest,
        order: dict[str, Any],
        customer: dict[str, Any] | None,
    ) -> PaymentResult:
        payment = request.payment
        method = payment.method
        customer_id = customer["id"] if customer else order["customer_id"]

        if method == "paypal":
            return self.payments.create_paypal_order(order)

        if method == "card" and payment.saved_payment_method_id:
            saved = await self.payment_methods.get_payment_method(payment.saved_payment_method_id)
            if not saved or str(saved["customer_id"]) != str(customer_id):
                raise AuthorizationError("Saved payment method does not belong to this customer")
            stripe_customer_id = saved.get("provider_customer_id")
            if not stripe_customer_id:
                stripe_customer_id, _ = await self.customers.ensure_stripe_customer(customer_id)
            return self.payments.charge_stripe(
                order,
                saved["provider_payment_method_id"],
                stripe_customer_id=stripe_customer_id,
            )

        if method in WALLET_METHODS and not payment.stripe_payment_method_id:
            intent = self.payments.create_payment_intent(order, payment_method_types=["card"])
            return PaymentResult(
                success=False,
                provider="stripe",
                payment_id=intent["payment_intent_id"],
                status="requires_action",
                requires_action=True,
                client_secret=intent["client_secret"],
            )

        stripe_customer_id = None
        save = payment.save_payment_method and customer is not None
        if save:
            stripe_customer_id, _ = await self.customers.ensure_stripe_customer(customer_id)
        return self.payments.charge_stripe(
            order,
            payment.stripe_payment_method_id,
            stripe_customer_id=stripe_customer_id,
            save_payment_method=save,
            method=method,
        )

    async def _settle(
        self,
        order: dict[str, Any],
        intent: dict[str, Any],
        result: PaymentResult,
        cart_session_id: str | None,
    ) -> dict[str, Any]:
        if result.success:
            return await self.finalize_paid(order, intent, result, cart_session_id)

        if result.requires_action or result.processing:
            if result.processing:
                outcome = "processing"
            else:
                outcome = "approval_required" if result.provider == "paypal" else "requires_action"
            response = {
                "outcome": outcome,
                "order_id": order["id"],
                "order_number": order["order_number"],
                "total": order["total"],
                "currency": order.get("currency") or self.settings.currency,
                "payment_status": "pending",
                "client_secret": result.client_secret,
                "approval_url": result.approval_url,
                "paypal_order_id": result.payment_id if result.provider == "paypal" else None,
            }
            if intent and intent["state"] == "order_created":
                await self.intents.transition(
                    intent,
                    "payment_pending",
                    provider_reference=result.payment_id,
                    response=response,
                )
            return response

        reason = result.error or "Payment failed"
        await self.compensate(order["id"], intent, reason)
        raise PaymentError(message=reason, order_id=str(order["id"]))

    async def finalize_paid(
        self,
        order: dict[str, Any],
        intent: dict[str, Any] | None,
        result: PaymentResult,
        cart_session_id: str | None = None,
    ) -> dict[str, Any]:
        """Mark the order paid, close the intent and clear the cart."""
        paid = await self.orders.mark_paid(
            order["id"],
            payment_id=result.payment_id,
            stripe_payment_intent_id=result.payment_id if result.provider == "stripe" else None,
            paypal_order_id=result.raw.get("id") if result.provider == "paypal" else None,
        )

        order_number = paid.get("order_number") or order.get("order_number")
        response = {
            "outcome": "succeeded",
            "order_id": paid["id"],
            "order_number": order_number,
            "total": paid["total"],
            "currency": paid.get("currency") or self.settings.currency,
            "payment_status": "paid",
            "confirmation_url": f"{self.settings.frontend_url}/order-confirmation/{order_number}",
        }

        if intent:
            try:
                await self.intents.transition(
                    intent,
                    "succeeded",
                    provider_reference=result.payment_id,
                    response=response,
                )
            except IntentTransitionError as e:
                logger.warning("Could not close checkout intent for order %s: %s", order["id"], str(e))

        if cart_session_id:
            self.cart_store.clear(cart_session_id)

        logger.info("Checkout succeeded for order %s", order_number)
        return response

    async def compensate(self, order_id: UUID | str, intent: dict[str, Any] | None, reason: str) -> bool:
        """Cancel an unpaid order after a payment failure.

        Returns:
            bool: True if the order was compensated, False if compensation
            failed and was left to the reconciliation job.
        """
        if intent and intent["state"] in ("order_created", "payment_pending"):
            intent = await self.intents.transition(
                intent,
                "failed",
                failure_reason=reason[:500],
                response={"outcome": "failed", "order_id": str(order_id), "message": reason},
            )
        elif intent and intent["state"] not in ("failed", "compensation_failed"):
            intent = None

        try:
            await self.orders.mark_payment_failed(order_id, reason)
        except Exception as e:
            logger.error("Compensation failed for order %s: %s", order_id, str(e))
            if intent and intent["state"] == "failed":
                await self.intents.transition(intent, "compensation_failed")
            return False

        if intent:
            await self.intents.transition(intent, "compensated")
        return True

    async def _save_address(self, customer_id: str, address: CheckoutAddress) -> None:
        data = address.model_dump(exclude={"save_to_account"})
        data.update({"customer_id": customer_id, "type": "billing", "is_default": True})
        try:
            await self.addresses.create_address(data)
        except ValueError as e:
            logger.warning("Could not save checkout address for %s: %s", customer_id, str(e))

    # === Follow-up steps ===

    async def _pending_order(self, order_id: UUID | str) -> dict[str, Any]:
        order = await self.orders.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _paid_response(self, order: dict[str, Any]) -> dict[str, Any]:
        return {
            "outcome": "succeeded",
            "order_id": order["id"],
            "order_number": order["order_number"],
            "total": order["total"],
            "currency": order.get("currency") or self.settings.currency,
            "payment_status": "paid",
            "confirmation_url": f"{self.settings.frontend_url}/order-confirmation/{order['order_number']}",
        }

    async def confirm_card_payment(self, order_id: UUID | str, cart_session_id: str | None = None) -> dict[str, Any]:
        """Finish a Stripe payment after the client completed 3-D Secure or a wallet sheet.

        Raises:
            NotFoundError: If the order does not exist.
            BusinessRuleError: If there is no pending Stripe payment for the order.
            ServiceUnavailableError: If Stripe could not be reached; nothing changed.
            PaymentError: If the payment failed; the order has been cancelled.
        """
        order = await self._pending_order(order_id)
        if order["payment_status"] == "paid":
            return self._paid_response(order)
        if order["status"] != "pending":
            raise BusinessRuleError(f"Order is {order['status']} and cannot be paid")

        intent = await self.intents.get_by_order(order_id)
        payment_intent_id = (intent or {}).get("provider_reference") or order.get("stripe_payment_intent_id")
        if not payment_intent_id or (intent and intent["provider"] != "stripe"):
            raise BusinessRuleError("No card payment is pending for this order")

        result = self.payments.retrieve_payment_intent(payment_intent_id)
        if result.status == "error":
            raise ServiceUnavailableError(result.error or "Payment could not be verified")
        if result.raw.get("metadata", {}).get("order_id") not in (None, str(order["id"])):
            raise BusinessRuleError("Payment does not belong to this order")

        return await self._settle(order, intent, result, cart_session_id)

    async def capture_paypal(
        self,
        order_id: UUID | str,
        paypal_order_id: str,
        cart_session_id: str | None = None,
    ) -> dict[str, Any]:
        """Capture an approved PayPal order and settle ours.

        Raises:
            NotFoundError: If the order does not exist.
            BusinessRuleError: If the order is not awaiting PayPal payment.
            PaymentError: If the capture failed; the order has been cancelled.
        """
        order = await self._pending_order(order_id)
        if order["payment_status"] == "paid":
            return self._paid_response(order)
        if order["status"] != "pending":
            raise BusinessRuleError(f"Order is {order['status']} and cannot be paid")

        intent = await self.intents.get_by_order(order_id)
        if intent and intent.get("provider_reference") and intent["provider_reference"] != paypal_order_id:
            raise BusinessRuleError("PayPal order does not match this order")

        result = self.payments.capture_paypal_order(paypal_order_id, str(order["id"]))
        if result.success:
            result.raw.setdefault("id", paypal_order_id)
        return await self._settle(order, intent, result, cart_session_id)

    async def cancel_paypal(self, order_id: UUID | str, reason: str | None = None) -> dict[str, Any]:
        """Cancel a pending order after the customer abandoned PayPal."""
        order = await self.orders.cancel_pending(order_id, reason)

        intent = await self.intents.get_by_order(order_id)
        if intent and intent["state"] in ("order_created", "payment_pending"):
            try:
                intent = await self.intents.transition(intent, "failed", failure_reason="PayPal payment cancelled")
                await self.intents.transition(intent, "compensated")
            except IntentTransitionError as e:
                logger.warning("Could not close checkout intent for order %s: %s", order_id, str(e))

        return order

    async def _payable_order(self, order_id: UUID | str) -> dict[str, Any]:
        order = await self._pending_order(order_id)
        if order["payment_status"] == "paid":
            raise BusinessRuleError("Order has already been paid")
        if order["status"] != "pending":
            raise BusinessRuleError(f"Order is {order['status']} and cannot be paid")
        return order

    async def _record_provider_reference(self, order_id: UUID | str, provider: str, reference: str) -> None:
        intent = await self.intents.get_by_order(order_id)
        if intent is None:
            intent, _ = await self.intents.start(provider=provider)
            intent = await self.intents.transition(intent, "order_created", order_id=str(order_id))
        if intent["state"] == "order_created":
            await self.intents.transition(intent, "payment_pending", provider_reference=reference)

    async def create_order_payment_intent(
        self,
        order_id: UUID | str,
        payment_method_types: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a Stripe PaymentIntent for an order's server-side total.

        Returns:
            dict: ``client_secret``, ``payment_intent_id``, ``amount`` and ``currency``.

        Raises:
            BusinessRuleError: If the order is not awaiting payment.
        """
        order = await self._payable_order(order_id)
        customer = await self.customers.get_customer(order["customer_id"])
        intent = self.payments.create_payment_intent(
            order,
            payment_method_types=payment_method_types,
            stripe_customer_id=(customer or {}).get("stripe_customer_id"),
        )
        await self._record_provider_reference(order["id"], "stripe", intent["payment_intent_id"])
        return intent

    async def start_paypal_payment(self, order_id: UUID | str) -> dict[str, Any]:
        """Create a PayPal order for an existing pending order.

        Returns:
            dict: ``order_id``, ``paypal_order_id`` and ``approval_url``.

        Raises:
            BusinessRuleError: If the order is not awaiting payment.
            ServiceUnavailableError: If PayPal could not create the order.
        """
        order = await self._payable_order(order_id)
        result = self.payments.create_paypal_order(order)
        if not result.requires_action:
            raise ServiceUnavailableError(result.error or "PayPal is unavailable")

        await self._record_provider_reference(order["id"], "paypal", result.payment_id)
        return {
            "order_id": order["id"],
            "paypal_order_id": result.payment_id,
            "approval_url": result.approval_url,
        }

    async def pay_existing_order(
        self,
        order_id: UUID | str,
        method: str,
        stripe_payment_method_id: str | None = None,
        paypal_order_id: str | None = None,
        saved_payment_method_id: UUID | str | None = None,
    ) -> dict[str, Any]:
        """Take payment for an order created earlier.

        Returns:
            dict: PaymentResultResponse fields.

        Raises:
            NotFoundError: If the order or saved method does not exist.
            BusinessRuleError: If the order is already paid or not payable.
            PaymentError: If the provider declined; the order has been cancelled.
        """
        order = await self._payable_order(order_id)

        if method == "paypal":
            result = self.payments.capture_paypal_order(paypal_order_id, str(order["id"]))
            if result.success:
                result.raw.setdefault("id", paypal_order_id)
        elif saved_payment_method_id:
            saved = await self.payment_methods.get_payment_method(saved_payment_method_id)
            if not saved or str(saved["customer_id"]) != str(order["customer_id"]):
                raise NotFoundError("Payment method not found")
            stripe_customer_id = saved.get("provider_customer_id")
            if not stripe_customer_id:
                stripe_customer_id, _ = await self.customers.ensure_stripe_customer(order["customer_id"])
            result = self.payments.charge_stripe(order, saved["provider_payment_method_id"], stripe_customer_id)
        else:
            result = self.payments.charge_stripe(order, stripe_payment_method_id, method=method)

        intent = await self.intents.get_by_order(order_id)
        if intent and intent["state"] not in ("order_created", "payment_pending"):
            intent = None

        if result.requires_action or result.processing:
            if intent and intent["state"] == "order_created":
                await self.intents.transition(intent, "payment_pending", provider_reference=result.payment_id)
            return {
                "success": False,
                "order_id": order["id"],
                "payment_id": result.payment_id,
                "payment_status": "pending",
                "order_status": order["status"],
                "requires_action": result.requires_action,
                "client_secret": result.client_secret,
            }

        if not result.success:
            reason = result.error or "Payment failed"
            await self.compensate(order["id"], intent, reason)
            raise PaymentError(message=reason, order_id=str(order["id"]))

        await self.finalize_paid(order, intent, result)
        return {
            "success": True,
            "order_id": order["id"],
            "payment_id": result.payment_id,
            "payment_status": "paid",
            "order_status": "processing",
        }

    # === Webhooks ===

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and return event.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event.

        Raises:
            ValueError: If signature is invalid or Stripe not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise ValueError("Stripe webhook secret is not configured. Please set STRIPE_WEBHOOK_SECRET environment variable.")

        try:
            event = self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
            return event
        except stripe.error.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e

    async def handle_payment_succeeded(self, event: dict[str, Any]) -> dict[str, Any] | None:
        """Process payment_intent.succeeded: mark the order paid if it is not already.

        Returns:
            dict | None: The checkout response when the order was settled now.
        """
        payment_intent = event["data"]["object"]
        order_id = (payment_intent.get("metadata") or {}).get("order_id")
        if not order_id:
            logger.warning("Webhook missing order_id in metadata: %s", payment_intent.get("id"))
            return None

        order = await self.orders.get_order(order_id)
        if not order:
            logger.warning("Order not found for payment %s: %s", payment_intent.get("id"), order_id)
            return None
        if order["payment_status"] == "paid":
            return None
        if order["status"] != "pending":
            logger.error(
                "Payment %s succeeded for %s order %s; needs manual review",
                payment_intent.get("id"),
                order["status"],
                order_id,
            )
            return None

        intent = await self.intents.get_by_order(order_id)
        if intent and intent["state"] not in ("order_created", "payment_pending"):
            intent = None
        result = PaymentResult(success=True, provider="stripe", payment_id=payment_intent["id"], status="succeeded")
        return await self.finalize_paid(order, intent, result)

    async def handle_payment_failed(self, event: dict[str, Any]) -> None:
        """Process payment_intent.payment_failed: compensate a still-pending order."""
        payment_intent = event["data"]["object"]
        order_id = (payment_intent.get("metadata") or {}).get("order_id")
        if not order_id:
            logger.warning("Webhook missing order_id in metadata: %s", payment_intent.get("id"))
            return

        order = await self.orders.get_order(order_id)
        if not order or order["payment_status"] == "paid" or order["status"] != "pending":
            return

        error = payment_intent.get("last_payment_error") or {}
        reason = error.get("message") or "Payment failed"
        intent = await self.intents.get_by_order(order_id)
        if intent and intent["state"] not in ("order_created", "payment_pending", "compensation_failed"):
            intent = None
        await self.compensate(order_id, intent, reason)

    # === Reconciliation ===

    async def reconcile_intent(self, intent: dict[str, Any]) -> str:
        """Resolve one stale checkout intent.

        Paid orders close the intent as succeeded. Approved PayPal orders
        are captured and succeeded Stripe payments finalized. Payments Stripe
        is still processing are left open for the next run. Anything else is
        compensated.

        Returns:
            str: The intent's resulting state.
        """
        order_id = intent.get("order_id")
        if not order_id:
            if intent["state"] == "started":
                intent = await self.intents.transition(intent, "failed", failure_reason="Checkout abandoned")
                intent = await self.intents.transition(intent, "compensated")
            return intent["state"]

        order = await self.orders.get_order(order_id)
        if not order:
            logger.error("Checkout intent %s references missing order %s", intent["id"], order_id)
            return intent["state"]

        if order["payment_status"] == "paid":
            if intent["state"] in ("order_created", "payment_pending"):
                intent = await self.intents.transition(intent, "succeeded")
            else:
                logger.error("Order %s is paid but its checkout intent is %s", order_id, intent["state"])
            return intent["state"]

        if intent.get("provider_reference") and intent["state"] == "payment_pending":
            if intent["provider"] == "paypal":
                settled = await self._reconcile_paypal(order, intent)
            else:
                settled = await self._reconcile_stripe(order, intent)
            if settled is None:
                return intent["state"]
            if settled:
                return "succeeded"

        compensated = await self.compensate(order_id, intent, "Checkout timed out without payment")
        return "compensated" if compensated else "compensation_failed"

    async def _reconcile_stripe(self, order: dict[str, Any], intent: dict[str, Any]) -> bool | None:
        """Settle from the PaymentIntent; None when it cannot be decided yet."""
        result = self.payments.retrieve_payment_intent(intent["provider_reference"])
        if result.processing or result.status == "error":
            logger.info("Stripe payment for order %s not settled yet (%s)", order["id"], result.status)
            return None
        if not result.success:
            return False
        await self.finalize_paid(order, intent, result)
        logger.info("Reconciled Stripe payment for order %s", order["id"])
        return True

    async def _reconcile_paypal(self, order: dict[str, Any], intent: dict[str, Any]) -> bool:
        paypal_order_id = intent["provider_reference"]
        try:
            paypal_order = get_paypal_client().get_order(paypal_order_id)
        except PayPalError as e:
            logger.warning("Could not check PayPal order %s: %s", paypal_order_id, e.message)
            return False

        status = paypal_order.get("status")
        if status == "APPROVED":
            result = self.payments.capture_paypal_order(paypal_order_id, str(order["id"]))
        elif status == "COMPLETED":
            result = PaymentResult(success=True, provider="paypal", payment_id=paypal_order_id, status=status)
        else:
            return False

        if not result.success:
            return False
        result.raw.setdefault("id", paypal_order_id)
        await self.finalize_paid(order, intent, result)
        logger.info("Reconciled PayPal payment for order %s", order["id"])
        return True

    async def reconcile_stale(self, older_than_seconds: int | None = None) -> dict[str, int]:
        """Resolve every stale open intent.

        Returns:
            dict: Count of intents per resulting state.
        """
        timeout = older_than_seconds or self.settings.checkout_intent_timeout_seconds
        counts: dict[str, int] = {}
        for intent in await self.intents.list_stale(timeout):
            try:
                state = await self.reconcile_intent(intent)
            except IntentTransitionError as e:
                logger.info("Skipping checkout intent %s: %s", intent["id"], str(e))
                continue
            counts[state] = counts.get(state, 0) + 1
        if counts:
            logger.info("Checkout reconciliation: %s", counts)
        return counts

    # === Notifications ===

    async def send_order_notifications(self, order_id: UUID | str) -> None:
        """Send the customer confirmation and the admin alert for a paid order."""
        order = await self.orders.get_order(order_id)
        if not order:
            logger.warning("Cannot send notifications, order %s not found", order_id)
            return
        emails = EmailService()
        await emails.send_order_confirmation(order)
        await emails.send_admin_order_alert(order)


def get_checkout_service() -> CheckoutService:
    """Get checkout service instance."""
    return CheckoutService()
