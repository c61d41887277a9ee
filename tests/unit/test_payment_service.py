"""Unit tests for PaymentService provider calls."""

from collections.abc import Generator
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from src.core.paypal import PayPalError
from src.core.stripe import from_minor_units, to_minor_units
from src.services.payment_service import PaymentResult, PaymentService

ORDER = {
    "id": "660e8400-e29b-41d4-a716-446655440000",
    "order_number": "ASH-440000",
    "total": 116.99,
    "currency": "GBP",
}


def make_intent(status: str, intent_id: str = "pi_123", client_secret: str = "pi_123_secret") -> MagicMock:
    intent = MagicMock()
    intent.id = intent_id
    intent.status = status
    intent.client_secret = client_secret
    intent.amount = 11699
    intent.metadata = {"order_id": ORDER["id"]}
    return intent


@pytest.fixture
def mock_stripe() -> MagicMock:
    """A mocked Stripe module."""
    return MagicMock()


@pytest.fixture
def payment_service(mock_stripe: MagicMock) -> Generator[PaymentService, None, None]:
    """PaymentService wired to a mocked Stripe module."""
    with patch("src.services.payment_service.get_stripe", return_value=mock_stripe), patch(
        "src.services.payment_service.get_settings"
    ) as mock_settings:
        mock_settings.return_value.stripe_secret_key = "sk_test_123"
        mock_settings.return_value.currency = "GBP"
        mock_settings.return_value.frontend_url = "https://ashhadu.co.uk"
        yield PaymentService()


class TestMinorUnits:
    """Tests for pound/pence conversion."""

    @pytest.mark.parametrize(
        "amount,expected",
        [(116.99, 11699), ("0.10", 10), (Decimal("42.005"), 4201), (0, 0)],
    )
    def test_to_minor_units(self, amount, expected) -> None:
        """Test conversion to pence with half-up rounding."""
        assert to_minor_units(amount, "gbp") == expected

    def test_zero_decimal_currency(self) -> None:
        """Test that zero-decimal currencies are not multiplied."""
        assert to_minor_units(500, "jpy") == 500
        assert from_minor_units(500, "jpy") == Decimal(500)

    def test_from_minor_units(self) -> None:
        """Test conversion back to pounds."""
        assert from_minor_units(11699) == Decimal("116.99")


class TestPaymentResult:
    """Tests for PaymentResult.failed."""

    def test_requires_action_is_not_failure(self) -> None:
        """Test that 3-D Secure challenges are not counted as failures."""
        assert PaymentResult(success=False, provider="stripe", requires_action=True).failed is False
        assert PaymentResult(success=False, provider="stripe").failed is True
        assert PaymentResult(success=True, provider="stripe").failed is False

    def test_processing_is_not_failure(self) -> None:
        """Test that a payment Stripe is still settling is not counted as failed."""
        assert PaymentResult(success=False, provider="stripe", processing=True).failed is False


class TestChargeStripe:
    """Tests for charge_stripe."""

    def test_success(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test a confirmed PaymentIntent for the order total in pence."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("succeeded")

        result = payment_service.charge_stripe(ORDER, "pm_card_visa")

        assert result.success is True
        assert result.payment_id == "pi_123"
        params = mock_stripe.PaymentIntent.create.call_args.kwargs
        assert params["amount"] == 11699
        assert params["currency"] == "gbp"
        assert params["confirm"] is True
        assert params["metadata"]["order_id"] == ORDER["id"]
        assert params["idempotency_key"] == f"order-{ORDER['id']}-pm_card_visa"
        assert params["description"] == "Order ASH-440000"
        assert "customer" not in params

    def test_saves_card_for_customer(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that saving a card sets off-session future usage."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("succeeded")

        payment_service.charge_stripe(ORDER, "pm_card_visa", stripe_customer_id="cus_123", save_payment_method=True)

        params = mock_stripe.PaymentIntent.create.call_args.kwargs
        assert params["customer"] == "cus_123"
        assert params["setup_future_usage"] == "off_session"

    def test_wallet_is_not_saved(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that wallet tokens are never set up for reuse."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("succeeded")

        payment_service.charge_stripe(
            ORDER, "pm_apple", stripe_customer_id="cus_123", save_payment_method=True, method="apple_pay"
        )

        params = mock_stripe.PaymentIntent.create.call_args.kwargs
        assert "setup_future_usage" not in params
        assert params["metadata"]["payment_method"] == "apple_pay"

    def test_requires_action(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that a 3-D Secure challenge returns the client secret."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("requires_action")

        result = payment_service.charge_stripe(ORDER, "pm_card_threeDSecure2Required")

        assert result.requires_action is True
        assert result.client_secret == "pi_123_secret"
        assert result.failed is False

    def test_processing(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that a processing PaymentIntent is reported as pending."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("processing")

        result = payment_service.charge_stripe(ORDER, "pm_bacs_debit")

        assert result.processing is True
        assert result.failed is False
        assert result.error is None

    def test_card_declined(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that a decline returns the card issuer message."""
        mock_stripe.PaymentIntent.create.side_effect = stripe.error.CardError(
            "Your card was declined.",
            None,
            "card_declined",
            json_body={"error": {"message": "Your card was declined.", "payment_intent": {"id": "pi_declined"}}},
        )

        result = payment_service.charge_stripe(ORDER, "pm_card_chargeDeclined")

        assert result.failed is True
        assert result.status == "declined"
        assert result.error == "Your card was declined."
        assert result.payment_id == "pi_declined"

    def test_provider_error(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that other Stripe errors become a failed result."""
        mock_stripe.PaymentIntent.create.side_effect = stripe.error.APIConnectionError("Network down")

        result = payment_service.charge_stripe(ORDER, "pm_card_visa")

        assert result.failed is True
        assert result.status == "error"

    def test_not_configured(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that card payments fail cleanly without a secret key."""
        payment_service.settings.stripe_secret_key = ""

        result = payment_service.charge_stripe(ORDER, "pm_card_visa")

        assert result.failed is True
        mock_stripe.PaymentIntent.create.assert_not_called()


class TestIntents:
    """Tests for payment and setup intents."""

    def test_retrieve_keeps_metadata(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that retrieved intents expose their order metadata."""
        mock_stripe.PaymentIntent.retrieve.return_value = make_intent("succeeded")

        result = payment_service.retrieve_payment_intent("pi_123")

        assert result.success is True
        assert result.raw["metadata"]["order_id"] == ORDER["id"]

    def test_retrieve_error(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test that a lookup failure is reported, not raised."""
        mock_stripe.PaymentIntent.retrieve.side_effect = stripe.error.InvalidRequestError("No such intent", "id")

        result = payment_service.retrieve_payment_intent("pi_missing")

        assert result.success is False
        assert result.error == "Payment could not be verified"

    def test_create_payment_intent(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test an unconfirmed intent for a wallet sheet."""
        mock_stripe.PaymentIntent.create.return_value = make_intent("requires_payment_method")

        result = payment_service.create_payment_intent(ORDER, payment_method_types=["card"], stripe_customer_id="cus_1")

        assert result == {
            "client_secret": "pi_123_secret",
            "payment_intent_id": "pi_123",
            "amount": Decimal("116.99"),
            "currency": "GBP",
        }
        assert mock_stripe.PaymentIntent.create.call_args.kwargs["customer"] == "cus_1"

    def test_create_setup_intent(self, payment_service: PaymentService, mock_stripe: MagicMock) -> None:
        """Test a setup intent for saving a card."""
        setup = MagicMock(id="seti_123", client_secret="seti_123_secret")
        mock_stripe.SetupIntent.create.return_value = setup

        result = payment_service.create_setup_intent("cus_123", customer_id="990e8400")

        assert result["setup_intent_id"] == "seti_123"
        kwargs = mock_stripe.SetupIntent.create.call_args.kwargs
        assert kwargs["usage"] == "off_session"
        assert kwargs["metadata"] == {"supabase_customer_id": "990e8400"}


class TestPayPal:
    """Tests for the PayPal calls."""

    def test_create_order(self, payment_service: PaymentService) -> None:
        """Test that a created PayPal order awaits approval."""
        client = MagicMock()
        client.create_order.return_value = {
            "id": "5O190127TN364715T",
            "status": "CREATED",
            "approval_url": "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T",
        }

        with patch("src.services.payment_service.get_paypal_client", return_value=client):
            result = payment_service.create_paypal_order(ORDER)

        assert result.requires_action is True
        assert result.payment_id == "5O190127TN364715T"
        assert result.approval_url.endswith("token=5O190127TN364715T")
        kwargs = client.create_order.call_args.kwargs
        assert kwargs["reference_id"] == ORDER["id"]
        assert kwargs["amount"] == Decimal("116.99")
        assert kwargs["cancel_url"] == f"https://ashhadu.co.uk/checkout/paypal/cancel?order_id={ORDER['id']}"

    def test_create_order_error(self, payment_service: PaymentService) -> None:
        """Test that a PayPal API error is a failed result."""
        client = MagicMock()
        client.create_order.side_effect = PayPalError("PayPal is unavailable")

        with patch("src.services.payment_service.get_paypal_client", return_value=client):
            result = payment_service.create_paypal_order(ORDER)

        assert result.failed is True
        assert result.error == "PayPal is unavailable"

    def test_capture(self, payment_service: PaymentService) -> None:
        """Test that a completed capture returns the capture ID."""
        client = MagicMock()
        client.capture_order.return_value = {
            "status": "COMPLETED",
            "purchase_units": [{"reference_id": ORDER["id"], "payments": {"captures": [{"id": "CAP123"}]}}],
        }

        with patch("src.services.payment_service.get_paypal_client", return_value=client):
            result = payment_service.capture_paypal_order("PP123", ORDER["id"])

        assert result.success is True
        assert result.payment_id == "CAP123"

    def test_capture_for_another_order(self, payment_service: PaymentService) -> None:
        """Test that a PayPal order referencing a different order is refused."""
        client = MagicMock()
        client.capture_order.return_value = {
            "status": "COMPLETED",
            "purchase_units": [{"reference_id": "someone-else", "payments": {"captures": [{"id": "CAP123"}]}}],
        }

        with patch("src.services.payment_service.get_paypal_client", return_value=client):
            result = payment_service.capture_paypal_order("PP123", ORDER["id"])

        assert result.success is False
        assert result.status == "mismatch"

    def test_capture_not_completed(self, payment_service: PaymentService) -> None:
        """Test that a pending capture is not treated as paid."""
        client = MagicMock()
        client.capture_order.return_value = {
            "status": "PAYER_ACTION_REQUIRED",
            "purchase_units": [{"reference_id": ORDER["id"]}],
        }

        with patch("src.services.payment_service.get_paypal_client", return_value=client):
            result = payment_service.capture_paypal_order("PP123", ORDER["id"])

        assert result.success is False
        assert result.error == "PayPal payment was not completed"
