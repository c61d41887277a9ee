"""Unit tests for EmailService."""

from unittest.mock import MagicMock, patch

import pytest

from src.services.email_service import EmailService, format_gbp


@pytest.fixture
def email_service() -> EmailService:
    """EmailService with test settings."""
    with patch("src.services.email_service.get_settings") as mock_settings:
        mock_settings.return_value.resend_api_key = "re_test"
        mock_settings.return_value.email_from_address = "Ashhadu <orders@ashhadu.co.uk>"
        mock_settings.return_value.email_reply_to = "hello@ashhadu.co.uk"
        mock_settings.return_value.frontend_url = "https://ashhadu.co.uk"
        mock_settings.return_value.admin_emails_list = ["admin@ashhadu.co.uk"]
        return EmailService()


@pytest.fixture
def paid_order() -> dict:
    """A paid order with customer and items."""
    return {
        "id": "660e8400-e29b-41d4-a716-446655440000",
        "order_number": "ASH-440000",
        "customer": {"email": "amina@example.com", "first_name": "Amina", "last_name": "<Khan>"},
        "items": [{"product_name": "Ayatul Kursi Wall Art", "quantity": 2, "total": 90}],
        "subtotal": 90,
        "tax_amount": 18,
        "shipping_amount": 0,
        "discount_amount": 5,
        "total": 103,
        "payment_method": "card",
        "payment_status": "paid",
        "shipping_address": {"first_name": "Amina", "address_line_1": "1 High Street", "postcode": "LS1 1AA"},
    }


class TestFormatGbp:
    """Tests for format_gbp."""

    @pytest.mark.parametrize("amount,expected", [(56.99, "£56.99"), (1250, "£1,250.00"), (None, "£0.00")])
    def test_format(self, amount, expected: str) -> None:
        """Test pound formatting."""
        assert format_gbp(amount) == expected


class TestOrderConfirmation:
    """Tests for send_order_confirmation."""

    @pytest.mark.asyncio
    async def test_sends_to_customer(self, email_service: EmailService, paid_order: dict) -> None:
        """Test that the confirmation goes to the customer with order details."""
        with patch("src.services.email_service.resend.Emails.send", return_value={"id": "email_1"}) as mock_send:
            result = await email_service.send_order_confirmation(paid_order)

        assert result == {"success": True, "email_id": "email_1"}
        params = mock_send.call_args[0][0]
        assert params["to"] == ["amina@example.com"]
        assert params["subject"] == "Your Ashhadu order ASH-440000 is confirmed"
        assert params["reply_to"] == "hello@ashhadu.co.uk"
        assert "Free" in params["html"]
        assert "-£5.00" in params["html"]
        assert "&lt;Khan&gt;" in params["html"]
        assert "https://ashhadu.co.uk/order-confirmation/ASH-440000" in params["text"]

    @pytest.mark.asyncio
    async def test_no_email(self, email_service: EmailService, paid_order: dict) -> None:
        """Test that orders without a customer email are skipped."""
        paid_order["customer"] = {}

        with patch("src.services.email_service.resend.Emails.send") as mock_send:
            result = await email_service.send_order_confirmation(paid_order)

        assert result["success"] is False
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_failure_is_returned(self, email_service: EmailService, paid_order: dict) -> None:
        """Test that a Resend failure is reported, not raised."""
        with patch("src.services.email_service.resend.Emails.send", side_effect=RuntimeError("rate limited")):
            result = await email_service.send_order_confirmation(paid_order)

        assert result == {"success": False, "error": "rate limited"}


class TestAdminAlert:
    """Tests for send_admin_order_alert."""

    @pytest.mark.asyncio
    async def test_sends_to_admins(self, email_service: EmailService, paid_order: dict) -> None:
        """Test that admins get the new order alert."""
        with patch("src.services.email_service.resend.Emails.send", return_value={"id": "email_2"}) as mock_send:
            result = await email_service.send_admin_order_alert(paid_order)

        assert result["success"] is True
        params = mock_send.call_args[0][0]
        assert params["to"] == ["admin@ashhadu.co.uk"]
        assert params["subject"] == "New order ASH-440000 - £103.00"

    @pytest.mark.asyncio
    async def test_no_admins(self, email_service: EmailService, paid_order: dict) -> None:
        """Test that nothing is sent without admin addresses."""
        email_service.admin_emails = []

        with patch("src.services.email_service.resend.Emails.send") as mock_send:
            result = await email_service.send_admin_order_alert(paid_order)

        assert result["success"] is False
        mock_send.assert_not_called()


class TestWelcomeEmail:
    """Tests for send_welcome_email."""

    @pytest.mark.asyncio
    async def test_welcome(self, email_service: EmailService) -> None:
        """Test the welcome email greets the customer by name."""
        with patch("src.services.email_service.resend.Emails.send", return_value={"id": "email_3"}) as mock_send:
            result = await email_service.send_welcome_email("amina@example.com", "Amina")

        assert result["success"] is True
        params = mock_send.call_args[0][0]
        assert params["subject"] == "Welcome to Ashhadu Islamic Art"
        assert "Assalamu alaikum Amina" in params["html"]
        assert "text" not in params
