"""Unit tests for Apple Pay merchant validation."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from src.core.apple_pay import (
    ApplePayError,
    ApplePayNotConfiguredError,
    is_apple_validation_url,
    validate_merchant,
)

VALIDATION_URL = "https://apple-pay-gateway-cert.apple.com/paymentservices/startSession"


@pytest.fixture
def settings() -> MagicMock:
    """Settings with a merchant certificate configured."""
    mock = MagicMock()
    mock.is_apple_pay_configured = True
    mock.apple_pay_merchant_id = "merchant.uk.co.ashhadu"
    mock.apple_pay_merchant_cert_path = "/etc/ashhadu/apple-pay.pem"
    mock.apple_pay_merchant_key_path = "/etc/ashhadu/apple-pay.key"
    mock.apple_pay_domain = "ashhadu.co.uk"
    mock.apple_pay_display_name = "Ashhadu Islamic Art"
    with patch("src.core.apple_pay.get_settings", return_value=mock):
        yield mock


class TestValidationUrl:
    """Tests for is_apple_validation_url."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            (VALIDATION_URL, True),
            ("https://apple-pay-gateway.apple.com/paymentservices/paymentSession", True),
            ("https://cn-apple-pay-gateway.apple-pay-gateway.apple.com/x", True),
            ("http://apple-pay-gateway.apple.com/x", False),
            ("https://apple-pay-gateway.apple.com.evil.example/x", False),
            ("https://example.com/x", False),
            ("not a url", False),
        ],
    )
    def test_hosts(self, url: str, expected: bool) -> None:
        """Test that only Apple gateway hosts over HTTPS are accepted."""
        assert is_apple_validation_url(url) is expected


class TestValidateMerchant:
    """Tests for validate_merchant."""

    def test_not_configured(self, settings: MagicMock) -> None:
        """Test that a missing certificate is reported distinctly."""
        settings.is_apple_pay_configured = False

        with pytest.raises(ApplePayNotConfiguredError):
            validate_merchant(VALIDATION_URL)

    def test_rejects_foreign_url(self, settings: MagicMock) -> None:
        """Test that the certificate is never sent to other hosts."""
        with patch("src.core.apple_pay.requests.post") as mock_post:
            with pytest.raises(ApplePayError, match="Invalid Apple Pay validation URL"):
                validate_merchant("https://attacker.example/startSession")

        mock_post.assert_not_called()

    def test_success(self, settings: MagicMock) -> None:
        """Test that the merchant session is returned as-is."""
        response = MagicMock(status_code=200)
        response.json.return_value = {"merchantSessionIdentifier": "SSH123", "epochTimestamp": 1}

        with patch("src.core.apple_pay.requests.post", return_value=response) as mock_post:
            session = validate_merchant(VALIDATION_URL, display_name="Ashhadu")

        assert session["merchantSessionIdentifier"] == "SSH123"
        kwargs = mock_post.call_args.kwargs
        assert kwargs["json"] == {
            "merchantIdentifier": "merchant.uk.co.ashhadu",
            "displayName": "Ashhadu",
            "initiative": "web",
            "initiativeContext": "ashhadu.co.uk",
        }
        assert kwargs["cert"] == ("/etc/ashhadu/apple-pay.pem", "/etc/ashhadu/apple-pay.key")

    def test_rejected_by_apple(self, settings: MagicMock) -> None:
        """Test that an Apple error response raises ApplePayError."""
        response = MagicMock(status_code=400, text="Invalid merchant")

        with patch("src.core.apple_pay.requests.post", return_value=response):
            with pytest.raises(ApplePayError):
                validate_merchant(VALIDATION_URL)

    def test_network_error(self, settings: MagicMock) -> None:
        """Test that a connection failure raises ApplePayError."""
        with patch("src.core.apple_pay.requests.post", side_effect=requests.ConnectionError("timeout")):
            with pytest.raises(ApplePayError, match="merchant validation failed"):
                validate_merchant(VALIDATION_URL)
