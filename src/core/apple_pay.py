"""Apple Pay merchant validation."""

import logging
from typing import Any
from urllib.parse import urlparse

import requests

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Apple only issues validation URLs on these hosts
APPLE_PAY_VALIDATION_HOSTS = ("apple-pay-gateway.apple.com", "apple-pay-gateway-cert.apple.com")


class ApplePayError(Exception):
    """Raised when merchant validation cannot be completed."""


class ApplePayNotConfiguredError(ApplePayError):
    """Raised when the merchant identity certificate is not configured."""


def is_apple_validation_url(url: str) -> bool:
    """Check that a validation URL points at an Apple Pay gateway host."""
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.hostname:
        return False
    return any(
        parsed.hostname == host or parsed.hostname.endswith("." + host)
        for host in APPLE_PAY_VALIDATION_HOSTS
    )


def validate_merchant(
    validation_url: str,
    domain_name: str | None = None,
    display_name: str | None = None,
) -> dict[str, Any]:
    """Request an opaque merchant session from Apple.

    Args:
        validation_url: URL supplied by the browser's onvalidatemerchant event.
        domain_name: Domain the payment sheet is shown on.
        display_name: Merchant name shown on the payment sheet.

    Returns:
        dict: Merchant session object to hand back to the browser.

    Raises:
        ApplePayNotConfiguredError: If the merchant certificate is missing.
        ApplePayError: If Apple rejects the request.
    """
    settings = get_settings()
    if not settings.is_apple_pay_configured:
        raise ApplePayNotConfiguredError("Apple Pay merchant certificate is not configured")

    if not is_apple_validation_url(validation_url):
        raise ApplePayError("Invalid Apple Pay validation URL")

    payload = {
        "merchantIdentifier": settings.apple_pay_merchant_id,
        "displayName": display_name or settings.apple_pay_display_name,
        "initiative": "web",
        "initiativeContext": domain_name or settings.apple_pay_domain,
    }

    try:
        response = requests.post(
            validation_url,
            json=payload,
            cert=(settings.apple_pay_merchant_cert_path, settings.apple_pay_merchant_key_path),
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error("Apple Pay merchant validation request failed: %s", str(e))
        raise ApplePayError("Apple Pay merchant validation failed") from e

    if response.status_code >= 400:
        logger.error("Apple Pay merchant validation rejected (%s): %s", response.status_code, response.text)
        raise ApplePayError("Apple Pay merchant validation failed")

    return response.json()
