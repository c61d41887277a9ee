"""Stripe client configuration and singleton."""

import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Currencies Stripe treats as having no minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({"jpy", "krw", "vnd", "clp", "pyg", "ugx", "xaf", "xof"})


def configure_stripe() -> None:
    """Configure Stripe SDK with API key from settings.

    This should be called once at application startup.
    If Stripe keys are not configured, Stripe operations will fail with clear errors.
    """
    settings = get_settings()
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
    else:
        logger.warning("Stripe secret key not configured. Stripe features will not work.")


def get_stripe() -> stripe:
    """Get the configured Stripe module.

    Returns:
        stripe: The Stripe module with API key configured.

    Note:
        Stripe SDK uses module-level configuration, so this returns
        the stripe module itself. Ensure configure_stripe() has been
        called before using Stripe API calls.
    """
    return stripe


def to_minor_units(amount: Decimal | float | str, currency: str = "gbp") -> int:
    """Convert a major-unit amount (pounds) to Stripe minor units (pence).

    Rounds half-up, so 42.005 becomes 4201.
    """
    value = Decimal(str(amount))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str = "gbp") -> Decimal:
    """Convert Stripe minor units back to a major-unit Decimal."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))
