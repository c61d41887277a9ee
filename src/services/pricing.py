"""Cart pricing: subtotal, VAT, shipping and total.

All amounts are ``Decimal`` pounds, rounded half-up to the penny at each
derived step so that totals never carry sub-penny drift.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

PENNY = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Coerce a number or numeric string to a penny-rounded Decimal."""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(PENNY, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingRules:
    """Store-wide pricing parameters."""

    vat_rate: Decimal = Decimal("0.20")
    free_shipping_threshold: Decimal = Decimal("100.00")
    shipping_fee: Decimal = Decimal("8.99")

    @classmethod
    def from_settings(cls) -> "PricingRules":
        """Create rules from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            vat_rate=Decimal(str(settings.vat_rate)),
            free_shipping_threshold=to_money(settings.free_shipping_threshold),
            shipping_fee=to_money(settings.standard_shipping_fee),
        )


@dataclass(frozen=True)
class CartTotals:
    """Derived totals for a set of cart lines."""

    subtotal: Decimal
    vat: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal

    @property
    def qualifies_for_free_shipping(self) -> bool:
        return self.shipping == ZERO

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "vat": self.vat,
            "shipping": self.shipping,
            "discount": self.discount,
            "total": self.total,
        }


def calculate_totals(
    lines: Iterable[tuple[Any, int]],
    discount: Any = ZERO,
    rules: PricingRules | None = None,
) -> CartTotals:
    """Compute cart totals.

    subtotal = sum(price * qty); VAT = subtotal * vat_rate; shipping is free
    once the subtotal reaches the threshold, otherwise the flat fee;
    total = subtotal + VAT + shipping - discount, never below zero.

    Args:
        lines: ``(unit_price, quantity)`` pairs.
        discount: Manual discount in pounds.
        rules: Pricing rules; defaults to the configured store rules.

    Returns:
        CartTotals: The computed amounts.

    Raises:
        ValueError: If a price, quantity or the discount is negative.
    """
    rules = rules or PricingRules.from_settings()

    subtotal = ZERO
    for price, quantity in lines:
        unit_price = to_money(price)
        if unit_price < 0:
            raise ValueError("Unit price cannot be negative")
        if quantity < 0:
            raise ValueError("Quantity cannot be negative")
        subtotal += unit_price * quantity
    subtotal = to_money(subtotal)

    discount_amount = to_money(discount or ZERO)
    if discount_amount < 0:
        raise ValueError("Discount cannot be negative")

    vat = to_money(subtotal * rules.vat_rate)
    shipping = ZERO if subtotal >= rules.free_shipping_threshold else to_money(rules.shipping_fee)
    total = max(subtotal + vat + shipping - discount_amount, ZERO)

    return CartTotals(
        subtotal=subtotal,
        vat=vat,
        shipping=shipping,
        discount=discount_amount,
        total=to_money(total),
    )
