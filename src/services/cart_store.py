"""Server-side cart store keyed by cart session token."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from hashlib import sha256
from threading import Lock
from typing import Any

from src.services.pricing import CartTotals, PricingRules, calculate_totals, to_money

logger = logging.getLogger(__name__)


def make_line_id(product_id: str, customizations: dict[str, Any] | None) -> str:
    """Build a stable line ID so the same product+variant merges into one line."""
    if not customizations:
        return str(product_id)
    normalized = {k: v for k, v in sorted(customizations.items()) if v not in (None, "")}
    if not normalized:
        return str(product_id)
    digest = sha256(json.dumps(normalized, sort_keys=True).encode()).hexdigest()[:12]
    return f"{product_id}:{digest}"


@dataclass
class CartLine:
    """One product (and variant) in a cart."""

    product_id: str
    name: str
    price: Decimal
    quantity: int
    sku: str | None = None
    original_price: Decimal | None = None
    image: str | None = None
    category: str | None = None
    customizations: dict[str, Any] = field(default_factory=dict)

    @property
    def line_id(self) -> str:
        return make_line_id(self.product_id, self.customizations)

    @property
    def line_total(self) -> Decimal:
        return to_money(self.price * self.quantity)


@dataclass
class Cart:
    """A customer's cart. Mutations are not thread-safe on their own; go through CartStore."""

    session_id: str
    lines: list[CartLine] = field(default_factory=list)
    discount: Decimal = Decimal("0.00")

    def get_line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if line.line_id == line_id), None)

    def add_item(self, item: CartLine) -> CartLine:
        """Add a line, merging quantity into an existing line for the same product+variant."""
        if item.quantity <= 0:
            raise ValueError("Quantity must be at least 1")
        existing = self.get_line(item.line_id)
        if existing:
            existing.quantity += item.quantity
            existing.price = item.price
            return existing
        self.lines.append(item)
        return item

    def update_quantity(self, line_id: str, quantity: int) -> CartLine | None:
        """Set a line's quantity; zero or less removes the line.

        Raises:
            KeyError: If the line is not in the cart.
        """
        line = self.get_line(line_id)
        if line is None:
            raise KeyError(line_id)
        if quantity <= 0:
            self.lines.remove(line)
            return None
        line.quantity = quantity
        return line

    def remove_item(self, line_id: str) -> bool:
        line = self.get_line(line_id)
        if line is None:
            return False
        self.lines.remove(line)
        return True

    def clear(self) -> None:
        self.lines.clear()
        self.discount = Decimal("0.00")

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def totals(self, rules: PricingRules | None = None) -> CartTotals:
        return calculate_totals(
            ((line.price, line.quantity) for line in self.lines),
            discount=self.discount,
            rules=rules,
        )


@dataclass
class CartEntry:
    """A stored cart with its idle expiry."""

    cart: Cart
    expires_at: float

    def is_expired(self) -> bool:
        return time.time() > self.expires_at


@dataclass
class CartStoreConfig:
    """Configuration for the cart store."""

    max_size: int = 10000
    ttl_seconds: int = 604800
    cleanup_interval_seconds: int = 600

    @classmethod
    def from_settings(cls) -> "CartStoreConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            max_size=settings.cart_max_size,
            ttl_seconds=settings.cart_ttl_seconds,
        )


class CartStore:
    """Thread-safe in-memory cart store with idle expiry."""

    def __init__(self, config: CartStoreConfig | None = None) -> None:
        self.config = config or CartStoreConfig()
        self._carts: dict[str, CartEntry] = {}
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Cart store cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Cart store cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = self.cleanup()
            if count > 0:
                logger.debug("Cart store removed %d expired carts", count)

    def get(self, session_id: str) -> Cart:
        """Return the cart for a session, creating an empty one if needed."""
        with self._lock:
            entry = self._carts.get(session_id)
            if entry is None or entry.is_expired():
                if len(self._carts) >= self.config.max_size:
                    self._evict_oldest()
                entry = CartEntry(cart=Cart(session_id=session_id), expires_at=0)
                self._carts[session_id] = entry
            entry.expires_at = time.time() + self.config.ttl_seconds
            return entry.cart

    def peek(self, session_id: str) -> Cart | None:
        """Return the cart for a session without creating or touching it."""
        with self._lock:
            entry = self._carts.get(session_id)
            if entry is None or entry.is_expired():
                return None
            return entry.cart

    def add_item(self, session_id: str, item: CartLine) -> Cart:
        cart = self.get(session_id)
        with self._lock:
            cart.add_item(item)
        return cart

    def update_quantity(self, session_id: str, line_id: str, quantity: int) -> Cart:
        cart = self.get(session_id)
        with self._lock:
            cart.update_quantity(line_id, quantity)
        return cart

    def remove_item(self, session_id: str, line_id: str) -> Cart:
        cart = self.get(session_id)
        with self._lock:
            if not cart.remove_item(line_id):
                raise KeyError(line_id)
        return cart

    def clear(self, session_id: str) -> None:
        """Empty a session's cart, if it exists."""
        with self._lock:
            entry = self._carts.get(session_id)
            if entry:
                entry.cart.clear()

    def _evict_oldest(self) -> None:
        """Evict expired carts, then the oldest 10%. Must be called with lock held."""
        expired = [k for k, v in self._carts.items() if v.is_expired()]
        for key in expired:
            del self._carts[key]

        if len(self._carts) >= self.config.max_size:
            oldest = sorted(self._carts.items(), key=lambda x: x[1].expires_at)
            to_remove = max(1, len(self._carts) // 10)
            for key, _ in oldest[:to_remove]:
                del self._carts[key]
            logger.warning("Cart store at capacity, evicted %d carts", to_remove)

    def cleanup(self) -> int:
        """Remove all expired carts.

        Returns:
            Number of carts removed.
        """
        with self._lock:
            expired = [k for k, v in self._carts.items() if v.is_expired()]
            for key in expired:
                del self._carts[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._carts)


_cart_store: CartStore | None = None


def get_cart_store() -> CartStore:
    """Get or create the global cart store."""
    global _cart_store
    if _cart_store is None:
        _cart_store = CartStore(CartStoreConfig.from_settings())
    return _cart_store


async def init_cart_store() -> CartStore:
    """Initialize cart store with cleanup task. Call at app startup."""
    store = get_cart_store()
    await store.start_cleanup_task()
    return store


async def shutdown_cart_store() -> None:
    """Shutdown cart store cleanup task. Call at app shutdown."""
    if _cart_store:
        await _cart_store.stop_cleanup_task()
