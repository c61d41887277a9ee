"""Inventory checks, stock movements and stock reports."""

import logging
import time
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import BusinessRuleError, NotFoundError, ValidationError
from src.core.supabase import get_supabase_client
from src.models.product import ProductStatus, StockStatus, effective_price
from src.services.pricing import to_money

logger = logging.getLogger(__name__)

# Raised by adjust_product_stock() when a deduction would go below zero
INSUFFICIENT_STOCK_SQLSTATE = "P0001"
PRODUCT_NOT_FOUND_SQLSTATE = "P0002"

MOVEMENT_SELECT = "*, product:products(id, name, sku)"
STOCK_LEVEL_SELECT = (
    "id, name, sku, stock, stock_status, low_stock_threshold, manage_stock, "
    "regular_price, sale_price, category, created_at, updated_at"
)


@dataclass
class StockSummary:
    """Stock totals for the back-office dashboard."""

    total_products: int
    in_stock: int
    low_stock: int
    out_of_stock: int
    total_stock_value: Decimal


@dataclass
class StockShortfall:
    """A line that cannot be fulfilled from current stock."""

    product_id: str
    name: str
    requested: int
    available: int


@dataclass
class StockCheckResult:
    """Result of checking a set of lines against stock."""

    valid: bool
    shortfalls: list[StockShortfall] = field(default_factory=list)

    def message(self) -> str:
        names = ", ".join(
            f"{s.name} (requested {s.requested}, available {s.available})" for s in self.shortfalls
        )
        return f"Insufficient stock for: {names}"


class InsufficientStockError(BusinessRuleError):
    """Raised when an order cannot be fulfilled from stock."""

    def __init__(self, result: StockCheckResult) -> None:
        super().__init__(
            message=result.message(),
            details=[
                {
                    "loc": ["items", s.product_id],
                    "msg": f"Only {s.available} of {s.name} available",
                    "type": "insufficient_stock",
                }
                for s in result.shortfalls
            ],
        )
        self.result = result


def group_quantities(items: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Sum quantities per product ID."""
    totals: dict[str, int] = defaultdict(int)
    for item in items:
        if item.get("product_id"):
            totals[str(item["product_id"])] += int(item["quantity"])
    return dict(totals)


class InventoryService:
    """Service for stock availability and stock movements."""

    def __init__(self, client: Client | None = None) -> None:
        """Initialize inventory service with Supabase client."""
        self.client = client or get_supabase_client()

    async def check_stock_availability(self, items: Iterable[dict[str, Any]]) -> StockCheckResult:
        """Check requested quantities against current stock.

        Products that do not track stock are always available; unknown
        products are reported with zero availability.

        Args:
            items: Dicts with ``product_id`` and ``quantity``.

        Returns:
            StockCheckResult: Whether every line can be fulfilled.
        """
        requested = group_quantities(items)
        if not requested:
            return StockCheckResult(valid=True)

        response = (
            self.client.table("products")
            .select("id, name, stock, manage_stock")
            .in_("id", list(requested))
            .execute()
        )
        products = {p["id"]: p for p in response.data or []}

        shortfalls = []
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                shortfalls.append(StockShortfall(product_id, "Unknown product", quantity, 0))
                continue
            if not product.get("manage_stock", True):
                continue
            available = int(product.get("stock") or 0)
            if available < quantity:
                shortfalls.append(StockShortfall(product_id, product["name"], quantity, available))

        return StockCheckResult(valid=not shortfalls, shortfalls=shortfalls)

    def _adjust(self, product_id: str, delta: int, reason: str, reference: str | None, performed_by: str | None) -> Any:
        return self.client.rpc(
            "adjust_product_stock",
            {
                "p_product_id": product_id,
                "p_delta": delta,
                "p_reason": reason,
                "p_reference": reference,
                "p_performed_by": performed_by,
            },
        ).execute()

    async def deduct_stock(
        self,
        items: Iterable[dict[str, Any]],
        reference: str,
        performed_by: str | None = None,
    ) -> None:
        """Deduct stock for each line and record an ``out`` movement.

        Each product is decremented with a single conditional UPDATE in the
        database. If any product runs short, products already decremented
        are restored before the error is raised.

        Raises:
            InsufficientStockError: If a product no longer has enough stock.
        """
        requested = group_quantities(items)
        deducted: dict[str, int] = {}
        try:
            for product_id, quantity in requested.items():
                self._adjust(product_id, -quantity, "order_placed", reference, performed_by)
                deducted[product_id] = quantity
        except PostgrestAPIError as e:
            if deducted:
                await self.restore_stock(
                    [{"product_id": pid, "quantity": qty} for pid, qty in deducted.items()],
                    reference=reference,
                    reason="order_rollback",
                )
            if e.code == INSUFFICIENT_STOCK_SQLSTATE:
                failed_id = next(pid for pid in requested if pid not in deducted)
                result = await self.check_stock_availability(
                    [{"product_id": failed_id, "quantity": requested[failed_id]}]
                )
                if result.valid:
                    result = StockCheckResult(
                        valid=False,
                        shortfalls=[StockShortfall(failed_id, failed_id, requested[failed_id], 0)],
                    )
                raise InsufficientStockError(result) from e
            raise

        logger.info("Deducted stock for %d products (%s)", len(deducted), reference)

    async def restore_stock(
        self,
        items: Iterable[dict[str, Any]],
        reference: str,
        reason: str = "order_cancelled",
        performed_by: str | None = None,
    ) -> int:
        """Return stock for each line and record an ``in`` movement.

        Quantities are grouped per product. Failures are logged and the
        remaining products are still restored.

        Returns:
            int: Number of products restored.
        """
        restored = 0
        for product_id, quantity in group_quantities(items).items():
            try:
                self._adjust(product_id, quantity, reason, reference, performed_by)
                restored += 1
            except PostgrestAPIError as e:
                logger.error(
                    "Failed to restore %d units of product %s for %s: %s",
                    quantity,
                    product_id,
                    reference,
                    e.message,
                )
        logger.info("Restored stock for %d products (%s)", restored, reference)
        return restored

    # === Back-office ===

    async def adjust_stock(
        self,
        product_id: UUID | str,
        new_quantity: int,
        reason: str,
        performed_by: str | None = None,
    ) -> dict[str, Any]:
        """Set a product's stock after a manual count.

        The difference is recorded as an ``adjustment`` movement whose reason
        carries the signed change, e.g. ``"Stocktake (+3)"``.

        Returns:
            dict: The updated product row.

        Raises:
            ValidationError: If the quantity is negative.
            NotFoundError: If the product does not exist.
        """
        if new_quantity < 0:
            raise ValidationError(
                "Stock cannot be negative",
                details=[{"loc": ["body", "new_quantity"], "msg": "Must be 0 or more", "type": "value_error"}],
            )

        try:
            response = self.client.rpc(
                "set_product_stock",
                {
                    "p_product_id": str(product_id),
                    "p_new_stock": new_quantity,
                    "p_reason": reason,
                    "p_reference": f"adjustment-{int(time.time() * 1000)}",
                    "p_performed_by": performed_by,
                },
            ).execute()
        except PostgrestAPIError as e:
            if e.code == PRODUCT_NOT_FOUND_SQLSTATE:
                raise NotFoundError("Product not found") from e
            raise

        product = response.data[0] if isinstance(response.data, list) else response.data
        logger.info("Stock of product %s set to %d by %s", product_id, new_quantity, performed_by)
        return product

    async def list_movements(
        self,
        product_id: UUID | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Stock movements, newest first, with the product's name and SKU."""
        query = self.client.table("stock_movements").select(MOVEMENT_SELECT, count="exact")
        if product_id:
            query = query.eq("product_id", str(product_id))

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        movements = response.data or []
        return {"items": movements, "total": response.count if response.count is not None else len(movements)}

    async def low_stock_products(self) -> list[dict[str, Any]]:
        """Active stock-managed products that are low or out of stock, emptiest first."""
        response = (
            self.client.table("products")
            .select("id, name, sku, stock, low_stock_threshold, stock_status")
            .eq("manage_stock", True)
            .eq("status", ProductStatus.ACTIVE.value)
            .in_("stock_status", [StockStatus.LOW_STOCK.value, StockStatus.OUT_OF_STOCK.value])
            .order("stock")
            .execute()
        )
        return response.data or []

    async def stock_levels(self) -> list[dict[str, Any]]:
        """Stock detail for every active product, emptiest first."""
        response = (
            self.client.table("products")
            .select(STOCK_LEVEL_SELECT)
            .eq("status", ProductStatus.ACTIVE.value)
            .order("stock")
            .execute()
        )
        return response.data or []

    async def stock_summary(self) -> StockSummary:
        """Counts per stock status and the retail value of stock on hand.

        Only active products that track stock are included.
        """
        response = (
            self.client.table("products")
            .select("stock, stock_status, regular_price, sale_price")
            .eq("status", ProductStatus.ACTIVE.value)
            .eq("manage_stock", True)
            .execute()
        )
        products = response.data or []
        statuses = Counter(p.get("stock_status") for p in products)
        value = sum(
            (int(p.get("stock") or 0) * effective_price(p) for p in products),
            Decimal("0"),
        )
        return StockSummary(
            total_products=len(products),
            in_stock=statuses[StockStatus.IN_STOCK.value],
            low_stock=statuses[StockStatus.LOW_STOCK.value],
            out_of_stock=statuses[StockStatus.OUT_OF_STOCK.value],
            total_stock_value=to_money(value),
        )


def get_inventory_service() -> InventoryService:
    """Get inventory service instance."""
    return InventoryService()
