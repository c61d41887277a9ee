"""Product service for catalogue CRUD operations."""

import logging
from typing import Any
from uuid import UUID

from supabase import Client

from src.core.supabase import get_supabase_client, ilike_pattern
from src.models.product import Product, ProductCreate, StockStatus

logger = logging.getLogger(__name__)


def derive_stock_status(stock: int, manage_stock: bool, low_stock_threshold: int = 5) -> str:
    """Compute the stock_status column from the stock level."""
    if not manage_stock:
        return StockStatus.MADE_TO_ORDER.value
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK.value
    if stock <= low_stock_threshold:
        return StockStatus.LOW_STOCK.value
    return StockStatus.IN_STOCK.value


class ProductService:
    """Service for product operations."""

    def __init__(self, supabase_client: Client | None = None):
        """Initialize product service.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    async def create_product(self, data: ProductCreate) -> Product:
        """Create a new product.

        Args:
            data: Product creation data.

        Returns:
            Product: Created product.

        Raises:
            Exception: If creation fails.
        """
        try:
            row = dict(data)
            row["stock_status"] = derive_stock_status(
                row.get("stock", 0),
                row.get("manage_stock", True),
                row.get("low_stock_threshold", 5),
            )
            result = self.supabase.table("products").insert(row).execute()

            if not result.data:
                raise Exception("Failed to create product")

            product = result.data[0]
            logger.info("Created product %s (%s)", product["id"], product.get("sku"))
            return product

        except Exception as e:
            logger.error("Failed to create product: %s", e)
            raise

    async def get_product(self, product_id: UUID) -> Product | None:
        """Get a product by ID.

        Args:
            product_id: Product UUID.

        Returns:
            Product or None if not found.
        """
        try:
            result = (
                self.supabase.table("products")
                .select("*")
                .eq("id", str(product_id))
                .execute()
            )

            if result.data:
                return result.data[0]
            return None

        except Exception as e:
            logger.error("Failed to get product %s: %s", product_id, e)
            raise

    async def update_product(self, product_id: UUID, data: dict[str, Any]) -> Product | None:
        """Update a product.

        Keeps stock_status in step when stock or manage_stock change.

        Args:
            product_id: Product UUID.
            data: Update data.

        Returns:
            Product or None if not found.
        """
        try:
            update_data = {k: v for k, v in data.items() if v is not None}

            if not update_data:
                return await self.get_product(product_id)

            if "stock" in update_data or "manage_stock" in update_data:
                current = await self.get_product(product_id)
                if not current:
                    return None
                update_data["stock_status"] = derive_stock_status(
                    update_data.get("stock", current.get("stock", 0)),
                    update_data.get("manage_stock", current.get("manage_stock", True)),
                    current.get("low_stock_threshold", 5),
                )

            result = (
                self.supabase.table("products")
                .update(update_data)
                .eq("id", str(product_id))
                .execute()
            )

            if not result.data:
                return None

            logger.info("Updated product %s", product_id)
            return result.data[0]

        except Exception as e:
            logger.error("Failed to update product %s: %s", product_id, e)
            raise

    async def delete_product(self, product_id: UUID) -> bool:
        """Delete a product.

        Order items keep their name/SKU snapshot; the database nulls
        their product reference.

        Args:
            product_id: Product UUID.

        Returns:
            bool: True if deleted, False if not found.
        """
        try:
            result = (
                self.supabase.table("products")
                .delete()
                .eq("id", str(product_id))
                .execute()
            )

            if not result.data:
                return False

            logger.info("Deleted product %s", product_id)
            return True

        except Exception as e:
            logger.error("Failed to delete product %s: %s", product_id, e)
            raise

    async def list_products(
        self,
        status: str | None = None,
        category: str | None = None,
        search: str | None = None,
        featured: bool | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        """List products with optional filtering and pagination.

        Args:
            status: Filter by publication status.
            category: Filter by category.
            search: Case-insensitive match on name or SKU.
            featured: Filter featured products.
            cursor: Pagination cursor (product ID).
            limit: Number of results per page.

        Returns:
            dict: Products list with pagination info.
        """
        try:
            query = (
                self.supabase.table("products")
                .select("*")
                .order("created_at", desc=True)
                .limit(limit + 1)  # Get one extra to check for more
            )

            if status:
                query = query.eq("status", status)

            if category:
                query = query.eq("category", category)

            if featured is not None:
                query = query.eq("featured", featured)

            if search:
                pattern = ilike_pattern(search)
                query = query.or_(f"name.ilike.{pattern},sku.ilike.{pattern}")

            if cursor:
                cursor_result = (
                    self.supabase.table("products")
                    .select("created_at")
                    .eq("id", cursor)
                    .execute()
                )

                if cursor_result.data:
                    query = query.lt("created_at", cursor_result.data[0]["created_at"])

            result = query.execute()
            products = result.data or []

            has_more = len(products) > limit
            if has_more:
                products = products[:limit]

            return {
                "products": products,
                "next_cursor": products[-1]["id"] if has_more and products else None,
                "has_more": has_more,
            }

        except Exception as e:
            logger.error("Failed to list products: %s", e)
            raise

    async def get_products_by_ids(self, product_ids: list[UUID | str]) -> list[Product]:
        """Get multiple products by their IDs.

        Args:
            product_ids: List of product UUIDs.

        Returns:
            list[Product]: List of products found.
        """
        if not product_ids:
            return []

        try:
            result = (
                self.supabase.table("products")
                .select("*")
                .in_("id", [str(pid) for pid in product_ids])
                .execute()
            )

            return result.data or []

        except Exception as e:
            logger.error("Failed to get products by IDs: %s", e)
            raise


def get_product_service() -> ProductService:
    """Get product service instance.

    Returns:
        ProductService: Product service instance.
    """
    return ProductService()
