"""Product model type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TypedDict
from uuid import UUID


class ProductStatus(str, Enum):
    """Product publication status."""

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class StockStatus(str, Enum):
    """Derived stock status kept in sync by the inventory service."""

    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    MADE_TO_ORDER = "made_to_order"


class Product(TypedDict):
    """Product table row representation."""

    id: UUID
    name: str
    slug: str
    sku: str | None
    description: str | None
    short_description: str | None
    regular_price: Decimal
    sale_price: Decimal | None
    stock: int
    manage_stock: bool
    stock_status: str
    low_stock_threshold: int
    category: str | None
    subcategory: str | None
    arabic_text: str | None
    transliteration: str | None
    translation: str | None
    historical_context: str | None
    images: list[dict[str, Any]]
    model_3d_url: str | None
    hdri_url: str | None
    featured_image: str | None
    status: ProductStatus
    visibility: str
    featured: bool
    created_at: datetime
    updated_at: datetime


class ProductCreate(TypedDict, total=False):
    """Data required to create a new product."""

    name: str
    slug: str
    sku: str | None
    description: str | None
    regular_price: Decimal
    sale_price: Decimal | None
    stock: int
    manage_stock: bool
    category: str | None
    status: ProductStatus


class StockMovement(TypedDict):
    """Inventory ledger row written for every stock change."""

    id: UUID
    product_id: UUID
    type: str
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str
    reference: str | None
    performed_by: str | None
    created_at: datetime


def effective_price(product: dict[str, Any]) -> Decimal:
    """Return the price a customer pays: the sale price when set, else the regular price."""
    sale_price = product.get("sale_price")
    if sale_price is not None and Decimal(str(sale_price)) > 0:
        return Decimal(str(sale_price))
    return Decimal(str(product.get("regular_price") or 0))
