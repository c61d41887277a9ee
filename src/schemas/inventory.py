"""Inventory Pydantic schemas for the back-office stock endpoints."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.common import Money, PaginatedMeta

ReportType = Literal["summary", "low-stock", "detailed"]


class StockAdjustRequest(BaseModel):
    """Set a product's stock after a manual count."""

    product_id: UUID = Field(description="Product to adjust")
    new_quantity: int = Field(ge=0, description="Counted stock level")
    reason: str = Field(min_length=1, max_length=200, description="Why the stock changed")


class StockLevel(BaseModel):
    """A product's stock position."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    sku: str | None = None
    stock: int
    stock_status: str
    low_stock_threshold: int | None = None
    manage_stock: bool | None = None
    regular_price: Money | None = None
    sale_price: Money | None = None
    category: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MovementProduct(BaseModel):
    """Product summary embedded in a stock movement."""

    id: UUID
    name: str
    sku: str | None = None


class StockMovementResponse(BaseModel):
    """One entry in the stock ledger."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    type: Literal["in", "out", "adjustment"]
    quantity: int = Field(description="Units moved, always positive")
    previous_stock: int
    new_stock: int
    reason: str
    reference: str | None = None
    performed_by: str | None = None
    created_at: datetime
    product: MovementProduct | None = None


class StockMovementListResponse(BaseModel):
    """Paginated stock movements."""

    items: list[StockMovementResponse]
    meta: PaginatedMeta


class StockSummaryResponse(BaseModel):
    """Stock totals across active, stock-managed products."""

    model_config = ConfigDict(from_attributes=True)

    total_products: int
    in_stock: int
    low_stock: int
    out_of_stock: int
    total_stock_value: Money = Field(description="Stock on hand at current selling prices")


class StockReportResponse(BaseModel):
    """An inventory report. Which fields are set depends on ``report_type``."""

    report_type: ReportType
    generated_at: datetime
    summary: StockSummaryResponse | None = None
    products: list[StockLevel] | None = None
