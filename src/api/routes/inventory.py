"""Inventory API routes for the admin back-office."""

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.api.deps import AdminUser
from src.schemas.common import PaginatedMeta
from src.schemas.inventory import (
    ReportType,
    StockAdjustRequest,
    StockLevel,
    StockMovementListResponse,
    StockMovementResponse,
    StockReportResponse,
    StockSummaryResponse,
)
from src.services.inventory_service import InventoryService, get_inventory_service

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post(
    "/adjust",
    response_model=StockLevel,
    summary="Adjust stock",
    description="Sets a product's stock after a manual count and records the difference in the stock ledger.",
)
async def adjust_stock(
    data: StockAdjustRequest,
    admin: AdminUser,
    service: InventoryService = Depends(get_inventory_service),
) -> StockLevel:
    """Set a product's stock level.

    Raises:
        NotFoundError: If the product does not exist.
    """
    product = await service.adjust_stock(
        data.product_id,
        data.new_quantity,
        data.reason,
        performed_by=str(admin.user_id),
    )
    return StockLevel(**product)


@router.get(
    "/movements",
    response_model=StockMovementListResponse,
    summary="List stock movements",
    description="Stock ledger entries, newest first, optionally for one product.",
)
async def list_movements(
    admin: AdminUser,
    product_id: Annotated[UUID | None, Query(description="Only this product's movements")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: InventoryService = Depends(get_inventory_service),
) -> StockMovementListResponse:
    """List stock movements."""
    result = await service.list_movements(product_id=product_id, limit=limit, offset=offset)
    return StockMovementListResponse(
        items=[StockMovementResponse(**m) for m in result["items"]],
        meta=PaginatedMeta(total=result["total"], limit=limit, offset=offset),
    )


@router.get(
    "/reports",
    response_model=StockReportResponse,
    response_model_exclude_none=True,
    summary="Inventory report",
    description=(
        "summary: counts per stock status and stock value. low-stock: products at or below "
        "their threshold. detailed: every active product plus the summary."
    ),
)
async def stock_report(
    admin: AdminUser,
    report_type: Annotated[ReportType, Query(alias="type")] = "summary",
    service: InventoryService = Depends(get_inventory_service),
) -> StockReportResponse:
    """Build an inventory report."""
    report = StockReportResponse(report_type=report_type, generated_at=datetime.now(timezone.utc))
    if report_type in ("summary", "detailed"):
        report.summary = StockSummaryResponse(**asdict(await service.stock_summary()))
    if report_type == "low-stock":
        report.products = [StockLevel(**p) for p in await service.low_stock_products()]
    elif report_type == "detailed":
        report.products = [StockLevel(**p) for p in await service.stock_levels()]
    return report
