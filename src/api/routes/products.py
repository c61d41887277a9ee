"""Product catalogue API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.deps import AdminUser, OptionalUser, is_admin_user
from src.models.product import ProductStatus
from src.schemas.product import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from src.services.product_service import ProductService, get_product_service

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    user: OptionalUser,
    category: Annotated[str | None, Query(description="Filter by category")] = None,
    search: Annotated[str | None, Query(max_length=100, description="Match name or SKU")] = None,
    featured: Annotated[bool | None, Query(description="Only featured products")] = None,
    product_status: Annotated[str | None, Query(alias="status", description="Filter by status (admin only)")] = None,
    cursor: Annotated[str | None, Query(description="Pagination cursor")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Results per page")] = 20,
    product_service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    """List products with optional filtering and pagination.

    The storefront only sees active products; admins may filter by any status.
    """
    if not (user and is_admin_user(user)):
        product_status = ProductStatus.ACTIVE.value

    result = await product_service.list_products(
        status=product_status,
        category=category,
        search=search,
        featured=featured,
        cursor=cursor,
        limit=limit,
    )

    products = [ProductResponse(**p) for p in result["products"]]

    return ProductListResponse(
        products=products,
        next_cursor=result.get("next_cursor"),
        has_more=result.get("has_more", False),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    user: OptionalUser,
    product_service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """Get a product by ID.

    Draft and archived products are only visible to admins.
    """
    product = await product_service.get_product(product_id)
    visible = product and (product.get("status") == ProductStatus.ACTIVE.value or (user and is_admin_user(user)))
    if not visible:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    return ProductResponse(**product)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    admin: AdminUser,
    product_service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """Create a new product. Requires admin."""
    product = await product_service.create_product(data.model_dump(mode="json"))

    return ProductResponse(**product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    admin: AdminUser,
    product_service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """Update a product. Requires admin."""
    product = await product_service.update_product(product_id, data.model_dump(mode="json", exclude_none=True))
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    return ProductResponse(**product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    admin: AdminUser,
    product_service: ProductService = Depends(get_product_service),
) -> None:
    """Delete a product. Requires admin."""
    deleted = await product_service.delete_product(product_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )
