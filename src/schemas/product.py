"""Product Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.schemas.common import Money


ProductStatus = Literal["draft", "active", "archived"]


class ProductBase(BaseModel):
    """Base product fields shared across schemas."""

    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$", description="URL slug")
    sku: str | None = Field(default=None, max_length=64, description="Stock keeping unit")
    description: str | None = Field(default=None, description="Product description")
    short_description: str | None = Field(default=None, max_length=500, description="Listing blurb")
    regular_price: Money = Field(..., ge=0, description="Regular price in pounds")
    sale_price: Money | None = Field(default=None, ge=0, description="Sale price in pounds")
    stock: int = Field(default=0, ge=0, description="Units in stock")
    manage_stock: bool = Field(default=True, description="Whether stock is tracked (false for made-to-order)")
    low_stock_threshold: int = Field(default=5, ge=0, description="Stock level that counts as low")
    category: str | None = Field(default=None, description="Product category")
    subcategory: str | None = Field(default=None, description="Product subcategory")
    arabic_text: str | None = Field(default=None, description="Arabic calligraphy text")
    transliteration: str | None = Field(default=None, description="Latin transliteration")
    translation: str | None = Field(default=None, description="English translation")
    historical_context: str | None = Field(default=None, description="Historical or cultural notes")
    images: list[dict[str, Any]] = Field(default_factory=list, description="Image objects (url, alt)")
    model_3d_url: str | None = Field(default=None, description="3D model URL")
    hdri_url: str | None = Field(default=None, description="HDRI environment URL for the 3D viewer")
    featured_image: str | None = Field(default=None, description="Primary image URL")
    status: ProductStatus = Field(default="draft", description="Publication status")
    featured: bool = Field(default=False, description="Shown on the home page")


class ProductCreate(ProductBase):
    """Schema for creating a new product."""

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def check_sale_price(self) -> "ProductCreate":
        """A sale price must be below the regular price."""
        if self.sale_price is not None and self.sale_price >= self.regular_price:
            raise ValueError("sale_price must be lower than regular_price")
        return self


class ProductUpdate(BaseModel):
    """Schema for updating a product. All fields optional."""

    model_config = ConfigDict(from_attributes=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None)
    short_description: str | None = Field(default=None, max_length=500)
    regular_price: Decimal | None = Field(default=None, ge=0)
    sale_price: Decimal | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)
    manage_stock: bool | None = Field(default=None)
    category: str | None = Field(default=None)
    subcategory: str | None = Field(default=None)
    images: list[dict[str, Any]] | None = Field(default=None)
    featured_image: str | None = Field(default=None)
    status: ProductStatus | None = Field(default=None)
    featured: bool | None = Field(default=None)


class ProductResponse(ProductBase):
    """Schema for product API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Product unique identifier")
    stock_status: str | None = Field(default=None, description="Derived stock status")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""

    model_config = ConfigDict(from_attributes=True)

    products: list[ProductResponse] = Field(description="List of products")
    next_cursor: str | None = Field(default=None, description="Cursor for next page")
    has_more: bool = Field(default=False, description="Whether more results exist")
