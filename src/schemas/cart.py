"""Cart Pydantic schemas for API request/response models."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.common import Money


class CartCustomizations(BaseModel):
    """Optional product personalisation chosen on the product page."""

    model_config = ConfigDict(from_attributes=True)

    size: str | None = Field(default=None, max_length=50, description="Selected size")
    material: str | None = Field(default=None, max_length=50, description="Selected material or finish")
    engraving: str | None = Field(default=None, max_length=200, description="Personalised engraving text")


class CartItemAdd(BaseModel):
    """Schema for adding a product to the cart via POST /cart/items."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID = Field(description="Product to add")
    quantity: int = Field(default=1, ge=1, le=99, description="Quantity to add")
    customizations: CartCustomizations | None = Field(default=None, description="Optional personalisation")


class CartItemUpdate(BaseModel):
    """Schema for changing a line's quantity. Zero removes the line."""

    model_config = ConfigDict(from_attributes=True)

    quantity: int = Field(ge=0, le=99, description="New quantity")


class CartLineResponse(BaseModel):
    """A single cart line."""

    model_config = ConfigDict(from_attributes=True)

    line_id: str = Field(description="Stable line identifier (product + variant)")
    product_id: str = Field(description="Product UUID")
    name: str = Field(description="Product name")
    sku: str | None = Field(default=None, description="Product SKU")
    price: Money = Field(description="Unit price in pounds")
    original_price: Money | None = Field(default=None, description="Regular price when on sale")
    quantity: int = Field(description="Quantity")
    line_total: Money = Field(description="Unit price times quantity")
    image: str | None = Field(default=None, description="Featured image URL")
    category: str | None = Field(default=None, description="Product category")
    customizations: dict = Field(default_factory=dict, description="Chosen personalisation")


class CartTotalsResponse(BaseModel):
    """Derived cart totals."""

    model_config = ConfigDict(from_attributes=True)

    subtotal: Money = Field(description="Sum of line totals")
    vat: Money = Field(description="VAT on the subtotal")
    shipping: Money = Field(description="Shipping charge (zero above the free-shipping threshold)")
    discount: Money = Field(description="Manual discount")
    total: Money = Field(description="subtotal + vat + shipping - discount")
    free_shipping_threshold: Money = Field(description="Subtotal needed for free shipping")
    currency: str = Field(default="GBP", description="Currency code")


class CartResponse(BaseModel):
    """Schema for cart API responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CartLineResponse] = Field(description="Cart lines")
    total_items: int = Field(description="Sum of line quantities")
    totals: CartTotalsResponse = Field(description="Derived totals")
