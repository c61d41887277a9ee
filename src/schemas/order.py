"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from src.schemas.common import Money, PaginatedMeta


OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "ready",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
    "on-hold",
    "failed",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
PaymentMethodType = Literal["card", "paypal", "apple_pay", "google_pay"]
BulkAction = Literal["mark_paid", "mark_shipped", "start_production", "cancel_orders", "update_status"]


class OrderItemInput(BaseModel):
    """A line item supplied when creating an order."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID = Field(description="Product UUID")
    quantity: int = Field(ge=1, le=99, description="Quantity ordered")
    price: Money | None = Field(default=None, ge=0, description="Unit price override (admin orders only)")


class OrderAddressInput(BaseModel):
    """An address entered with an order."""

    model_config = ConfigDict(from_attributes=True)

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    company: str | None = Field(default=None, max_length=100)
    address_line_1: str = Field(min_length=1, max_length=200)
    address_line_2: str | None = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    county: str | None = Field(default=None, max_length=100)
    postcode: str = Field(min_length=1, max_length=20)
    country: str = Field(default="GB", min_length=2, max_length=2)
    phone: str | None = Field(default=None, max_length=30)


class OrderCustomerInput(BaseModel):
    """Customer contact details supplied with an order."""

    model_config = ConfigDict(from_attributes=True)

    email: EmailStr = Field(description="Customer email")
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=30)


class OrderCreateRequest(BaseModel):
    """Schema for POST /orders and POST /orders/create."""

    model_config = ConfigDict(from_attributes=True)

    customer: OrderCustomerInput = Field(description="Customer contact details")
    items: list[OrderItemInput] = Field(min_length=1, description="Line items")
    billing_address: OrderAddressInput | None = Field(default=None, description="Billing address")
    shipping_address: OrderAddressInput | None = Field(default=None, description="Shipping address")
    same_as_billing: bool = Field(default=True, description="Ship to the billing address")
    billing_address_id: UUID | None = Field(default=None, description="Saved billing address")
    shipping_address_id: UUID | None = Field(default=None, description="Saved shipping address")
    payment_method: PaymentMethodType = Field(default="card", description="Payment method")
    payment_status: PaymentStatus = Field(default="pending", description="Initial payment status")
    discount: Money = Field(default=0, ge=0, description="Manual discount in pounds")
    notes: str | None = Field(default=None, max_length=2000, description="Order notes")

    @model_validator(mode="after")
    def check_billing_address(self) -> "OrderCreateRequest":
        """Either a saved billing address or an entered one is required."""
        if self.billing_address is None and self.billing_address_id is None:
            raise ValueError("billing_address or billing_address_id is required")
        return self


class OrderItemResponse(BaseModel):
    """Schema for an order line item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = Field(default=None)
    product_id: UUID | None = Field(default=None, description="Product UUID (null if the product was deleted)")
    product_name: str = Field(description="Product name at time of order")
    product_sku: str | None = Field(default=None, description="Product SKU at time of order")
    quantity: int = Field(description="Quantity ordered")
    price: Money = Field(description="Unit price")
    total: Money = Field(description="Line total")


class OrderCustomerSummary(BaseModel):
    """Customer summary embedded in order views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    order_number: str | None = Field(default=None, description="Human-readable order number")
    customer_id: UUID | None = Field(default=None, description="Customer (null for deleted guests)")
    customer: OrderCustomerSummary | None = Field(default=None, description="Customer summary")
    status: OrderStatus = Field(description="Fulfilment status")
    payment_status: PaymentStatus = Field(description="Payment status")
    payment_method: str | None = Field(default=None, description="Payment method type")
    subtotal: Money = Field(description="Sum of line totals")
    tax_amount: Money = Field(description="VAT")
    shipping_amount: Money = Field(description="Shipping charge")
    discount_amount: Money = Field(default=0, description="Discount")
    total: Money = Field(description="Order total")
    currency: str = Field(default="GBP", description="Currency code")
    notes: str | None = Field(default=None)
    tracking_number: str | None = Field(default=None)
    billing_address: dict[str, Any] | None = Field(default=None)
    shipping_address: dict[str, Any] | None = Field(default=None)
    items: list[OrderItemResponse] = Field(default_factory=list, description="Line items")
    shipped_at: datetime | None = Field(default=None)
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None)


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")
    meta: PaginatedMeta | None = Field(default=None, description="Pagination metadata")


class OrderCreatedResponse(BaseModel):
    """Schema returned after creating an order."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Created order ID")
    order_number: str = Field(description="Human-readable order number")
    customer_id: UUID = Field(description="Customer the order belongs to")
    total: Money = Field(description="Order total")
    status: OrderStatus = Field(description="Initial status")
    payment_status: PaymentStatus = Field(description="Initial payment status")
    is_guest_order: bool = Field(description="Whether the order was placed without an account")


class OrderUpdateRequest(BaseModel):
    """Schema for PATCH /orders/{id}."""

    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus | None = Field(default=None)
    payment_status: PaymentStatus | None = Field(default=None)
    notes: str | None = Field(default=None, max_length=2000)
    tracking_number: str | None = Field(default=None, max_length=100)


class OrderStatusResponse(BaseModel):
    """Lightweight status view used for polling after a PayPal popup closes."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    order_number: str | None = None
    order_status: OrderStatus
    payment_status: PaymentStatus


class BulkActionRequest(BaseModel):
    """Schema for POST /orders/bulk."""

    model_config = ConfigDict(from_attributes=True)

    action: BulkAction = Field(description="Action to apply")
    order_ids: list[UUID] = Field(min_length=1, max_length=200, description="Selected orders")
    status: OrderStatus | None = Field(default=None, description="Target status for update_status")
    reason: str | None = Field(default=None, max_length=500, description="Cancellation reason")

    @model_validator(mode="after")
    def check_status_for_update(self) -> "BulkActionRequest":
        """update_status needs a target status."""
        if self.action == "update_status" and self.status is None:
            raise ValueError("status is required for update_status")
        return self


class BulkActionResponse(BaseModel):
    """Result of a bulk order action."""

    model_config = ConfigDict(from_attributes=True)

    action: BulkAction
    updated_count: int = Field(description="Orders updated")
    skipped_order_ids: list[UUID] = Field(default_factory=list, description="Orders whose status could not transition")
    message: str = Field(description="Summary message")


class CancelPayPalRequest(BaseModel):
    """Schema for POST /orders/{id}/cancel-paypal."""

    model_config = ConfigDict(from_attributes=True)

    reason: str | None = Field(default=None, max_length=500)


class TopProduct(BaseModel):
    """A best-selling product in a stats period."""

    name: str = Field(description="Product name as sold")
    quantity: int = Field(description="Units sold")
    revenue: Money = Field(description="Line totals for this product")


class RecentOrder(BaseModel):
    """Compact order row for the dashboard."""

    id: UUID
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    total: Money
    created_at: datetime
    item_count: int


class OrderStatsResponse(BaseModel):
    """Order statistics for the back-office dashboard."""

    period: Literal["today", "week", "month", "year", "all"] = Field(description="Reporting period")
    generated_at: datetime = Field(description="When the report was generated")
    total_orders: int
    pending_orders: int
    processing_orders: int = Field(description="Orders in production")
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int
    paid_orders: int
    unpaid_orders: int
    failed_orders: int
    refunded_orders: int
    total_revenue: Money = Field(description="Paid orders that were not cancelled")
    average_order_value: Money = Field(description="Mean total of orders that were not cancelled")
    total_items: int = Field(description="Line items across all orders in the period")
    top_products: list[TopProduct] = Field(default_factory=list)
    recent_orders: list[RecentOrder] = Field(default_factory=list)
