"""Order API routes: storefront order views and admin order management."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.deps import AdminUser, CurrentCustomer, CurrentUser, OptionalUser, is_admin_user
from src.api.middleware.error_handler import NotFoundError
from src.schemas.common import PaginatedMeta
from src.schemas.order import (
    BulkActionRequest,
    BulkActionResponse,
    CancelPayPalRequest,
    OrderCreatedResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusResponse,
    OrderUpdateRequest,
)
from src.services.checkout_service import CheckoutService, get_checkout_service
from src.services.customer_service import CustomerService
from src.services.order_service import OrderService, StatsPeriod, get_order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _created_response(order: dict) -> OrderCreatedResponse:
    return OrderCreatedResponse(
        order_id=order["id"],
        order_number=order["order_number"],
        customer_id=order["customer_id"],
        total=order["total"],
        status=order["status"],
        payment_status=order["payment_status"],
        is_guest_order=order["is_guest_order"],
    )


async def _create(
    data: OrderCreateRequest,
    service: OrderService,
    customer_id: str | None = None,
    payment_status: str = "pending",
    allow_price_override: bool = False,
    performed_by: str | None = None,
) -> dict:
    return await service.create_order(
        customer=data.customer.model_dump(),
        items=[item.model_dump(exclude_none=True) for item in data.items],
        billing_address=data.billing_address.model_dump() if data.billing_address else None,
        shipping_address=data.shipping_address.model_dump() if data.shipping_address else None,
        same_as_billing=data.same_as_billing,
        billing_address_id=data.billing_address_id,
        shipping_address_id=data.shipping_address_id,
        payment_method=data.payment_method,
        payment_status=payment_status,
        discount=data.discount,
        notes=data.notes,
        customer_id=customer_id,
        allow_price_override=allow_price_override,
        performed_by=performed_by,
    )


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders (admin)",
    description="Paginated order list with customer summary and items, newest first.",
)
async def list_orders(
    admin: AdminUser,
    order_status: Annotated[str | None, Query(alias="status", description="Filter by order status")] = None,
    payment_status: Annotated[str | None, Query(description="Filter by payment status")] = None,
    customer_id: Annotated[UUID | None, Query(description="Filter by customer")] = None,
    search: Annotated[str | None, Query(max_length=100, description="Match order number, notes, or customer email or name")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List all orders for the back-office."""
    result = await service.list_orders(
        status=order_status,
        payment_status=payment_status,
        customer_id=customer_id,
        search=search,
        limit=limit,
        offset=offset,
    )
    return OrderListResponse(
        items=[OrderResponse(**o) for o in result["items"]],
        meta=PaginatedMeta(total=result["total"], limit=limit, offset=offset),
    )


@router.post(
    "",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order (admin)",
    description="Manual order entry. Admins may override unit prices and record an order as already paid.",
)
async def create_order_admin(
    data: OrderCreateRequest,
    admin: AdminUser,
    service: OrderService = Depends(get_order_service),
) -> OrderCreatedResponse:
    """Create an order from the back-office."""
    order = await _create(
        data,
        service,
        payment_status=data.payment_status,
        allow_price_override=True,
        performed_by=str(admin.user_id),
    )
    return _created_response(order)


@router.post(
    "/create",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order (storefront)",
    description=(
        "Creates a pending order at catalogue prices, for flows that take payment separately "
        "via /payments/process or the PayPal endpoints."
    ),
)
async def create_order(
    data: OrderCreateRequest,
    user: OptionalUser,
    service: OrderService = Depends(get_order_service),
) -> OrderCreatedResponse:
    """Create a pending order for a guest or signed-in customer.

    Saved addresses can only be used by the signed-in customer who owns them.
    """
    customer_id = None
    if user and user.email:
        customer = await CustomerService().get_customer_by_email(user.email)
        customer_id = customer["id"] if customer else None

    if customer_id is None and (data.billing_address_id or data.shipping_address_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Saved addresses require a signed-in customer",
        )

    order = await _create(
        data,
        service,
        customer_id=customer_id,
        performed_by=str(user.user_id) if user else None,
    )
    return _created_response(order)


@router.get(
    "/me",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Orders of the signed-in customer, newest first.",
)
async def list_my_orders(
    customer: CurrentCustomer,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List the current customer's orders."""
    result = await service.list_orders(customer_id=customer["id"], limit=limit, offset=offset)
    return OrderListResponse(
        items=[OrderResponse(**o) for o in result["items"]],
        meta=PaginatedMeta(total=result["total"], limit=limit, offset=offset),
    )


@router.post(
    "/bulk",
    response_model=BulkActionResponse,
    summary="Bulk order action (admin)",
    description=(
        "Applies mark_paid, mark_shipped, start_production, cancel_orders or update_status to "
        "the selected orders. cancel_orders is rejected entirely if any order has shipped."
    ),
)
async def bulk_order_action(
    data: BulkActionRequest,
    admin: AdminUser,
    service: OrderService = Depends(get_order_service),
) -> BulkActionResponse:
    """Apply a bulk action to selected orders.

    Raises:
        HTTPException: 400 for an empty selection or unknown action.
        BusinessRuleError: If cancellation is blocked by shipped orders.
    """
    try:
        result = await service.bulk_action(
            action=data.action,
            order_ids=data.order_ids,
            status=data.status,
            reason=data.reason,
            performed_by=str(admin.user_id),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    return BulkActionResponse(**result)


@router.get(
    "/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics (admin)",
    description="Counts, revenue, best sellers and recent orders for today, the last week, month or year, or all time.",
)
async def order_stats(
    admin: AdminUser,
    period: Annotated[StatsPeriod, Query(description="Reporting period")] = "all",
    service: OrderService = Depends(get_order_service),
) -> OrderStatsResponse:
    """Get dashboard statistics."""
    return OrderStatsResponse(**await service.order_stats(period))


@router.get(
    "/confirmation/{order_number}",
    response_model=OrderResponse,
    summary="Order confirmation",
    description="Order details for the confirmation page, looked up by order number.",
)
async def get_order_confirmation(
    order_number: str,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get an order by its human-readable number."""
    order = await service.get_order_by_number(order_number)
    if not order:
        raise NotFoundError("Order not found")
    return OrderResponse(**order)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Order details. Customers can only see their own orders.",
)
async def get_order(
    order_id: UUID,
    user: CurrentUser,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get an order with items, customer summary and addresses."""
    if is_admin_user(user):
        order = await service.get_order(order_id)
    else:
        customer = await CustomerService().get_customer_by_email(user.email) if user.email else None
        order = await service.get_order(order_id, customer_id=customer["id"]) if customer else None

    if not order:
        raise NotFoundError("Order not found")
    return OrderResponse(**order)


@router.patch(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order (admin)",
    description="Update status, payment status, notes or tracking. Status changes follow the order lifecycle.",
)
async def update_order(
    order_id: UUID,
    data: OrderUpdateRequest,
    admin: AdminUser,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Update an order."""
    await service.update_order(order_id, data.model_dump(exclude_none=True), performed_by=str(admin.user_id))
    order = await service.get_order(order_id)
    return OrderResponse(**order)


@router.get(
    "/{order_id}/status",
    response_model=OrderStatusResponse,
    summary="Poll order status",
    description="Lightweight status view, polled after a PayPal popup closes.",
)
async def get_order_status(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderStatusResponse:
    """Get the order and payment status."""
    order = await service.get_order_status(order_id)
    if not order:
        raise NotFoundError("Order not found")
    return OrderStatusResponse(
        order_id=order["id"],
        order_number=order.get("order_number"),
        order_status=order["status"],
        payment_status=order["payment_status"],
    )


@router.post(
    "/{order_id}/cancel-paypal",
    response_model=OrderStatusResponse,
    summary="Cancel after PayPal cancellation",
    description="Cancels a pending order when the customer abandons PayPal approval. Stock is restored.",
)
async def cancel_paypal_order(
    order_id: UUID,
    data: CancelPayPalRequest | None = None,
    service: CheckoutService = Depends(get_checkout_service),
) -> OrderStatusResponse:
    """Cancel a pending PayPal order.

    Raises:
        BusinessRuleError: If the order is no longer pending.
    """
    order = await service.cancel_paypal(order_id, data.reason if data else None)
    return OrderStatusResponse(
        order_id=order["id"],
        order_number=order.get("order_number"),
        order_status=order["status"],
        payment_status=order["payment_status"],
    )
