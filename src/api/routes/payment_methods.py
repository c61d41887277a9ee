"""Saved payment method API routes."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.api.deps import CurrentCustomer, CurrentUser, is_admin_user
from src.api.middleware.error_handler import NotFoundError
from src.schemas.auth import UserContext
from src.schemas.payment_method import (
    PaymentMethodCreate,
    PaymentMethodListResponse,
    PaymentMethodResponse,
    PaymentMethodUpdate,
)
from src.services.payment_method_service import PaymentMethodService

router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])


async def _get_owned_method(
    service: PaymentMethodService,
    payment_method_id: UUID,
    customer: dict[str, Any],
    user: UserContext,
) -> dict[str, Any]:
    method = await service.get_payment_method(payment_method_id)
    if not method:
        raise NotFoundError("Payment method not found")
    if str(method["customer_id"]) != str(customer["id"]) and not is_admin_user(user):
        raise NotFoundError("Payment method not found")
    return method


@router.get(
    "",
    response_model=PaymentMethodListResponse,
    summary="List my payment methods",
    description="Active saved payment methods, default first.",
)
async def list_payment_methods(customer: CurrentCustomer) -> PaymentMethodListResponse:
    """List the current customer's saved payment methods."""
    methods = await PaymentMethodService().list_payment_methods(customer["id"])
    return PaymentMethodListResponse(items=[PaymentMethodResponse(**m) for m in methods])


@router.post(
    "",
    response_model=PaymentMethodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save payment method",
    description=(
        "Stores display metadata for a processor-side payment method after a successful "
        "setup intent. The first saved method becomes the default."
    ),
    responses={409: {"description": "Payment method already saved"}},
)
async def create_payment_method(
    data: PaymentMethodCreate,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> PaymentMethodResponse:
    """Save a payment method for the current customer.

    Admins may pass ``customer_id`` to save a method for another customer.
    """
    payload = data.model_dump()
    if data.customer_id and str(data.customer_id) != str(customer["id"]):
        if not is_admin_user(user):
            raise NotFoundError("Customer not found")
    else:
        payload["customer_id"] = customer["id"]
        payload["provider_customer_id"] = data.provider_customer_id or customer.get("stripe_customer_id")

    try:
        method = await PaymentMethodService().create_payment_method(payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    return PaymentMethodResponse(**method)


@router.get(
    "/{payment_method_id}",
    response_model=PaymentMethodResponse,
    summary="Get payment method",
)
async def get_payment_method(
    payment_method_id: UUID,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> PaymentMethodResponse:
    """Get one of the current customer's payment methods."""
    method = await _get_owned_method(PaymentMethodService(), payment_method_id, customer, user)
    return PaymentMethodResponse(**method)


@router.patch(
    "/{payment_method_id}",
    response_model=PaymentMethodResponse,
    summary="Update payment method",
    description="Change the display name or billing address, or make this the default.",
)
async def update_payment_method(
    payment_method_id: UUID,
    data: PaymentMethodUpdate,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> PaymentMethodResponse:
    """Update a saved payment method."""
    service = PaymentMethodService()
    await _get_owned_method(service, payment_method_id, customer, user)
    try:
        method = await service.update_payment_method(payment_method_id, data.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return PaymentMethodResponse(**method)


@router.delete(
    "/{payment_method_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove payment method",
    description="Deactivates the method. If it was the default, the most recent remaining method takes over.",
)
async def delete_payment_method(
    payment_method_id: UUID,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> None:
    """Remove (deactivate) a saved payment method."""
    service = PaymentMethodService()
    await _get_owned_method(service, payment_method_id, customer, user)
    await service.deactivate_payment_method(payment_method_id)
