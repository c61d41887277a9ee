"""Address book API routes for signed-in customers (and admins acting for them)."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from src.api.deps import CurrentCustomer, CurrentUser, is_admin_user
from src.api.middleware.error_handler import NotFoundError
from src.schemas.address import (
    AddressCreate,
    AddressListResponse,
    AddressResponse,
    AddressType,
    AddressUpdate,
)
from src.schemas.auth import UserContext
from src.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


async def _get_owned_address(
    service: AddressService,
    address_id: UUID,
    customer: dict[str, Any],
    user: UserContext,
) -> dict[str, Any]:
    """Load an address the caller may manage; others are reported as missing."""
    address = await service.get_address(address_id)
    if not address:
        raise NotFoundError("Address not found")
    if str(address["customer_id"]) != str(customer["id"]) and not is_admin_user(user):
        raise NotFoundError("Address not found")
    return address


@router.get(
    "",
    response_model=AddressListResponse,
    summary="List my addresses",
    description="The signed-in customer's addresses, default first then newest.",
)
async def list_addresses(
    customer: CurrentCustomer,
    address_type: Annotated[AddressType | None, Query(alias="type")] = None,
) -> AddressListResponse:
    """List the current customer's addresses."""
    addresses = await AddressService().list_addresses(customer["id"], address_type)
    return AddressListResponse(items=[AddressResponse(**a) for a in addresses])


@router.post(
    "",
    response_model=AddressResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create address",
    description="Adds an address. With is_default it becomes the only default of its type.",
)
async def create_address(
    data: AddressCreate,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> AddressResponse:
    """Create an address for the current customer.

    Admins may pass ``customer_id`` to add an address for another customer.
    """
    payload = data.model_dump()
    if data.customer_id and str(data.customer_id) != str(customer["id"]):
        if not is_admin_user(user):
            raise NotFoundError("Customer not found")
    else:
        payload["customer_id"] = customer["id"]

    try:
        address = await AddressService().create_address(payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    return AddressResponse(**address)


@router.post(
    "/reconcile",
    response_model=AddressResponse | None,
    summary="Repair default address",
    description="Ensures exactly one default address of the given type.",
)
async def reconcile_default_address(
    customer: CurrentCustomer,
    address_type: Annotated[AddressType, Query(alias="type")],
) -> AddressResponse | None:
    """Repair the default flag for the current customer's addresses of a type."""
    address = await AddressService().reconcile_defaults(customer["id"], address_type)
    return AddressResponse(**address) if address else None


@router.get(
    "/{address_id}",
    response_model=AddressResponse,
    summary="Get address",
)
async def get_address(
    address_id: UUID,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> AddressResponse:
    """Get one of the current customer's addresses."""
    address = await _get_owned_address(AddressService(), address_id, customer, user)
    return AddressResponse(**address)


@router.patch(
    "/{address_id}",
    response_model=AddressResponse,
    summary="Update address",
)
async def update_address(
    address_id: UUID,
    data: AddressUpdate,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> AddressResponse:
    """Update an address. ``is_default`` true promotes it, false clears it."""
    service = AddressService()
    await _get_owned_address(service, address_id, customer, user)
    address = await service.update_address(address_id, data.model_dump(exclude_unset=True))
    return AddressResponse(**address)


@router.post(
    "/{address_id}/default",
    response_model=AddressResponse,
    summary="Set default address",
    description="Makes this the only default address of its type.",
)
async def set_default_address(
    address_id: UUID,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> AddressResponse:
    """Promote an address to default."""
    service = AddressService()
    await _get_owned_address(service, address_id, customer, user)
    address = await service.set_default(address_id)
    return AddressResponse(**address)


@router.delete(
    "/{address_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete address",
    description="Deletes an address. If it was the default, the newest remaining address of its type takes over.",
)
async def delete_address(
    address_id: UUID,
    customer: CurrentCustomer,
    user: CurrentUser,
) -> None:
    """Delete an address."""
    service = AddressService()
    await _get_owned_address(service, address_id, customer, user)
    await service.delete_address(address_id)
