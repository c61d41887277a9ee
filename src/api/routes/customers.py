"""Customer API routes for the admin back-office."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from src.api.deps import AdminUser
from src.api.middleware.error_handler import NotFoundError
from src.schemas.address import AddressListResponse, AddressResponse
from src.schemas.common import PaginatedMeta
from src.schemas.customer import (
    CustomerCreate,
    CustomerCreateResponse,
    CustomerDeleteRequest,
    CustomerDeleteResponse,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
)
from src.services.address_service import AddressService
from src.services.customer_service import CustomerService
from src.services.email_service import EmailService, get_email_service

router = APIRouter(prefix="/customers", tags=["customers"])


def get_customer_service() -> CustomerService:
    """Get customer service instance."""
    return CustomerService()


@router.get(
    "",
    response_model=CustomerListResponse,
    summary="List customers",
    description="Customers with address, payment method and order counts. Admin accounts are excluded.",
)
async def list_customers(
    admin: AdminUser,
    search: Annotated[str | None, Query(max_length=100, description="Match name or email")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerListResponse:
    """List customers, newest first."""
    result = await service.list_customers(search=search, limit=limit, offset=offset)
    return CustomerListResponse(
        items=[CustomerResponse(**c) for c in result["items"]],
        meta=PaginatedMeta(total=result["total"], limit=limit, offset=offset),
    )


@router.post(
    "",
    response_model=CustomerCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
    description="Creates a customer. If the email is already registered the existing customer is returned.",
)
async def create_customer(
    data: CustomerCreate,
    admin: AdminUser,
    background_tasks: BackgroundTasks,
    service: CustomerService = Depends(get_customer_service),
    email_service: EmailService = Depends(get_email_service),
) -> CustomerCreateResponse:
    """Create a customer and send the welcome email to new ones."""
    customer, existing = await service.create_customer(data.model_dump())
    if not existing:
        background_tasks.add_task(email_service.send_welcome_email, customer["email"], customer.get("first_name"))
    return CustomerCreateResponse(**customer, existing=existing)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Get customer",
)
async def get_customer(
    customer_id: UUID,
    admin: AdminUser,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerResponse:
    """Get a customer with derived counts."""
    customer = await service.get_customer(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return CustomerResponse(**customer)


@router.patch(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Update customer",
)
async def update_customer(
    customer_id: UUID,
    data: CustomerUpdate,
    admin: AdminUser,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerResponse:
    """Update a customer's contact details."""
    await service.update_customer(customer_id, data.model_dump(exclude_none=True))
    customer = await service.get_customer(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return CustomerResponse(**customer)


@router.delete(
    "/{customer_id}",
    response_model=CustomerDeleteResponse,
    summary="Delete customer",
    description=(
        "Deletes a customer with no orders, together with their addresses; payment methods are "
        "deactivated. Requires the typed confirmation 'DELETE'."
    ),
)
async def delete_customer(
    customer_id: UUID,
    data: CustomerDeleteRequest,
    admin: AdminUser,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerDeleteResponse:
    """Delete a customer.

    Raises:
        ValidationError: If the confirmation text is wrong.
        NotFoundError: If the customer does not exist.
        BusinessRuleError: If the customer has orders on file.
    """
    result = await service.delete_customer(customer_id, data.confirmation)
    return CustomerDeleteResponse(**result)


@router.get(
    "/{customer_id}/addresses",
    response_model=AddressListResponse,
    summary="List customer addresses",
)
async def list_customer_addresses(
    customer_id: UUID,
    admin: AdminUser,
    address_type: Annotated[str | None, Query(alias="type", pattern="^(billing|shipping)$")] = None,
) -> AddressListResponse:
    """List a customer's addresses, default first."""
    addresses = await AddressService().list_addresses(customer_id, address_type)
    return AddressListResponse(items=[AddressResponse(**a) for a in addresses])
