"""Customer business logic service."""

import logging
from collections import Counter
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import BusinessRuleError, NotFoundError, ValidationError
from src.core.stripe import get_stripe
from src.core.supabase import get_supabase_client, ilike_pattern
from src.services.payment_method_service import PaymentMethodService

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "DELETE"


class CustomerService:
    """Service for customer records.

    Address, payment method and order counts are computed at query time
    and never stored on the customer row.
    """

    def __init__(self, client: Client | None = None) -> None:
        """Initialize customer service with Supabase client."""
        self.client = client or get_supabase_client()

    def _count(self, table: str, customer_id: str, active_only: bool = False) -> int:
        query = (
            self.client.table(table)
            .select("id", count="exact")
            .eq("customer_id", customer_id)
        )
        if active_only:
            query = query.eq("is_active", True)
        response = query.execute()
        return response.count or 0

    def _with_counts(self, customer: dict[str, Any]) -> dict[str, Any]:
        customer_id = str(customer["id"])
        return {
            **customer,
            "address_count": self._count("addresses", customer_id),
            "payment_method_count": self._count("payment_methods", customer_id, active_only=True),
            "order_count": self._count("orders", customer_id),
        }

    def _counts_for(self, table: str, customer_ids: list[str], active_only: bool = False) -> Counter[str]:
        query = self.client.table(table).select("customer_id").in_("customer_id", customer_ids)
        if active_only:
            query = query.eq("is_active", True)
        response = query.execute()
        return Counter(row["customer_id"] for row in response.data or [])

    def _with_page_counts(self, customers: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Attach counts to a page of customers with one query per table."""
        if not customers:
            return []
        ids = [str(c["id"]) for c in customers]
        addresses = self._counts_for("addresses", ids)
        payment_methods = self._counts_for("payment_methods", ids, active_only=True)
        orders = self._counts_for("orders", ids)
        return [
            {
                **c,
                "address_count": addresses[str(c["id"])],
                "payment_method_count": payment_methods[str(c["id"])],
                "order_count": orders[str(c["id"])],
            }
            for c in customers
        ]

    async def get_admin_emails(self) -> set[str]:
        """Emails belonging to admin profiles."""
        response = (
            self.client.table("profiles")
            .select("email")
            .eq("role", "admin")
            .execute()
        )
        return {row["email"].lower() for row in response.data or [] if row.get("email")}

    async def list_customers(
        self,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List customers for the admin back-office, newest first.

        Admin accounts are excluded. Search matches first name, last name
        or email, case-insensitively.

        Args:
            search: Optional search term.
            limit: Page size.
            offset: Number of customers to skip.

        Returns:
            dict: ``items`` (customers with counts) and ``total``.
        """
        admin_emails = await self.get_admin_emails()

        query = self.client.table("customers").select("*", count="exact")
        if admin_emails:
            query = query.not_.in_("email", sorted(admin_emails))
        if search and search.strip():
            pattern = ilike_pattern(search)
            query = query.or_(
                f"first_name.ilike.{pattern},last_name.ilike.{pattern},email.ilike.{pattern}"
            )

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        customers = response.data or []
        return {
            "items": self._with_page_counts(customers),
            "total": response.count if response.count is not None else len(customers),
        }

    async def get_customer(self, customer_id: UUID | str) -> dict[str, Any] | None:
        """Get a customer by ID, with derived counts.

        Args:
            customer_id: The customer's UUID.

        Returns:
            dict | None: The customer or None if not found.
        """
        response = (
            self.client.table("customers")
            .select("*")
            .eq("id", str(customer_id))
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            return None
        return self._with_counts(response.data)

    async def get_customer_by_email(self, email: str) -> dict[str, Any] | None:
        """Get a customer by email.

        Emails are stored lowercased, so this is an exact match on the
        normalized address.
        """
        response = (
            self.client.table("customers")
            .select("*")
            .eq("email", email.strip().lower())
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def create_customer(self, data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """Create a customer, or return the existing one with the same email.

        Args:
            data: Customer fields; ``email`` is required.

        Returns:
            tuple: (customer, existing) where ``existing`` is True when no
            new row was inserted.
        """
        email = (data.get("email") or "").strip().lower()
        if not email:
            raise ValueError("Email is required")

        existing = await self.get_customer_by_email(email)
        if existing:
            logger.info("Customer already exists for %s: %s", email, existing["id"])
            return self._with_counts(existing), True

        row = {k: v for k, v in data.items() if v is not None}
        row["email"] = email
        response = self.client.table("customers").insert(row).execute()
        customer = response.data[0]

        logger.info("Created customer %s", customer["id"])
        return self._with_counts(customer), False

    async def find_or_create_by_email(
        self,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        marketing_consent: bool = False,
    ) -> tuple[dict[str, Any], bool]:
        """Resolve the customer for an order, creating a record for new guests.

        Returns:
            tuple: (customer row, created).
        """
        existing = await self.get_customer_by_email(email)
        if existing:
            return existing, False

        response = (
            self.client.table("customers")
            .insert({
                "email": email.strip().lower(),
                "first_name": first_name,
                "last_name": last_name,
                "phone": phone,
                "marketing_consent": marketing_consent,
            })
            .execute()
        )
        customer = response.data[0]
        logger.info("Created customer %s for new checkout email", customer["id"])
        return customer, True

    async def update_customer(self, customer_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a customer's contact fields.

        Raises:
            NotFoundError: If the customer does not exist.
        """
        update_data = {k: v for k, v in data.items() if v is not None}
        if "email" in update_data:
            update_data["email"] = update_data["email"].strip().lower()
        if not update_data:
            customer = await self.get_customer(customer_id)
            if not customer:
                raise NotFoundError("Customer not found")
            return customer

        response = (
            self.client.table("customers")
            .update(update_data)
            .eq("id", str(customer_id))
            .execute()
        )
        if not response.data:
            raise NotFoundError("Customer not found")

        return self._with_counts(response.data[0])

    async def delete_customer(self, customer_id: UUID | str, confirmation: str) -> dict[str, Any]:
        """Delete a customer who has no orders.

        Payment methods are deactivated and addresses deleted before the
        customer row is removed.

        Args:
            customer_id: The customer's UUID.
            confirmation: Must be exactly ``DELETE``.

        Returns:
            dict: Counts of what was removed.

        Raises:
            ValidationError: If the confirmation text is wrong.
            NotFoundError: If the customer does not exist.
            BusinessRuleError: If the customer has orders on file.
        """
        if confirmation != DELETE_CONFIRMATION:
            raise ValidationError(
                message=f"Type {DELETE_CONFIRMATION} to confirm deletion",
                details=[{"loc": ["body", "confirmation"], "msg": "Confirmation text does not match", "type": "value_error"}],
            )

        customer = await self.get_customer(customer_id)
        if not customer:
            raise NotFoundError("Customer not found")

        order_count = customer["order_count"]
        if order_count > 0:
            name = " ".join(p for p in (customer.get("first_name"), customer.get("last_name")) if p) or customer["email"]
            raise BusinessRuleError(
                f"Cannot delete customer: {name} has {order_count} order(s) on file",
                details=[{"loc": ["customer_id"], "msg": str(customer_id), "type": "has_orders"}],
            )

        cid = str(customer_id)
        deactivated = await PaymentMethodService(self.client).deactivate_all(cid)
        deleted_addresses = self.client.table("addresses").delete().eq("customer_id", cid).execute()
        self.client.table("customers").delete().eq("id", cid).execute()

        logger.info("Deleted customer %s", customer_id)
        return {
            "deleted": True,
            "addresses_deleted": len(deleted_addresses.data or []),
            "payment_methods_deactivated": deactivated,
        }

    async def ensure_stripe_customer(self, customer_id: UUID | str) -> tuple[str, bool]:
        """Return the customer's Stripe customer ID, creating one if needed.

        Returns:
            tuple: (stripe_customer_id, created).

        Raises:
            NotFoundError: If the customer does not exist.
        """
        response = (
            self.client.table("customers")
            .select("id, email, first_name, last_name, phone, stripe_customer_id")
            .eq("id", str(customer_id))
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Customer not found")

        customer = response.data
        if customer.get("stripe_customer_id"):
            return customer["stripe_customer_id"], False

        stripe = get_stripe()
        name = " ".join(p for p in (customer.get("first_name"), customer.get("last_name")) if p) or None
        stripe_customer = stripe.Customer.create(
            email=customer["email"],
            name=name,
            phone=customer.get("phone"),
            metadata={"supabase_customer_id": str(customer["id"])},
        )

        (
            self.client.table("customers")
            .update({"stripe_customer_id": stripe_customer.id})
            .eq("id", str(customer_id))
            .execute()
        )
        logger.info("Created Stripe customer %s for customer %s", stripe_customer.id, customer_id)
        return stripe_customer.id, True
