"""Saved payment method business logic service."""

import logging
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import ConflictError, NotFoundError, ValidationError
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

CARD_REQUIRED_FIELDS = ("brand", "last_four", "exp_month", "exp_year")


def validate_payment_method_fields(data: dict[str, Any]) -> None:
    """Check the display metadata each payment method type needs.

    Raises:
        ValidationError: With one detail per missing field.
    """
    method_type = data.get("type")
    if method_type == "card":
        missing = [f for f in CARD_REQUIRED_FIELDS if data.get(f) in (None, "")]
    elif method_type == "paypal":
        missing = [] if data.get("paypal_email") else ["paypal_email"]
    else:
        missing = []

    if missing:
        raise ValidationError(
            message=f"Missing required fields for {method_type} payment method",
            details=[
                {"loc": ["body", f], "msg": "Field required", "type": "missing"}
                for f in missing
            ],
        )


class PaymentMethodService:
    """Service for managing saved payment methods.

    Removal is a soft delete (``is_active = false``); order history keeps
    its references.
    """

    def __init__(self, client: Client | None = None) -> None:
        """Initialize payment method service with Supabase client."""
        self.client = client or get_supabase_client()

    async def list_payment_methods(self, customer_id: UUID | str) -> list[dict[str, Any]]:
        """List a customer's active payment methods, default first then newest."""
        response = (
            self.client.table("payment_methods")
            .select("*")
            .eq("customer_id", str(customer_id))
            .eq("is_active", True)
            .order("is_default", desc=True)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def get_payment_method(self, payment_method_id: UUID | str) -> dict[str, Any] | None:
        """Get an active payment method by ID.

        Args:
            payment_method_id: The payment method's UUID.

        Returns:
            dict | None: The payment method or None if not found or inactive.
        """
        response = (
            self.client.table("payment_methods")
            .select("*")
            .eq("id", str(payment_method_id))
            .eq("is_active", True)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_default_payment_method(self, customer_id: UUID | str) -> dict[str, Any] | None:
        """Get the customer's default active payment method, if any."""
        methods = await self.list_payment_methods(customer_id)
        if methods and methods[0].get("is_default"):
            return methods[0]
        return None

    async def create_payment_method(self, data: dict[str, Any]) -> dict[str, Any]:
        """Save a payment method.

        Args:
            data: Payment method fields including customer_id.

        Returns:
            dict: The saved payment method.

        Raises:
            ValidationError: If type-specific fields are missing.
            ConflictError: If the processor method is already saved.
            ValueError: If the customer or billing address does not exist.
        """
        validate_payment_method_fields(data)

        make_default = bool(data.get("is_default"))
        row = {k: (str(v) if isinstance(v, UUID) else v) for k, v in data.items() if v is not None}
        row["is_default"] = False
        row["is_active"] = True

        try:
            response = self.client.table("payment_methods").insert(row).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError("This payment method is already saved") from e
            if e.code == FOREIGN_KEY_VIOLATION:
                raise ValueError("Customer or billing address not found") from e
            raise

        method = response.data[0]

        existing = await self.list_payment_methods(method["customer_id"])
        if make_default or len(existing) == 1:
            method = await self.set_default(method["id"])

        logger.info("Saved %s payment method %s for customer %s", method["type"], method["id"], method["customer_id"])
        return method

    async def update_payment_method(self, payment_method_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        """Update display name or billing address, or make the method default.

        Raises:
            NotFoundError: If the payment method does not exist.
        """
        method = await self.get_payment_method(payment_method_id)
        if not method:
            raise NotFoundError("Payment method not found")

        set_as_default = data.pop("set_as_default", None)
        update_data = {
            k: (str(v) if isinstance(v, UUID) else v) for k, v in data.items() if v is not None
        }

        if update_data:
            try:
                response = (
                    self.client.table("payment_methods")
                    .update(update_data)
                    .eq("id", str(payment_method_id))
                    .execute()
                )
            except PostgrestAPIError as e:
                if e.code == FOREIGN_KEY_VIOLATION:
                    raise ValueError("Billing address not found") from e
                raise
            method = response.data[0]

        if set_as_default:
            method = await self.set_default(payment_method_id)

        return method

    async def deactivate_payment_method(self, payment_method_id: UUID | str) -> None:
        """Soft-delete a payment method.

        If it was the default, the most recent remaining active method
        becomes the default.

        Raises:
            NotFoundError: If the payment method does not exist.
        """
        method = await self.get_payment_method(payment_method_id)
        if not method:
            raise NotFoundError("Payment method not found")

        (
            self.client.table("payment_methods")
            .update({"is_active": False, "is_default": False})
            .eq("id", str(payment_method_id))
            .execute()
        )
        logger.info("Deactivated payment method %s", payment_method_id)

        if method.get("is_default"):
            remaining = await self.list_payment_methods(method["customer_id"])
            if remaining:
                newest = max(remaining, key=lambda m: m.get("created_at") or "")
                await self.set_default(newest["id"])

    async def deactivate_all(self, customer_id: UUID | str) -> int:
        """Soft-delete every active payment method of a customer.

        Returns:
            int: Number of methods deactivated.
        """
        response = (
            self.client.table("payment_methods")
            .update({"is_active": False, "is_default": False})
            .eq("customer_id", str(customer_id))
            .eq("is_active", True)
            .execute()
        )
        return len(response.data or [])

    async def set_default(self, payment_method_id: UUID | str) -> dict[str, Any]:
        """Make a payment method the customer's only default, atomically.

        Raises:
            NotFoundError: If the method does not exist or is inactive.
        """
        response = self.client.rpc(
            "set_default_payment_method",
            {"p_payment_method_id": str(payment_method_id)},
        ).execute()
        rows = response.data or []
        if isinstance(rows, dict):
            rows = [rows]
        target = next((row for row in rows if str(row.get("id")) == str(payment_method_id)), None)
        if target is None:
            raise NotFoundError("Payment method not found")
        return target
