"""Address business logic service."""

import logging
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import NotFoundError
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = (
    "customer_id",
    "type",
    "first_name",
    "last_name",
    "address_line_1",
    "city",
    "postcode",
    "country",
)


class AddressService:
    """Service for managing customer addresses.

    Default flags are changed only through the ``set_default_address``
    database function, which clears and sets the flag in one UPDATE.
    """

    def __init__(self, client: Client | None = None) -> None:
        """Initialize address service with Supabase client."""
        self.client = client or get_supabase_client()

    async def list_addresses(
        self,
        customer_id: UUID | str,
        address_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """List a customer's addresses, default first then newest.

        Args:
            customer_id: The customer's UUID.
            address_type: Optional filter ('billing' or 'shipping').

        Returns:
            list[dict]: Address rows.
        """
        query = (
            self.client.table("addresses")
            .select("*")
            .eq("customer_id", str(customer_id))
        )
        if address_type:
            query = query.eq("type", address_type)

        response = (
            query.order("is_default", desc=True)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def get_address(self, address_id: UUID | str) -> dict[str, Any] | None:
        """Get an address by ID.

        Args:
            address_id: The address's UUID.

        Returns:
            dict | None: The address or None if not found.
        """
        response = (
            self.client.table("addresses")
            .select("*")
            .eq("id", str(address_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_default_address(self, customer_id: UUID | str, address_type: str) -> dict[str, Any] | None:
        """Get the customer's default address of a type, if any."""
        response = (
            self.client.table("addresses")
            .select("*")
            .eq("customer_id", str(customer_id))
            .eq("type", address_type)
            .eq("is_default", True)
            .order("updated_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def create_address(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create an address.

        When ``is_default`` is requested the row is inserted without the
        flag and then promoted atomically.

        Args:
            data: Address fields including customer_id and type.

        Returns:
            dict: The created address.

        Raises:
            ValueError: If a required field is missing.
        """
        missing = [f for f in REQUIRED_ADDRESS_FIELDS if not data.get(f)]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        make_default = bool(data.get("is_default"))
        row = {k: (str(v) if isinstance(v, UUID) else v) for k, v in data.items()}
        row["is_default"] = False

        response = self.client.table("addresses").insert(row).execute()
        address = response.data[0]

        if make_default:
            address = await self.set_default(address["id"])

        logger.info("Created %s address %s for customer %s", address["type"], address["id"], address["customer_id"])
        return address

    async def update_address(self, address_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        """Update an address. ``is_default=True`` promotes it; False clears it.

        Raises:
            NotFoundError: If the address does not exist.
        """
        make_default = data.pop("is_default", None)
        update_data = {k: v for k, v in data.items() if v is not None}

        address = await self.get_address(address_id)
        if not address:
            raise NotFoundError("Address not found")

        if make_default is False:
            update_data["is_default"] = False

        if update_data:
            response = (
                self.client.table("addresses")
                .update(update_data)
                .eq("id", str(address_id))
                .execute()
            )
            address = response.data[0]

        if make_default:
            address = await self.set_default(address_id)

        return address

    async def delete_address(self, address_id: UUID | str) -> None:
        """Delete an address; if it was the default, promote the newest sibling.

        Raises:
            NotFoundError: If the address does not exist.
        """
        address = await self.get_address(address_id)
        if not address:
            raise NotFoundError("Address not found")

        self.client.table("addresses").delete().eq("id", str(address_id)).execute()

        if address.get("is_default"):
            remaining = await self.list_addresses(address["customer_id"], address["type"])
            if remaining:
                await self.set_default(remaining[0]["id"])

    async def set_default(self, address_id: UUID | str) -> dict[str, Any]:
        """Make an address the only default of its type for its customer.

        Args:
            address_id: The address to promote.

        Returns:
            dict: The updated address.

        Raises:
            NotFoundError: If the address does not exist.
        """
        response = self.client.rpc("set_default_address", {"p_address_id": str(address_id)}).execute()
        rows = response.data or []
        if isinstance(rows, dict):
            rows = [rows]
        target = next((row for row in rows if str(row.get("id")) == str(address_id)), None)
        if target is None:
            raise NotFoundError("Address not found")

        logger.info("Address %s is now the default %s address", address_id, target.get("type"))
        return target

    async def reconcile_defaults(self, customer_id: UUID | str, address_type: str) -> dict[str, Any] | None:
        """Repair the default flag so exactly one address of a type is default.

        Keeps the most recently updated default; with no default, the
        newest address becomes default. Does nothing when there are no
        addresses.

        Returns:
            dict | None: The default address after reconciliation.
        """
        addresses = await self.list_addresses(customer_id, address_type)
        if not addresses:
            return None

        defaults = [a for a in addresses if a.get("is_default")]
        if len(defaults) == 1:
            return defaults[0]

        if defaults:
            keeper = max(defaults, key=lambda a: a.get("updated_at") or a.get("created_at") or "")
        else:
            keeper = max(addresses, key=lambda a: a.get("created_at") or "")

        logger.warning(
            "Reconciling %d default %s addresses for customer %s",
            len(defaults),
            address_type,
            customer_id,
        )
        return await self.set_default(keeper["id"])
