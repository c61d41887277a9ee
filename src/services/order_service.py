"""Order repository and admin order operations."""

import calendar
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import BusinessRuleError, NotFoundError, ValidationError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client, ilike_pattern
from src.models.order import SHIPPED_STATUSES, TERMINAL_STATUSES, can_transition
from src.models.product import ProductStatus, effective_price
from src.services.customer_service import CustomerService
from src.services.inventory_service import InsufficientStockError, InventoryService
from src.services.pricing import PricingRules, calculate_totals, to_money

logger = logging.getLogger(__name__)

ORDER_DETAIL_SELECT = (
    "*, "
    "customer:customers(id, first_name, last_name, email, phone), "
    "billing_address:addresses!billing_address_id(*), "
    "shipping_address:addresses!shipping_address_id(*), "
    "items:order_items(*)"
)

ORDER_LIST_SELECT = (
    "*, "
    "customer:customers(id, first_name, last_name, email), "
    "items:order_items(*)"
)

ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "address_line_1",
    "address_line_2",
    "city",
    "county",
    "postcode",
    "country",
    "phone",
)

BULK_UPDATES: dict[str, dict[str, str]] = {
    "mark_paid": {"payment_status": "paid"},
    "mark_shipped": {"status": "shipped"},
    "start_production": {"status": "processing"},
}

PAYPAL_CANCEL_NOTE = "Order cancelled due to PayPal payment cancellation"

# Customers matched by an order search before it is narrowed further
CUSTOMER_SEARCH_LIMIT = 200

# Orders that can no longer be marked paid
UNPAYABLE_STATUSES: frozenset[str] = frozenset({"cancelled", "refunded"})

StatsPeriod = Literal["today", "week", "month", "year", "all"]

ORDER_STATS_SELECT = (
    "id, order_number, status, payment_status, total, created_at, "
    "items:order_items(product_name, quantity, total)"
)
TOP_PRODUCTS_LIMIT = 10
RECENT_ORDERS_LIMIT = 5


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _amount(value: Decimal) -> float:
    return float(to_money(value))


def _payable(order: dict[str, Any]) -> bool:
    return order["status"] not in UNPAYABLE_STATUSES and order.get("payment_status") != "refunded"


def period_start(period: StatsPeriod, now: datetime) -> datetime | None:
    """Start of a reporting period ending at ``now``; None for ``all``."""
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        year, month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
        return now.replace(year=year, month=month, day=min(now.day, calendar.monthrange(year, month)[1]))
    if period == "year":
        year = now.year - 1
        return now.replace(year=year, day=min(now.day, calendar.monthrange(year, now.month)[1]))
    return None


def format_order_number(order_id: str, prefix: str = "ASH") -> str:
    """Human-readable order number: prefix plus the last six characters of the ID."""
    return f"{prefix}-{str(order_id).replace('-', '')[-6:].upper()}"


def append_note(existing: str | None, note: str) -> str:
    """Append a line to an order's notes."""
    return f"{existing}\n{note}" if existing else note


class OrderService:
    """Service for creating, reading and transitioning orders."""

    def __init__(
        self,
        client: Client | None = None,
        inventory: InventoryService | None = None,
        customers: CustomerService | None = None,
    ) -> None:
        """Initialize order service with Supabase client and collaborators."""
        self.client = client or get_supabase_client()
        self.inventory = inventory or InventoryService(self.client)
        self.customers = customers or CustomerService(self.client)
        self.settings = get_settings()

    # === Creation ===

    async def price_items(
        self,
        items: list[dict[str, Any]],
        allow_price_override: bool = False,
    ) -> list[dict[str, Any]]:
        """Attach catalogue data and the server-side unit price to each line.

        Args:
            items: Dicts with ``product_id``, ``quantity`` and optionally ``price``.
            allow_price_override: Honour a supplied ``price`` (admin orders).

        Returns:
            list[dict]: Lines with ``price``, ``total``, ``product_name`` and ``product_sku``.

        Raises:
            ValidationError: If a product is unknown or not for sale.
        """
        if not items:
            raise ValidationError(
                message="Order must contain at least one item",
                details=[{"loc": ["body", "items"], "msg": "At least one item is required", "type": "missing"}],
            )

        product_ids = list({str(item["product_id"]) for item in items})
        response = (
            self.client.table("products")
            .select("id, name, sku, regular_price, sale_price, status")
            .in_("id", product_ids)
            .execute()
        )
        products = {p["id"]: p for p in response.data or []}

        priced = []
        errors = []
        for index, item in enumerate(items):
            product_id = str(item["product_id"])
            product = products.get(product_id)
            if product is None:
                errors.append({"loc": ["body", "items", index], "msg": "Product not found", "type": "not_found"})
                continue
            if product.get("status") != ProductStatus.ACTIVE.value and not allow_price_override:
                errors.append({
                    "loc": ["body", "items", index],
                    "msg": f"{product['name']} is not available",
                    "type": "unavailable",
                })
                continue

            quantity = int(item["quantity"])
            if quantity <= 0:
                errors.append({"loc": ["body", "items", index], "msg": "Quantity must be positive", "type": "value_error"})
                continue

            if allow_price_override and item.get("price") is not None:
                price = to_money(item["price"])
            else:
                price = to_money(effective_price(product))

            priced.append({
                "product_id": product_id,
                "quantity": quantity,
                "price": price,
                "total": to_money(price * quantity),
                "product_name": product["name"],
                "product_sku": product.get("sku"),
            })

        if errors:
            raise ValidationError(message="Some items cannot be ordered", details=errors)

        return priced

    def _insert_address(self, customer_id: str, address_type: str, address: dict[str, Any]) -> str:
        row = {f: address.get(f) for f in ADDRESS_FIELDS if address.get(f) is not None}
        row.setdefault("country", "GB")
        row.update({"customer_id": customer_id, "type": address_type, "is_default": False})
        response = self.client.table("addresses").insert(row).execute()
        return response.data[0]["id"]

    def _owned_address_id(self, address_id: UUID | str, customer_id: str, field: str) -> str:
        response = (
            self.client.table("addresses")
            .select("id, customer_id")
            .eq("id", str(address_id))
            .maybe_single()
            .execute()
        )
        if not response or not response.data or str(response.data["customer_id"]) != customer_id:
            raise ValidationError(
                message="Saved address not found",
                details=[{"loc": ["body", field], "msg": "Address does not belong to this customer", "type": "not_found"}],
            )
        return response.data["id"]

    async def create_order(
        self,
        customer: dict[str, Any],
        items: list[dict[str, Any]],
        billing_address: dict[str, Any] | None = None,
        shipping_address: dict[str, Any] | None = None,
        same_as_billing: bool = True,
        billing_address_id: UUID | str | None = None,
        shipping_address_id: UUID | str | None = None,
        payment_method: str = "card",
        payment_status: str = "pending",
        discount: Any = 0,
        notes: str | None = None,
        customer_id: UUID | str | None = None,
        allow_price_override: bool = False,
        performed_by: str | None = None,
    ) -> dict[str, Any]:
        """Create an order with snapshotted line items and computed totals.

        Steps run in order; a failure after the order row exists removes
        what was written so far.

        1. Resolve the customer (given ID, or find-or-create by email).
        2. Price the lines from the catalogue.
        3. Check stock.
        4. Write entered addresses (shipping copies billing when the same).
        5. Insert the order: ``processing`` if already paid, else ``pending``.
        6. Insert order items; on failure delete the order.
        7. Deduct stock; on failure delete the items and the order.
        8. Write the order number.

        Args:
            customer: Contact fields (email, first_name, last_name, phone).
            items: Lines with product_id and quantity.
            billing_address: Entered billing address.
            shipping_address: Entered shipping address.
            same_as_billing: Ship to the billing address.
            billing_address_id: Saved billing address.
            shipping_address_id: Saved shipping address.
            payment_method: card, paypal, apple_pay or google_pay.
            payment_status: Initial payment status.
            discount: Manual discount in pounds.
            notes: Order notes.
            customer_id: Known customer (signed-in checkout).
            allow_price_override: Honour supplied unit prices (admin orders).
            performed_by: User recorded on stock movements.

        Returns:
            dict: The created order, plus ``is_guest_order``.

        Raises:
            ValidationError: For unknown products or foreign saved addresses.
            InsufficientStockError: If stock cannot cover the order.
        """
        is_guest_order = customer_id is None
        if customer_id is None:
            email = (customer.get("email") or "").strip()
            if not email:
                raise ValidationError(
                    message="Customer email is required",
                    details=[{"loc": ["body", "customer", "email"], "msg": "Field required", "type": "missing"}],
                )
            record, _ = await self.customers.find_or_create_by_email(
                email,
                first_name=customer.get("first_name"),
                last_name=customer.get("last_name"),
                phone=customer.get("phone"),
                marketing_consent=bool(customer.get("marketing_consent")),
            )
            customer_id = record["id"]
        customer_id = str(customer_id)

        lines = await self.price_items(items, allow_price_override=allow_price_override)

        stock = await self.inventory.check_stock_availability(lines)
        if not stock.valid:
            raise InsufficientStockError(stock)

        totals = calculate_totals(
            ((line["price"], line["quantity"]) for line in lines),
            discount=discount,
            rules=PricingRules.from_settings(),
        )

        if billing_address_id:
            billing_id = self._owned_address_id(billing_address_id, customer_id, "billing_address_id")
        elif billing_address:
            billing_id = self._insert_address(customer_id, "billing", billing_address)
        else:
            raise ValidationError(
                message="Billing address is required",
                details=[{"loc": ["body", "billing_address"], "msg": "Field required", "type": "missing"}],
            )

        if shipping_address_id:
            shipping_id = self._owned_address_id(shipping_address_id, customer_id, "shipping_address_id")
        elif shipping_address and not same_as_billing:
            shipping_id = self._insert_address(customer_id, "shipping", shipping_address)
        elif billing_address:
            shipping_id = self._insert_address(customer_id, "shipping", billing_address)
        else:
            shipping_id = billing_id

        order_row = {
            "customer_id": customer_id,
            "status": "processing" if payment_status == "paid" else "pending",
            "payment_status": payment_status,
            "payment_method": payment_method,
            "subtotal": _amount(totals.subtotal),
            "tax_amount": _amount(totals.vat),
            "shipping_amount": _amount(totals.shipping),
            "discount_amount": _amount(totals.discount),
            "total": _amount(totals.total),
            "currency": self.settings.currency,
            "notes": notes,
            "billing_address_id": billing_id,
            "shipping_address_id": shipping_id,
        }
        order = self.client.table("orders").insert(order_row).execute().data[0]
        order_id = order["id"]

        item_rows = [
            {
                "order_id": order_id,
                "product_id": line["product_id"],
                "quantity": line["quantity"],
                "price": _amount(line["price"]),
                "total": _amount(line["total"]),
                "product_name": line["product_name"],
                "product_sku": line["product_sku"],
            }
            for line in lines
        ]
        try:
            inserted_items = self.client.table("order_items").insert(item_rows).execute().data
        except PostgrestAPIError as e:
            logger.error("Failed to insert items for order %s, removing order: %s", order_id, e.message)
            self.client.table("orders").delete().eq("id", order_id).execute()
            raise

        try:
            await self.inventory.deduct_stock(lines, reference=order_id, performed_by=performed_by)
        except (InsufficientStockError, PostgrestAPIError):
            logger.error("Stock deduction failed for order %s, removing order", order_id)
            self.client.table("order_items").delete().eq("order_id", order_id).execute()
            self.client.table("orders").delete().eq("id", order_id).execute()
            raise

        order_number = format_order_number(order_id, self.settings.order_number_prefix)
        updated = (
            self.client.table("orders")
            .update({"order_number": order_number})
            .eq("id", order_id)
            .execute()
        )
        order = updated.data[0] if updated.data else {**order, "order_number": order_number}

        logger.info(
            "Created order %s (%s) for customer %s, total %s",
            order_id,
            order_number,
            customer_id,
            totals.total,
        )
        return {**order, "items": inserted_items or item_rows, "is_guest_order": is_guest_order}

    # === Reads ===

    async def get_order(self, order_id: UUID | str, customer_id: UUID | str | None = None) -> dict[str, Any] | None:
        """Get an order with items, customer summary and addresses.

        Args:
            order_id: The order's UUID.
            customer_id: Restrict to this customer's orders.

        Returns:
            dict | None: The order or None if not found.
        """
        query = (
            self.client.table("orders")
            .select(ORDER_DETAIL_SELECT)
            .eq("id", str(order_id))
        )
        if customer_id is not None:
            query = query.eq("customer_id", str(customer_id))

        response = query.maybe_single().execute()
        return response.data if response and response.data else None

    async def get_order_by_number(self, order_number: str) -> dict[str, Any] | None:
        """Get an order for the confirmation page by its order number."""
        response = (
            self.client.table("orders")
            .select(ORDER_DETAIL_SELECT)
            .eq("order_number", order_number.upper())
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_order_status(self, order_id: UUID | str) -> dict[str, Any] | None:
        """Lightweight status view for polling."""
        response = (
            self.client.table("orders")
            .select("id, order_number, status, payment_status")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def _get_order_row(self, order_id: UUID | str) -> dict[str, Any]:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data

    async def get_order_items(self, order_id: UUID | str) -> list[dict[str, Any]]:
        """Line items of an order."""
        response = (
            self.client.table("order_items")
            .select("*")
            .eq("order_id", str(order_id))
            .execute()
        )
        return response.data or []

    async def list_orders(
        self,
        status: str | None = None,
        payment_status: str | None = None,
        customer_id: UUID | str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List orders, newest first, with customer summary and items.

        Args:
            status: Filter by order status.
            payment_status: Filter by payment status.
            customer_id: Only this customer's orders.
            search: Match order number, notes, or the customer's email or name.
            limit: Page size.
            offset: Number of orders to skip.

        Returns:
            dict: ``items`` and ``total``.
        """
        query = self.client.table("orders").select(ORDER_LIST_SELECT, count="exact")

        if status:
            query = query.eq("status", status)
        if payment_status:
            query = query.eq("payment_status", payment_status)
        if customer_id:
            query = query.eq("customer_id", str(customer_id))
        if search and search.strip():
            pattern = ilike_pattern(search)
            filters = [f"order_number.ilike.{pattern}", f"notes.ilike.{pattern}"]
            customer_ids = self._customer_ids_matching(pattern)
            if customer_ids:
                filters.append(f"customer_id.in.({','.join(customer_ids)})")
            query = query.or_(",".join(filters))

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        orders = response.data or []
        missing_customer = sum(1 for o in orders if not o.get("customer"))
        if missing_customer:
            logger.warning("Found %d orders without customer data", missing_customer)

        return {"items": orders, "total": response.count if response.count is not None else len(orders)}

    def _customer_ids_matching(self, pattern: str) -> list[str]:
        response = (
            self.client.table("customers")
            .select("id")
            .or_(f"email.ilike.{pattern},first_name.ilike.{pattern},last_name.ilike.{pattern}")
            .limit(CUSTOMER_SEARCH_LIMIT)
            .execute()
        )
        return [str(row["id"]) for row in response.data or []]

    # === Transitions ===

    async def update_order(
        self,
        order_id: UUID | str,
        data: dict[str, Any],
        performed_by: str | None = None,
    ) -> dict[str, Any]:
        """Update status, payment status, notes or tracking.

        Status changes must follow the order lifecycle; terminal orders
        cannot change status. Cancelling restores stock.

        Raises:
            NotFoundError: If the order does not exist.
            BusinessRuleError: If the status transition is not allowed.
        """
        current = await self._get_order_row(order_id)
        update_data = {k: v for k, v in data.items() if v is not None}
        if not update_data:
            return current

        target = update_data.get("status")
        if target and not can_transition(current["status"], target):
            if target == "cancelled" and current["status"] in SHIPPED_STATUSES:
                message = "Cannot cancel orders that have been shipped or delivered"
            else:
                message = f"Cannot change order status from {current['status']} to {target}"
            raise BusinessRuleError(
                message,
                details=[{"loc": ["body", "status"], "msg": message, "type": "invalid_transition"}],
            )

        if target == "shipped" and current["status"] != "shipped":
            update_data["shipped_at"] = _now()
        update_data["updated_at"] = _now()

        response = (
            self.client.table("orders")
            .update(update_data)
            .eq("id", str(order_id))
            .execute()
        )
        updated = response.data[0]

        if target == "cancelled" and current["status"] != "cancelled":
            items = await self.get_order_items(order_id)
            await self.inventory.restore_stock(items, reference=str(order_id), performed_by=performed_by)

        logger.info("Updated order %s: %s", order_id, ", ".join(sorted(update_data)))
        return updated

    async def mark_paid(
        self,
        order_id: UUID | str,
        payment_id: str | None = None,
        stripe_payment_intent_id: str | None = None,
        paypal_order_id: str | None = None,
    ) -> dict[str, Any]:
        """Record a successful payment: paid, processing, payment ID noted.

        Raises:
            NotFoundError: If the order does not exist.
            BusinessRuleError: If the order is already paid or was cancelled.
        """
        order = await self._get_order_row(order_id)
        if order["payment_status"] == "paid":
            raise BusinessRuleError("Order has already been paid")
        if order["status"] in TERMINAL_STATUSES:
            raise BusinessRuleError(f"Cannot take payment for a {order['status']} order")

        update_data: dict[str, Any] = {
            "payment_status": "paid",
            "status": "processing",
            "updated_at": _now(),
        }
        if payment_id:
            update_data["notes"] = append_note(order.get("notes"), f"Payment ID: {payment_id}")
        if stripe_payment_intent_id:
            update_data["stripe_payment_intent_id"] = stripe_payment_intent_id
        if paypal_order_id:
            update_data["paypal_order_id"] = paypal_order_id

        response = (
            self.client.table("orders")
            .update(update_data)
            .eq("id", str(order_id))
            .execute()
        )
        logger.info("Order %s marked paid (%s)", order_id, payment_id)
        return response.data[0]

    async def mark_payment_failed(self, order_id: UUID | str, reason: str) -> dict[str, Any]:
        """Compensate for a failed payment: cancel, mark failed, note reason, restore stock.

        Orders that are already paid are left untouched and returned as-is.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self._get_order_row(order_id)
        if order["payment_status"] == "paid":
            logger.warning("Not compensating order %s: already paid", order_id)
            return order
        if order["status"] == "cancelled" and order["payment_status"] == "failed":
            return order

        response = (
            self.client.table("orders")
            .update({
                "status": "cancelled",
                "payment_status": "failed",
                "notes": append_note(order.get("notes"), f"Payment failed: {reason}"),
                "updated_at": _now(),
            })
            .eq("id", str(order_id))
            .execute()
        )

        if order["status"] != "cancelled":
            items = await self.get_order_items(order_id)
            await self.inventory.restore_stock(items, reference=str(order_id), reason="payment_failed")

        logger.info("Order %s cancelled after failed payment: %s", order_id, reason)
        return response.data[0]

    async def cancel_pending(self, order_id: UUID | str, reason: str | None = None) -> dict[str, Any]:
        """Cancel a pending order after the customer abandoned PayPal approval.

        Raises:
            NotFoundError: If the order does not exist.
            BusinessRuleError: If the order is not pending.
        """
        order = await self._get_order_row(order_id)
        if order["status"] != "pending":
            raise BusinessRuleError(
                f"Only pending orders can be cancelled this way (order is {order['status']})"
            )

        note = PAYPAL_CANCEL_NOTE if not reason else f"{PAYPAL_CANCEL_NOTE}: {reason}"
        response = (
            self.client.table("orders")
            .update({
                "status": "cancelled",
                "payment_status": "failed",
                "notes": append_note(order.get("notes"), note),
                "updated_at": _now(),
            })
            .eq("id", str(order_id))
            .eq("status", "pending")
            .execute()
        )
        if not response.data:
            raise BusinessRuleError("Order is no longer pending")

        items = await self.get_order_items(order_id)
        await self.inventory.restore_stock(items, reference=str(order_id), reason="paypal_cancelled")

        logger.info("Order %s cancelled after PayPal cancellation", order_id)
        return response.data[0]

    # === Admin bulk actions ===

    async def bulk_action(
        self,
        action: str,
        order_ids: list[UUID | str],
        status: str | None = None,
        reason: str | None = None,
        performed_by: str | None = None,
    ) -> dict[str, Any]:
        """Apply an admin action to many orders.

        ``cancel_orders`` is all-or-nothing: if any selected order is
        shipped or delivered nothing is changed, and cancelled or refunded
        orders are skipped. Other actions skip orders whose status cannot
        make the transition; mark_paid skips cancelled and refunded orders.

        Args:
            action: mark_paid, mark_shipped, start_production, cancel_orders or update_status.
            order_ids: Selected orders.
            status: Target status for update_status.
            reason: Cancellation reason, stored as the order notes.
            performed_by: Admin user recorded on stock movements.

        Returns:
            dict: ``updated_count``, ``skipped_order_ids`` and ``message``.

        Raises:
            ValueError: For an empty selection, unknown action or missing status.
            BusinessRuleError: If cancellation is blocked by shipped orders.
        """
        ids = [str(i) for i in order_ids]
        if not ids:
            raise ValueError("No orders selected")

        response = (
            self.client.table("orders")
            .select("id, status, payment_status")
            .in_("id", ids)
            .execute()
        )
        orders = response.data or []
        found = {o["id"] for o in orders}
        missing = [i for i in ids if i not in found]

        if action == "cancel_orders":
            return await self._bulk_cancel(orders, missing, reason, performed_by)

        if action == "update_status":
            if not status:
                raise ValueError("Status is required for update_status")
            update_data = {"status": status}
        elif action in BULK_UPDATES:
            update_data = dict(BULK_UPDATES[action])
        else:
            raise ValueError(f"Unknown bulk action: {action}")

        target = update_data.get("status")
        if target:
            eligible = [o["id"] for o in orders if can_transition(o["status"], target)]
        else:
            eligible = [o["id"] for o in orders if _payable(o)]
        skipped = missing + [o["id"] for o in orders if o["id"] not in eligible]

        if target == "shipped":
            update_data["shipped_at"] = _now()
        update_data["updated_at"] = _now()

        updated_count = 0
        if eligible:
            result = (
                self.client.table("orders")
                .update(update_data)
                .in_("id", eligible)
                .execute()
            )
            updated_count = len(result.data or [])

        logger.info("Bulk %s: %d updated, %d skipped", action, updated_count, len(skipped))
        return {
            "action": action,
            "updated_count": updated_count,
            "skipped_order_ids": skipped,
            "message": f"Updated {updated_count} order(s)"
            + (f", skipped {len(skipped)}" if skipped else ""),
        }

    async def _bulk_cancel(
        self,
        orders: list[dict[str, Any]],
        missing: list[str],
        reason: str | None,
        performed_by: str | None,
    ) -> dict[str, Any]:
        blocked = [o["id"] for o in orders if o["status"] in SHIPPED_STATUSES]
        if blocked:
            raise BusinessRuleError(
                f"Cannot cancel {len(blocked)} order(s) that have already been shipped or delivered.",
                details=[
                    {"loc": ["body", "order_ids"], "msg": order_id, "type": "blocked_shipped"}
                    for order_id in blocked
                ],
            )

        to_cancel = [o["id"] for o in orders if o["status"] not in TERMINAL_STATUSES]
        skipped = missing + [o["id"] for o in orders if o["status"] in TERMINAL_STATUSES]

        updated_count = 0
        if to_cancel:
            update_data: dict[str, Any] = {"status": "cancelled", "updated_at": _now()}
            if reason:
                update_data["notes"] = reason
            result = (
                self.client.table("orders")
                .update(update_data)
                .in_("id", to_cancel)
                .execute()
            )
            updated_count = len(result.data or [])

            items = (
                self.client.table("order_items")
                .select("order_id, product_id, quantity")
                .in_("order_id", to_cancel)
                .execute()
            ).data or []
            await self.inventory.restore_stock(
                items,
                reference=f"bulk-cancel:{len(to_cancel)}",
                performed_by=performed_by,
            )

        logger.info("Bulk cancel: %d cancelled, %d skipped", updated_count, len(skipped))
        return {
            "action": "cancel_orders",
            "updated_count": updated_count,
            "skipped_order_ids": skipped,
            "message": f"Cancelled {updated_count} order(s)",
        }

    # === Reporting ===

    async def order_stats(self, period: StatsPeriod = "all", now: datetime | None = None) -> dict[str, Any]:
        """Dashboard statistics for orders placed in a period.

        Revenue counts paid orders that were not cancelled; the average order
        value is taken over all orders that were not cancelled. Top products
        are ranked by units sold.

        Args:
            period: ``today``, ``week``, ``month``, ``year`` or ``all``.
            now: End of the period, for reproducible reports.

        Returns:
            dict: Counts per status and payment status, revenue, top products
            and the most recent orders.
        """
        now = now or datetime.now(timezone.utc)
        query = self.client.table("orders").select(ORDER_STATS_SELECT)
        start = period_start(period, now)
        if start is not None:
            query = query.gte("created_at", start.isoformat())
        orders = query.order("created_at", desc=True).execute().data or []

        statuses = defaultdict(int)
        payments = defaultdict(int)
        for order in orders:
            statuses[order["status"]] += 1
            payments[order["payment_status"]] += 1

        not_cancelled = [o for o in orders if o["status"] != "cancelled"]
        revenue = sum(
            (to_money(o["total"] or 0) for o in not_cancelled if o["payment_status"] == "paid"),
            Decimal("0"),
        )
        gross = sum((to_money(o["total"] or 0) for o in not_cancelled), Decimal("0"))
        average = to_money(gross / len(not_cancelled)) if not_cancelled else Decimal("0.00")

        sold: dict[str, dict[str, Any]] = {}
        for order in orders:
            for item in order.get("items") or []:
                line = sold.setdefault(
                    item["product_name"],
                    {"name": item["product_name"], "quantity": 0, "revenue": Decimal("0")},
                )
                line["quantity"] += int(item["quantity"])
                line["revenue"] += to_money(item["total"] or 0)
        top_products = sorted(sold.values(), key=lambda p: p["quantity"], reverse=True)[:TOP_PRODUCTS_LIMIT]

        return {
            "period": period,
            "generated_at": now,
            "total_orders": len(orders),
            "pending_orders": statuses["pending"],
            "processing_orders": statuses["processing"],
            "shipped_orders": statuses["shipped"],
            "delivered_orders": statuses["delivered"],
            "cancelled_orders": statuses["cancelled"],
            "paid_orders": payments["paid"],
            "unpaid_orders": payments["pending"],
            "failed_orders": payments["failed"],
            "refunded_orders": payments["refunded"],
            "total_revenue": to_money(revenue),
            "average_order_value": average,
            "total_items": sum(len(o.get("items") or []) for o in orders),
            "top_products": top_products,
            "recent_orders": [
                {
                    "id": o["id"],
                    "order_number": o.get("order_number") or format_order_number(o["id"]),
                    "status": o["status"],
                    "payment_status": o["payment_status"],
                    "total": o["total"],
                    "created_at": o["created_at"],
                    "item_count": len(o.get("items") or []),
                }
                for o in orders[:RECENT_ORDERS_LIMIT]
            ],
        }


def get_order_service() -> OrderService:
    """Get order service instance."""
    return OrderService()
