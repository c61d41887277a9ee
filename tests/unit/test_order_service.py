"""Unit tests for OrderService."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.middleware.error_handler import BusinessRuleError, NotFoundError, ValidationError
from src.services.inventory_service import InsufficientStockError, StockCheckResult, StockShortfall
from src.services.order_service import OrderService, append_note, format_order_number, period_start

ORDER_ID = "660e8400-e29b-41d4-a716-4466554400ab"
CUSTOMER_ID = "770e8400-e29b-41d4-a716-446655440000"
PRODUCT_ID = "550e8400-e29b-41d4-a716-446655440000"


def response(data, count: int | None = None) -> MagicMock:
    """Build a Supabase response mock."""
    mock = MagicMock()
    mock.data = data
    mock.count = count
    return mock


@pytest.fixture
def tables() -> dict[str, MagicMock]:
    """Per-table query mocks."""
    return {name: MagicMock() for name in ("products", "addresses", "orders", "order_items", "customers")}


@pytest.fixture
def mock_supabase(tables: dict[str, MagicMock]) -> MagicMock:
    """Create a mock Supabase client routing table() calls by name."""
    client = MagicMock()
    client.table.side_effect = lambda name: tables[name]
    return client


@pytest.fixture
def mock_inventory() -> MagicMock:
    """Create a mock inventory service."""
    inventory = MagicMock()
    inventory.check_stock_availability = AsyncMock(return_value=StockCheckResult(valid=True))
    inventory.deduct_stock = AsyncMock()
    inventory.restore_stock = AsyncMock(return_value=1)
    return inventory


@pytest.fixture
def mock_customers() -> MagicMock:
    """Create a mock customer service."""
    customers = MagicMock()
    customers.find_or_create_by_email = AsyncMock(return_value=({"id": CUSTOMER_ID}, True))
    return customers


@pytest.fixture
def order_service(mock_supabase: MagicMock, mock_inventory: MagicMock, mock_customers: MagicMock) -> OrderService:
    """Create OrderService with mocked dependencies."""
    return OrderService(client=mock_supabase, inventory=mock_inventory, customers=mock_customers)


@pytest.fixture
def sample_product() -> dict:
    """Create a sample product row."""
    return {
        "id": PRODUCT_ID,
        "name": "Ayatul Kursi Wall Art",
        "sku": "ASH-AK-001",
        "regular_price": 50.0,
        "sale_price": 45.0,
        "status": "active",
    }


@pytest.fixture
def billing_address() -> dict:
    """Create an entered billing address."""
    return {
        "first_name": "Amina",
        "last_name": "Khan",
        "address_line_1": "1 High Street",
        "city": "Leeds",
        "postcode": "LS1 1AA",
        "country": "GB",
    }


def order_row(status: str = "pending", payment_status: str = "pending", notes: str | None = None) -> dict:
    """Create an order row."""
    return {
        "id": ORDER_ID,
        "customer_id": CUSTOMER_ID,
        "status": status,
        "payment_status": payment_status,
        "notes": notes,
    }


class TestHelpers:
    """Tests for module helpers."""

    def test_format_order_number(self) -> None:
        """Test the order number uses the last six hex characters."""
        assert format_order_number(ORDER_ID) == "ASH-4400AB"
        assert format_order_number(ORDER_ID, "TST") == "TST-4400AB"

    def test_append_note(self) -> None:
        """Test notes are appended on a new line."""
        assert append_note(None, "a") == "a"
        assert append_note("a", "b") == "a\nb"


class TestPriceItems:
    """Tests for price_items method."""

    @pytest.mark.asyncio
    async def test_uses_server_sale_price(
        self, order_service: OrderService, tables: dict, sample_product: dict
    ) -> None:
        """Test that a client-supplied price is ignored in favour of the sale price."""
        tables["products"].select.return_value.in_.return_value.execute.return_value = response([sample_product])

        lines = await order_service.price_items([{"product_id": PRODUCT_ID, "quantity": 2, "price": 1.0}])

        assert lines[0]["price"] == Decimal("45.00")
        assert lines[0]["total"] == Decimal("90.00")
        assert lines[0]["product_name"] == "Ayatul Kursi Wall Art"

    @pytest.mark.asyncio
    async def test_admin_override_price(
        self, order_service: OrderService, tables: dict, sample_product: dict
    ) -> None:
        """Test that admin orders may set their own unit price."""
        tables["products"].select.return_value.in_.return_value.execute.return_value = response([sample_product])

        lines = await order_service.price_items(
            [{"product_id": PRODUCT_ID, "quantity": 1, "price": 30}],
            allow_price_override=True,
        )

        assert lines[0]["price"] == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_rejects_unknown_and_draft_products(
        self, order_service: OrderService, tables: dict, sample_product: dict
    ) -> None:
        """Test that unknown and unpublished products are reported per line."""
        sample_product["status"] = "draft"
        tables["products"].select.return_value.in_.return_value.execute.return_value = response([sample_product])

        with pytest.raises(ValidationError) as exc_info:
            await order_service.price_items([
                {"product_id": PRODUCT_ID, "quantity": 1},
                {"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1},
            ])

        assert [d["type"] for d in exc_info.value.details] == ["unavailable", "not_found"]

    @pytest.mark.asyncio
    async def test_rejects_empty_order(self, order_service: OrderService) -> None:
        """Test that an order needs at least one item."""
        with pytest.raises(ValidationError):
            await order_service.price_items([])


class TestCreateOrder:
    """Tests for create_order method."""

    def _setup_tables(self, tables: dict, sample_product: dict) -> None:
        tables["products"].select.return_value.in_.return_value.execute.return_value = response([sample_product])
        tables["addresses"].insert.return_value.execute.return_value = response([{"id": "addr-1"}])
        tables["orders"].insert.return_value.execute.return_value = response([order_row()])
        tables["orders"].update.return_value.eq.return_value.execute.return_value = response(
            [{**order_row(), "order_number": "ASH-4400AB"}]
        )
        tables["order_items"].insert.return_value.execute.return_value = response([{"id": "item-1"}])

    @pytest.mark.asyncio
    async def test_creates_guest_order(
        self,
        order_service: OrderService,
        tables: dict,
        mock_customers: MagicMock,
        mock_inventory: MagicMock,
        sample_product: dict,
        billing_address: dict,
    ) -> None:
        """Test a guest order resolves the customer, computes totals and deducts stock."""
        self._setup_tables(tables, sample_product)

        order = await order_service.create_order(
            customer={"email": "amina@example.com", "first_name": "Amina"},
            items=[{"product_id": PRODUCT_ID, "quantity": 2}],
            billing_address=billing_address,
        )

        mock_customers.find_or_create_by_email.assert_awaited_once()
        row = tables["orders"].insert.call_args[0][0]
        assert row["status"] == "pending"
        assert row["subtotal"] == 90.0
        assert row["tax_amount"] == 18.0
        assert row["shipping_amount"] == 8.99
        assert row["total"] == 116.99
        assert row["currency"] == "GBP"
        mock_inventory.deduct_stock.assert_awaited_once()
        assert order["order_number"] == "ASH-4400AB"
        assert order["is_guest_order"] is True

    @pytest.mark.asyncio
    async def test_shipping_copies_billing_address(
        self, order_service: OrderService, tables: dict, sample_product: dict, billing_address: dict
    ) -> None:
        """Test that same-as-billing writes a shipping copy of the billing address."""
        self._setup_tables(tables, sample_product)

        await order_service.create_order(
            customer={"email": "amina@example.com"},
            items=[{"product_id": PRODUCT_ID, "quantity": 1}],
            billing_address=billing_address,
            same_as_billing=True,
        )

        types = [c.args[0]["type"] for c in tables["addresses"].insert.call_args_list]
        assert types == ["billing", "shipping"]
        assert tables["addresses"].insert.call_args_list[1].args[0]["postcode"] == "LS1 1AA"

    @pytest.mark.asyncio
    async def test_paid_order_starts_processing(
        self, order_service: OrderService, tables: dict, sample_product: dict, billing_address: dict
    ) -> None:
        """Test that an already-paid admin order starts in processing."""
        self._setup_tables(tables, sample_product)

        await order_service.create_order(
            customer={},
            items=[{"product_id": PRODUCT_ID, "quantity": 1}],
            billing_address=billing_address,
            customer_id=CUSTOMER_ID,
            payment_status="paid",
        )

        row = tables["orders"].insert.call_args[0][0]
        assert row["status"] == "processing"
        assert row["payment_status"] == "paid"

    @pytest.mark.asyncio
    async def test_insufficient_stock_rejected_before_insert(
        self,
        order_service: OrderService,
        tables: dict,
        mock_inventory: MagicMock,
        sample_product: dict,
        billing_address: dict,
    ) -> None:
        """Test that a failed stock check writes nothing."""
        self._setup_tables(tables, sample_product)
        mock_inventory.check_stock_availability.return_value = StockCheckResult(
            valid=False,
            shortfalls=[StockShortfall(PRODUCT_ID, "Ayatul Kursi Wall Art", 3, 1)],
        )

        with pytest.raises(InsufficientStockError):
            await order_service.create_order(
                customer={"email": "amina@example.com"},
                items=[{"product_id": PRODUCT_ID, "quantity": 3}],
                billing_address=billing_address,
            )

        tables["orders"].insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_stock_deduction_failure_removes_order(
        self,
        order_service: OrderService,
        tables: dict,
        mock_inventory: MagicMock,
        sample_product: dict,
        billing_address: dict,
    ) -> None:
        """Test that the order and its items are removed if stock runs out mid-creation."""
        self._setup_tables(tables, sample_product)
        mock_inventory.deduct_stock.side_effect = InsufficientStockError(
            StockCheckResult(valid=False, shortfalls=[StockShortfall(PRODUCT_ID, "Ayatul Kursi Wall Art", 1, 0)])
        )

        with pytest.raises(InsufficientStockError):
            await order_service.create_order(
                customer={"email": "amina@example.com"},
                items=[{"product_id": PRODUCT_ID, "quantity": 1}],
                billing_address=billing_address,
            )

        tables["order_items"].delete.return_value.eq.assert_called_with("order_id", ORDER_ID)
        tables["orders"].delete.return_value.eq.assert_called_with("id", ORDER_ID)
        tables["orders"].update.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_billing_address(
        self, order_service: OrderService, tables: dict, sample_product: dict
    ) -> None:
        """Test a billing address is required."""
        self._setup_tables(tables, sample_product)

        with pytest.raises(ValidationError):
            await order_service.create_order(
                customer={"email": "amina@example.com"},
                items=[{"product_id": PRODUCT_ID, "quantity": 1}],
            )

    @pytest.mark.asyncio
    async def test_rejects_foreign_saved_address(
        self, order_service: OrderService, tables: dict, sample_product: dict
    ) -> None:
        """Test that a saved address of another customer is refused."""
        self._setup_tables(tables, sample_product)
        tables["addresses"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            {"id": "addr-9", "customer_id": "someone-else"}
        )

        with pytest.raises(ValidationError):
            await order_service.create_order(
                customer={},
                items=[{"product_id": PRODUCT_ID, "quantity": 1}],
                billing_address_id="addr-9",
                customer_id=CUSTOMER_ID,
            )


class TestUpdateOrder:
    """Tests for update_order method."""

    @pytest.mark.asyncio
    async def test_cannot_cancel_shipped(self, order_service: OrderService, tables: dict) -> None:
        """Test shipped orders cannot be cancelled."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="shipped")
        )

        with pytest.raises(BusinessRuleError) as exc_info:
            await order_service.update_order(ORDER_ID, {"status": "cancelled"})

        assert "shipped or delivered" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_cancel_restores_stock(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test cancelling a processing order returns its stock."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="processing")
        )
        tables["orders"].update.return_value.eq.return_value.execute.return_value = response(
            [order_row(status="cancelled")]
        )
        tables["order_items"].select.return_value.eq.return_value.execute.return_value = response(
            [{"product_id": PRODUCT_ID, "quantity": 2}]
        )

        result = await order_service.update_order(ORDER_ID, {"status": "cancelled"})

        assert result["status"] == "cancelled"
        mock_inventory.restore_stock.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shipping_sets_shipped_at(self, order_service: OrderService, tables: dict) -> None:
        """Test moving to shipped stamps shipped_at."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="ready")
        )
        tables["orders"].update.return_value.eq.return_value.execute.return_value = response(
            [order_row(status="shipped")]
        )

        await order_service.update_order(ORDER_ID, {"status": "shipped", "tracking_number": "RM123"})

        update = tables["orders"].update.call_args[0][0]
        assert "shipped_at" in update
        assert update["tracking_number"] == "RM123"

    @pytest.mark.asyncio
    async def test_missing_order(self, order_service: OrderService, tables: dict) -> None:
        """Test NotFoundError for an unknown order."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = None

        with pytest.raises(NotFoundError):
            await order_service.update_order(ORDER_ID, {"status": "processing"})


class TestPaymentOutcomes:
    """Tests for mark_paid, mark_payment_failed and cancel_pending."""

    @pytest.mark.asyncio
    async def test_mark_paid(self, order_service: OrderService, tables: dict) -> None:
        """Test a pending order becomes paid and processing with the payment ID noted."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row()
        )
        tables["orders"].update.return_value.eq.return_value.execute.return_value = response(
            [order_row(status="processing", payment_status="paid")]
        )

        await order_service.mark_paid(ORDER_ID, payment_id="pi_123", stripe_payment_intent_id="pi_123")

        update = tables["orders"].update.call_args[0][0]
        assert update["payment_status"] == "paid"
        assert update["status"] == "processing"
        assert update["notes"] == "Payment ID: pi_123"

    @pytest.mark.asyncio
    async def test_mark_paid_twice_rejected(self, order_service: OrderService, tables: dict) -> None:
        """Test that an order cannot be paid twice."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="processing", payment_status="paid")
        )

        with pytest.raises(BusinessRuleError):
            await order_service.mark_paid(ORDER_ID, payment_id="pi_123")

    @pytest.mark.asyncio
    async def test_payment_failed_cancels_and_restores(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test a failed payment cancels the order and returns stock."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row()
        )
        tables["orders"].update.return_value.eq.return_value.execute.return_value = response(
            [order_row(status="cancelled", payment_status="failed")]
        )
        tables["order_items"].select.return_value.eq.return_value.execute.return_value = response(
            [{"product_id": PRODUCT_ID, "quantity": 1}]
        )

        result = await order_service.mark_payment_failed(ORDER_ID, "Your card was declined.")

        update = tables["orders"].update.call_args[0][0]
        assert update["status"] == "cancelled"
        assert update["payment_status"] == "failed"
        assert "Your card was declined." in update["notes"]
        assert result["status"] == "cancelled"
        mock_inventory.restore_stock.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_payment_failed_leaves_paid_order(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test a late failure never cancels a paid order."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="processing", payment_status="paid")
        )

        result = await order_service.mark_payment_failed(ORDER_ID, "late failure")

        assert result["payment_status"] == "paid"
        tables["orders"].update.assert_not_called()
        mock_inventory.restore_stock.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_pending_requires_pending(self, order_service: OrderService, tables: dict) -> None:
        """Test PayPal cancellation only applies to pending orders."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row(status="processing", payment_status="paid")
        )

        with pytest.raises(BusinessRuleError):
            await order_service.cancel_pending(ORDER_ID)

    @pytest.mark.asyncio
    async def test_cancel_pending_notes_paypal(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test PayPal cancellation records the reason and restores stock."""
        tables["orders"].select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response(
            order_row()
        )
        tables["orders"].update.return_value.eq.return_value.eq.return_value.execute.return_value = response(
            [order_row(status="cancelled", payment_status="failed")]
        )
        tables["order_items"].select.return_value.eq.return_value.execute.return_value = response([])

        await order_service.cancel_pending(ORDER_ID)

        update = tables["orders"].update.call_args[0][0]
        assert update["notes"] == "Order cancelled due to PayPal payment cancellation"
        mock_inventory.restore_stock.assert_awaited_once()


class TestListOrders:
    """Tests for list_orders method."""

    @pytest.mark.asyncio
    async def test_search_matches_customer_email_and_name(self, order_service: OrderService, tables: dict) -> None:
        """Test that search includes orders of customers whose email or name matches."""
        tables["customers"].select.return_value.or_.return_value.limit.return_value.execute.return_value = response(
            [{"id": CUSTOMER_ID}]
        )
        searched = tables["orders"].select.return_value.or_.return_value
        searched.order.return_value.range.return_value.execute.return_value = response(
            [{"id": ORDER_ID, "customer": {"id": CUSTOMER_ID}}], count=1
        )

        result = await order_service.list_orders(search="amina")

        customer_filter = tables["customers"].select.return_value.or_.call_args[0][0]
        assert customer_filter == 'email.ilike."%amina%",first_name.ilike."%amina%",last_name.ilike."%amina%"'
        order_filter = tables["orders"].select.return_value.or_.call_args[0][0]
        assert order_filter == (
            f'order_number.ilike."%amina%",notes.ilike."%amina%",customer_id.in.({CUSTOMER_ID})'
        )
        assert result["total"] == 1

    @pytest.mark.asyncio
    async def test_search_without_customer_matches(self, order_service: OrderService, tables: dict) -> None:
        """Test that search falls back to order fields when no customer matches."""
        tables["customers"].select.return_value.or_.return_value.limit.return_value.execute.return_value = response([])
        searched = tables["orders"].select.return_value.or_.return_value
        searched.order.return_value.range.return_value.execute.return_value = response([], count=0)

        result = await order_service.list_orders(search="ASH-44")

        order_filter = tables["orders"].select.return_value.or_.call_args[0][0]
        assert order_filter == 'order_number.ilike."%ASH-44%",notes.ilike."%ASH-44%"'
        assert result == {"items": [], "total": 0}


class TestBulkAction:
    """Tests for bulk_action method."""

    @pytest.mark.asyncio
    async def test_cancel_blocked_by_shipped_order(self, order_service: OrderService, tables: dict) -> None:
        """Test bulk cancel changes nothing if any selected order shipped."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([
            {"id": "o1", "status": "pending", "payment_status": "pending"},
            {"id": "o2", "status": "shipped", "payment_status": "paid"},
        ])

        with pytest.raises(BusinessRuleError) as exc_info:
            await order_service.bulk_action("cancel_orders", ["o1", "o2"])

        assert "Cannot cancel 1 order(s)" in exc_info.value.message
        tables["orders"].update.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_restores_stock(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test bulk cancel updates eligible orders and returns stock."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([
            {"id": "o1", "status": "pending", "payment_status": "pending"},
            {"id": "o2", "status": "cancelled", "payment_status": "failed"},
        ])
        tables["orders"].update.return_value.in_.return_value.execute.return_value = response([{"id": "o1"}])
        tables["order_items"].select.return_value.in_.return_value.execute.return_value = response(
            [{"order_id": "o1", "product_id": PRODUCT_ID, "quantity": 1}]
        )

        result = await order_service.bulk_action("cancel_orders", ["o1", "o2"], reason="Customer request")

        assert result["updated_count"] == 1
        assert result["skipped_order_ids"] == ["o2"]
        assert tables["orders"].update.call_args[0][0]["notes"] == "Customer request"
        mock_inventory.restore_stock.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_shipped_skips_ineligible(self, order_service: OrderService, tables: dict) -> None:
        """Test orders that cannot ship are skipped."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([
            {"id": "o1", "status": "ready", "payment_status": "paid"},
            {"id": "o2", "status": "pending", "payment_status": "pending"},
        ])
        tables["orders"].update.return_value.in_.return_value.execute.return_value = response([{"id": "o1"}])

        result = await order_service.bulk_action("mark_shipped", ["o1", "o2", "o3"])

        tables["orders"].update.return_value.in_.assert_called_once_with("id", ["o1"])
        assert result["updated_count"] == 1
        assert result["skipped_order_ids"] == ["o3", "o2"]

    @pytest.mark.asyncio
    async def test_cancel_skips_refunded_orders(
        self, order_service: OrderService, tables: dict, mock_inventory: MagicMock
    ) -> None:
        """Test that refunded orders are neither cancelled nor restocked."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([
            {"id": "o1", "status": "refunded", "payment_status": "refunded"},
        ])

        result = await order_service.bulk_action("cancel_orders", ["o1"])

        assert result["updated_count"] == 0
        assert result["skipped_order_ids"] == ["o1"]
        tables["orders"].update.assert_not_called()
        mock_inventory.restore_stock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mark_paid_skips_cancelled_and_refunded(self, order_service: OrderService, tables: dict) -> None:
        """Test that closed orders are never marked paid."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([
            {"id": "o1", "status": "pending", "payment_status": "pending"},
            {"id": "o2", "status": "cancelled", "payment_status": "failed"},
            {"id": "o3", "status": "refunded", "payment_status": "refunded"},
        ])
        tables["orders"].update.return_value.in_.return_value.execute.return_value = response([{"id": "o1"}])

        result = await order_service.bulk_action("mark_paid", ["o1", "o2", "o3"])

        tables["orders"].update.return_value.in_.assert_called_once_with("id", ["o1"])
        assert tables["orders"].update.call_args[0][0]["payment_status"] == "paid"
        assert result["updated_count"] == 1
        assert result["skipped_order_ids"] == ["o2", "o3"]

    @pytest.mark.asyncio
    async def test_rejects_unknown_action(self, order_service: OrderService, tables: dict) -> None:
        """Test that an unknown action raises ValueError."""
        tables["orders"].select.return_value.in_.return_value.execute.return_value = response([])

        with pytest.raises(ValueError):
            await order_service.bulk_action("archive", ["o1"])

    @pytest.mark.asyncio
    async def test_rejects_empty_selection(self, order_service: OrderService) -> None:
        """Test that an empty selection raises ValueError."""
        with pytest.raises(ValueError):
            await order_service.bulk_action("mark_paid", [])


class TestPeriodStart:
    """Tests for period_start."""

    NOW = datetime(2026, 3, 31, 15, 30, tzinfo=timezone.utc)

    def test_today_starts_at_midnight(self) -> None:
        """Test today begins at 00:00 of the current day."""
        assert period_start("today", self.NOW) == datetime(2026, 3, 31, tzinfo=timezone.utc)

    def test_month_clamps_to_shorter_month(self) -> None:
        """Test a month back from 31 March lands on the last day of February."""
        assert period_start("month", self.NOW) == datetime(2026, 2, 28, 15, 30, tzinfo=timezone.utc)

    def test_all_has_no_start(self) -> None:
        """Test the all-time period is unbounded."""
        assert period_start("all", self.NOW) is None


class TestOrderStats:
    """Tests for order_stats method."""

    @pytest.mark.asyncio
    async def test_stats(self, order_service: OrderService, tables: dict[str, MagicMock]) -> None:
        """Test counts, revenue rules, top products and the period filter."""
        query = tables["orders"].select.return_value
        query.gte.return_value = query
        query.order.return_value.execute.return_value = response([
            {
                "id": ORDER_ID,
                "order_number": "ASH-4400AB",
                "status": "processing",
                "payment_status": "paid",
                "total": "100.00",
                "created_at": "2026-10-18T10:00:00+00:00",
                "items": [{"product_name": "Shahada Plaque", "quantity": 2, "total": "80.00"}],
            },
            {
                "id": "660e8400-e29b-41d4-a716-4466554400ac",
                "order_number": "ASH-4400AC",
                "status": "pending",
                "payment_status": "pending",
                "total": "50.00",
                "created_at": "2026-10-17T10:00:00+00:00",
                "items": [{"product_name": "Ayatul Kursi Wall Art", "quantity": 1, "total": "45.00"}],
            },
            {
                "id": "660e8400-e29b-41d4-a716-4466554400ad",
                "order_number": "ASH-4400AD",
                "status": "cancelled",
                "payment_status": "paid",
                "total": "900.00",
                "created_at": "2026-10-16T10:00:00+00:00",
                "items": [{"product_name": "Shahada Plaque", "quantity": 3, "total": "120.00"}],
            },
        ])

        stats = await order_service.order_stats("week", now=datetime(2026, 10, 19, tzinfo=timezone.utc))

        query.gte.assert_called_once_with("created_at", "2026-10-12T00:00:00+00:00")
        assert stats["total_orders"] == 3
        assert stats["processing_orders"] == 1
        assert stats["cancelled_orders"] == 1
        assert stats["paid_orders"] == 2
        assert stats["unpaid_orders"] == 1
        assert stats["total_revenue"] == Decimal("100.00")
        assert stats["average_order_value"] == Decimal("75.00")
        assert stats["total_items"] == 3
        assert stats["top_products"][0] == {"name": "Shahada Plaque", "quantity": 5, "revenue": Decimal("200.00")}
        assert [o["order_number"] for o in stats["recent_orders"]] == ["ASH-4400AB", "ASH-4400AC", "ASH-4400AD"]

    @pytest.mark.asyncio
    async def test_all_time_is_unfiltered(self, order_service: OrderService, tables: dict[str, MagicMock]) -> None:
        """Test no date filter is applied for all time and empty stats are zero."""
        query = tables["orders"].select.return_value
        query.order.return_value.execute.return_value = response([])

        stats = await order_service.order_stats("all")

        query.gte.assert_not_called()
        assert stats["total_orders"] == 0
        assert stats["average_order_value"] == Decimal("0.00")
        assert stats["top_products"] == []
