"""Unit tests for ProductService."""

from datetime import datetime
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from src.services.product_service import ProductService, derive_stock_status


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client."""
    return MagicMock()


@pytest.fixture
def sample_product() -> dict:
    """Create a sample product."""
    return {
        "id": str(uuid4()),
        "name": "Ayatul Kursi Wall Art",
        "slug": "ayatul-kursi-wall-art",
        "sku": "ASH-AK-001",
        "regular_price": 55.00,
        "sale_price": 45.00,
        "stock": 12,
        "manage_stock": True,
        "stock_status": "in_stock",
        "low_stock_threshold": 5,
        "category": "calligraphy",
        "arabic_text": "آية الكرسي",
        "status": "active",
        "created_at": datetime.now().isoformat(),
        "updated_at": datetime.now().isoformat(),
    }


def chainable(mock_supabase: MagicMock) -> MagicMock:
    """Make every query builder call return the same query mock."""
    query = MagicMock()
    for method in ("select", "order", "limit", "eq", "or_", "lt", "in_"):
        getattr(query, method).return_value = query
    mock_supabase.table.return_value = query
    return query


class TestDeriveStockStatus:
    """Tests for derive_stock_status."""

    @pytest.mark.parametrize(
        ("stock", "manage_stock", "expected"),
        [
            (20, True, "in_stock"),
            (5, True, "low_stock"),
            (0, True, "out_of_stock"),
            (0, False, "made_to_order"),
        ],
    )
    def test_status(self, stock: int, manage_stock: bool, expected: str) -> None:
        """Test that stock_status follows the stock level."""
        assert derive_stock_status(stock, manage_stock) == expected


class TestCreateProduct:
    """Tests for create_product method."""

    @pytest.mark.asyncio
    async def test_create_product_success(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test successful product creation sets stock_status."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(
            data=[sample_product]
        )

        service = ProductService(supabase_client=mock_supabase)
        result = await service.create_product(
            data={"name": "Ayatul Kursi Wall Art", "slug": "ayatul-kursi-wall-art", "stock": 3}
        )

        assert result["id"] == sample_product["id"]
        row = mock_supabase.table.return_value.insert.call_args[0][0]
        assert row["stock_status"] == "low_stock"

    @pytest.mark.asyncio
    async def test_create_product_failure(self, mock_supabase: MagicMock) -> None:
        """Test that an empty insert result raises."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[])

        service = ProductService(supabase_client=mock_supabase)
        with pytest.raises(Exception, match="Failed to create product"):
            await service.create_product(data={"name": "Broken", "slug": "broken"})


class TestGetProduct:
    """Tests for get_product method."""

    @pytest.mark.asyncio
    async def test_get_product_found(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test getting an existing product."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[sample_product]
        )

        service = ProductService(supabase_client=mock_supabase)
        result = await service.get_product(uuid4())

        assert result["name"] == "Ayatul Kursi Wall Art"

    @pytest.mark.asyncio
    async def test_get_product_not_found(self, mock_supabase: MagicMock) -> None:
        """Test getting a non-existent product."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[]
        )

        service = ProductService(supabase_client=mock_supabase)
        assert await service.get_product(uuid4()) is None


class TestUpdateProduct:
    """Tests for update_product method."""

    @pytest.mark.asyncio
    async def test_update_product_success(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test updating fields other than stock."""
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[{**sample_product, "name": "Updated Name"}]
        )

        service = ProductService(supabase_client=mock_supabase)
        result = await service.update_product(uuid4(), {"name": "Updated Name", "category": None})

        assert result["name"] == "Updated Name"
        assert mock_supabase.table.return_value.update.call_args[0][0] == {"name": "Updated Name"}

    @pytest.mark.asyncio
    async def test_stock_change_updates_status(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test that changing stock recomputes stock_status."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[sample_product]
        )
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[{**sample_product, "stock": 0, "stock_status": "out_of_stock"}]
        )

        service = ProductService(supabase_client=mock_supabase)
        await service.update_product(uuid4(), {"stock": 0})

        update = mock_supabase.table.return_value.update.call_args[0][0]
        assert update == {"stock": 0, "stock_status": "out_of_stock"}

    @pytest.mark.asyncio
    async def test_update_product_not_found(self, mock_supabase: MagicMock) -> None:
        """Test updating a non-existent product."""
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[]
        )

        service = ProductService(supabase_client=mock_supabase)
        assert await service.update_product(uuid4(), {"name": "Updated"}) is None


class TestDeleteProduct:
    """Tests for delete_product method."""

    @pytest.mark.asyncio
    async def test_delete_product_success(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test successful product deletion."""
        mock_supabase.table.return_value.delete.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[sample_product]
        )

        service = ProductService(supabase_client=mock_supabase)
        assert await service.delete_product(uuid4()) is True

    @pytest.mark.asyncio
    async def test_delete_product_not_found(self, mock_supabase: MagicMock) -> None:
        """Test deleting a non-existent product."""
        mock_supabase.table.return_value.delete.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[]
        )

        service = ProductService(supabase_client=mock_supabase)
        assert await service.delete_product(uuid4()) is False


class TestListProducts:
    """Tests for list_products method."""

    @pytest.mark.asyncio
    async def test_list_products_success(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test listing products."""
        query = chainable(mock_supabase)
        query.execute.return_value = MagicMock(data=[sample_product])

        service = ProductService(supabase_client=mock_supabase)
        result = await service.list_products(status="active")

        assert result["products"] == [sample_product]
        assert result["has_more"] is False
        assert result["next_cursor"] is None
        query.eq.assert_called_once_with("status", "active")

    @pytest.mark.asyncio
    async def test_list_products_with_pagination(self, mock_supabase: MagicMock) -> None:
        """Test that an extra row sets has_more and the cursor."""
        query = chainable(mock_supabase)
        rows = [{"id": f"product-{i}"} for i in range(3)]
        query.execute.return_value = MagicMock(data=rows)

        service = ProductService(supabase_client=mock_supabase)
        result = await service.list_products(limit=2)

        assert len(result["products"]) == 2
        assert result["has_more"] is True
        assert result["next_cursor"] == "product-1"

    @pytest.mark.asyncio
    async def test_list_products_with_cursor_and_search(self, mock_supabase: MagicMock) -> None:
        """Test that the cursor row's timestamp bounds the next page."""
        query = chainable(mock_supabase)
        query.execute.side_effect = [
            MagicMock(data=[{"created_at": "2026-01-01T00:00:00"}]),
            MagicMock(data=[]),
        ]

        service = ProductService(supabase_client=mock_supabase)
        await service.list_products(search="kursi", cursor="product-1")

        query.or_.assert_called_once_with("name.ilike.%kursi%,sku.ilike.%kursi%")
        query.lt.assert_called_once_with("created_at", "2026-01-01T00:00:00")


class TestGetProductsByIds:
    """Tests for get_products_by_ids method."""

    @pytest.mark.asyncio
    async def test_get_products_by_ids_success(self, mock_supabase: MagicMock, sample_product: dict) -> None:
        """Test getting products by IDs."""
        mock_supabase.table.return_value.select.return_value.in_.return_value.execute.return_value = MagicMock(
            data=[sample_product]
        )

        service = ProductService(supabase_client=mock_supabase)
        result = await service.get_products_by_ids([sample_product["id"]])

        assert result == [sample_product]

    @pytest.mark.asyncio
    async def test_get_products_by_ids_empty_list(self, mock_supabase: MagicMock) -> None:
        """Test getting products with empty ID list."""
        service = ProductService(supabase_client=mock_supabase)

        assert await service.get_products_by_ids([]) == []
        mock_supabase.table.assert_not_called()
