"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_stripe_publishable_key")
os.environ.setdefault("PAYPAL_CLIENT_ID", "test-paypal-client-id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test-paypal-client-secret")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("CART_COOKIE_SECURE", "false")
os.environ.setdefault("CHECKOUT_RECONCILE_INTERVAL_SECONDS", "0")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import Settings, get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def client_without_mocks() -> Generator[TestClient, None, None]:
    """Provide a test client without any mocked dependencies.

    Use this fixture when you want to test actual integration
    with external services.

    Yields:
        TestClient: FastAPI test client without mocks.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def customer_user() -> Any:
    """A signed-in storefront customer."""
    from src.schemas.auth import UserContext

    return UserContext(
        user_id="770e8400-e29b-41d4-a716-446655440000",
        email="amina@example.com",
        role="customer",
        first_name="Amina",
        last_name="Khan",
    )


@pytest.fixture
def admin_user() -> Any:
    """A signed-in admin."""
    from src.schemas.auth import UserContext

    return UserContext(
        user_id="880e8400-e29b-41d4-a716-446655440000",
        email="admin@ashhadu.co.uk",
        role="admin",
    )


@pytest.fixture
def login_as(client: TestClient) -> Generator[Any, None, None]:
    """Override authentication so requests run as the given user.

    Non-admin users get an empty ``profiles`` lookup.

    Yields:
        Callable taking a UserContext.
    """
    from src.api.deps import get_current_user, get_optional_user
    from src.main import app

    profile_client = MagicMock()
    profile_response = MagicMock()
    profile_response.data = None
    profile_client.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = (
        profile_response
    )

    def _login(user: Any) -> None:
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user

    with patch("src.api.deps.get_supabase_client", return_value=profile_client):
        yield _login

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_in_memory_state() -> Generator[None, None, None]:
    """Give every test a fresh cart store and checkout rate limiter."""
    import src.core.rate_limiter as rate_limiter
    import src.services.cart_store as cart_store

    rate_limiter._rate_limiter = None
    cart_store._cart_store = None
    yield
    rate_limiter._rate_limiter = None
    cart_store._cart_store = None
