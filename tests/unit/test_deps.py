"""Unit tests for FastAPI dependency injection functions."""

import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from starlette.responses import Response

from src.api.deps import (
    check_checkout_rate_limit,
    get_cart_session,
    get_current_user,
    get_optional_user,
    is_admin_user,
    require_admin,
)
from src.api.middleware.error_handler import AuthorizationError, RateLimitError
from src.schemas.auth import UserContext


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_extracts_user_context_correctly(self, mock_decode: any) -> None:
        """Test get_current_user extracts UserContext from valid token."""
        from src.schemas.auth import TokenPayload

        mock_payload = TokenPayload(
            sub="550e8400-e29b-41d4-a716-446655440000",
            email="test@example.com",
            role="user",
            exp=int(time.time()) + 3600,
            iat=int(time.time()),
        )
        mock_decode.return_value = mock_payload

        user = await get_current_user("Bearer valid-token")

        assert isinstance(user, UserContext)
        assert str(user.user_id) == "550e8400-e29b-41d4-a716-446655440000"
        assert user.email == "test@example.com"
        assert user.role == "user"

    @pytest.mark.asyncio
    async def test_raises_401_for_missing_header(self) -> None:
        """Test get_current_user raises 401 when Authorization header is missing."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("")

        assert exc_info.value.status_code == 401
        assert "Authorization header required" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_raises_401_for_invalid_header_format(self) -> None:
        """Test get_current_user raises 401 for invalid header format."""
        # Missing "Bearer" prefix
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("invalid-token")

        assert exc_info.value.status_code == 401
        assert "Invalid authorization header format" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_raises_401_for_wrong_scheme(self) -> None:
        """Test get_current_user raises 401 for non-Bearer scheme."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Basic some-credentials")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_expired_token(self, mock_decode: any) -> None:
        """Test get_current_user raises 401 for expired token."""
        from src.api.middleware.auth import AuthError, AuthErrorCode

        mock_decode.side_effect = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer expired-token")

        assert exc_info.value.status_code == 401
        assert "expired" in exc_info.value.detail.lower()


class TestGetOptionalUser:
    """Tests for get_optional_user dependency."""

    @pytest.mark.asyncio
    async def test_returns_none_for_missing_header(self) -> None:
        """Test get_optional_user returns None when no Authorization header."""
        user = await get_optional_user(None)
        assert user is None

    @pytest.mark.asyncio
    async def test_returns_none_for_empty_header(self) -> None:
        """Test get_optional_user returns None for empty header."""
        user = await get_optional_user("")
        assert user is None

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_returns_user_context_for_valid_token(self, mock_decode: any) -> None:
        """Test get_optional_user returns UserContext for valid token."""
        from src.schemas.auth import TokenPayload

        mock_payload = TokenPayload(
            sub="550e8400-e29b-41d4-a716-446655440000",
            email="test@example.com",
            role="user",
            exp=int(time.time()) + 3600,
            iat=int(time.time()),
        )
        mock_decode.return_value = mock_payload

        user = await get_optional_user("Bearer valid-token")

        assert user is not None
        assert isinstance(user, UserContext)
        assert str(user.user_id) == "550e8400-e29b-41d4-a716-446655440000"

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_invalid_token(self, mock_decode: any) -> None:
        """Test get_optional_user raises 401 if token is present but invalid."""
        from src.api.middleware.auth import AuthError, AuthErrorCode

        mock_decode.side_effect = AuthError("Invalid token", AuthErrorCode.INVALID_TOKEN)

        # When a token is provided but invalid, it should still raise
        with pytest.raises(HTTPException) as exc_info:
            await get_optional_user("Bearer invalid-token")

        assert exc_info.value.status_code == 401


def make_request(headers: dict | None = None, cookies: dict | None = None, host: str = "203.0.113.9") -> MagicMock:
    request = MagicMock()
    request.headers = headers or {}
    request.cookies = cookies or {}
    request.client.host = host
    return request


class TestAdminChecks:
    """Tests for is_admin_user and require_admin."""

    def test_admin_claim(self) -> None:
        """Test that the admin role claim is trusted without a lookup."""
        user = UserContext(user_id="550e8400-e29b-41d4-a716-446655440000", role="admin")

        with patch("src.api.deps.get_supabase_client") as mock_client:
            assert is_admin_user(user) is True
            mock_client.assert_not_called()

    def test_admin_profile(self) -> None:
        """Test that a profile promoted to admin is recognised."""
        user = UserContext(user_id="550e8400-e29b-41d4-a716-446655440000", role="authenticated")

        with patch("src.api.deps.get_supabase_client") as mock_client:
            chain = mock_client.return_value.table.return_value.select.return_value.eq.return_value
            chain.maybe_single.return_value.execute.return_value = MagicMock(data={"role": "admin"})
            assert is_admin_user(user) is True

    @pytest.mark.asyncio
    async def test_require_admin_rejects_customer(self) -> None:
        """Test that customers get 403."""
        user = UserContext(user_id="550e8400-e29b-41d4-a716-446655440000", role="customer")

        with patch("src.api.deps.get_supabase_client") as mock_client:
            chain = mock_client.return_value.table.return_value.select.return_value.eq.return_value
            chain.maybe_single.return_value.execute.return_value = None
            with pytest.raises(AuthorizationError):
                await require_admin(user)


class TestCartSession:
    """Tests for cart session resolution."""

    @pytest.mark.asyncio
    async def test_header_wins_over_cookie(self) -> None:
        """Test that the X-Cart-Session header is preferred."""
        request = make_request(headers={"x-cart-session": "from-header"}, cookies={"ashhadu_cart": "from-cookie"})

        assert await get_cart_session(request, Response()) == "from-header"

    @pytest.mark.asyncio
    async def test_cookie_is_used(self) -> None:
        """Test that the cart cookie is read when no header is sent."""
        request = make_request(cookies={"ashhadu_cart": "from-cookie"})

        assert await get_cart_session(request, Response()) == "from-cookie"

    @pytest.mark.asyncio
    async def test_new_session_is_minted(self) -> None:
        """Test that a missing session gets a new token as cookie and header."""
        response = Response()

        token = await get_cart_session(make_request(), response)

        assert len(token) == 64
        assert response.headers["x-cart-session"] == token
        assert f"ashhadu_cart={token}" in response.headers["set-cookie"]


class TestCheckoutRateLimit:
    """Tests for check_checkout_rate_limit."""

    @pytest.mark.asyncio
    async def test_guests_limited_by_ip(self) -> None:
        """Test that guests are keyed by forwarded client IP."""
        limiter = MagicMock()
        limiter.check_and_record.return_value = (True, 0)
        request = make_request(headers={"x-forwarded-for": "198.51.100.7, 10.0.0.1"})

        with patch("src.api.deps.get_rate_limiter", return_value=limiter):
            await check_checkout_rate_limit(request, None)

        limiter.check_and_record.assert_called_once_with("ip:198.51.100.7", authenticated=False)

    @pytest.mark.asyncio
    async def test_users_limited_by_id(self) -> None:
        """Test that signed-in users are keyed by user ID."""
        limiter = MagicMock()
        limiter.check_and_record.return_value = (True, 0)
        user = UserContext(user_id="550e8400-e29b-41d4-a716-446655440000")

        with patch("src.api.deps.get_rate_limiter", return_value=limiter):
            await check_checkout_rate_limit(make_request(), user)

        limiter.check_and_record.assert_called_once_with(
            "user:550e8400-e29b-41d4-a716-446655440000", authenticated=True
        )

    @pytest.mark.asyncio
    async def test_over_limit_raises(self) -> None:
        """Test that exceeding the limit raises RateLimitError with retry_after."""
        limiter = MagicMock()
        limiter.check_and_record.return_value = (False, 42)

        with patch("src.api.deps.get_rate_limiter", return_value=limiter):
            with pytest.raises(RateLimitError) as exc_info:
                await check_checkout_rate_limit(make_request(), None)

        assert exc_info.value.retry_after == 42
