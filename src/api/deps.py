"""FastAPI dependency injection functions."""

import secrets
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, Response, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError, RateLimitError
from src.core.config import get_settings
from src.core.rate_limiter import get_rate_limiter
from src.core.supabase import get_supabase_client
from src.schemas.auth import UserContext
from src.services.customer_service import CustomerService

CART_SESSION_HEADER = "x-cart-session"


def get_cart_cookie_config() -> dict:
    """Get cart cookie configuration from settings."""
    settings = get_settings()
    # SameSite=None requires Secure=True; use Lax for local development
    samesite = "none" if settings.cart_cookie_secure else "lax"
    return {
        "key": settings.cart_cookie_name,
        "max_age": settings.cart_ttl_seconds,
        "httponly": True,
        "secure": settings.cart_cookie_secure,
        "samesite": samesite,
        "path": "/",
    }


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    This dependency requires a valid JWT token in the Authorization header.
    Use this for endpoints that require authentication.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = parts[1]

    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> UserContext | None:
    """Extract the current user if an Authorization header is present.

    Guest checkout works without a token; a token that is present but
    invalid is still rejected.

    Args:
        authorization: Optional Authorization header value.

    Returns:
        UserContext | None: The user context if authenticated, None otherwise.
    """
    if not authorization:
        return None
    return await get_current_user(authorization)


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]


def is_admin_user(user: UserContext) -> bool:
    """Check the ``app_metadata.role`` claim, then ``profiles.role``.

    The profile lookup covers accounts promoted after their token was issued.
    """
    if user.is_admin:
        return True

    response = (
        get_supabase_client()
        .table("profiles")
        .select("role")
        .eq("user_id", str(user.user_id))
        .maybe_single()
        .execute()
    )
    return bool(response and response.data and response.data.get("role") == "admin")


async def require_admin(user: CurrentUser) -> UserContext:
    """Require an admin user.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if not is_admin_user(user):
        raise AuthorizationError("Admin access required")
    return user


AdminUser = Annotated[UserContext, Depends(require_admin)]


async def get_current_customer(user: CurrentUser) -> dict[str, Any]:
    """Customer record for the signed-in user, created on first use.

    Raises:
        HTTPException: 400 if the token carries no email.
    """
    if not user.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account has no email address",
        )

    customer, _ = await CustomerService().find_or_create_by_email(
        user.email,
        first_name=user.first_name,
        last_name=user.last_name,
    )
    return customer


CurrentCustomer = Annotated[dict[str, Any], Depends(get_current_customer)]


# Cart session


def get_cart_session_token(request: Request) -> str | None:
    """Extract the cart token from the X-Cart-Session header or cookie.

    The header works when browsers block third-party cookies.
    """
    header_token = request.headers.get(CART_SESSION_HEADER)
    if header_token:
        return header_token
    return request.cookies.get(get_cart_cookie_config()["key"])


def set_cart_cookie(response: Response, token: str) -> None:
    """Set the cart cookie on a response."""
    config = get_cart_cookie_config()
    response.set_cookie(
        key=config["key"],
        value=token,
        max_age=config["max_age"],
        httponly=config["httponly"],
        secure=config["secure"],
        samesite=config["samesite"],
        path=config["path"],
    )


async def get_cart_session(request: Request, response: Response) -> str:
    """Cart session token, minting one (cookie + header) when absent."""
    token = get_cart_session_token(request)
    if token:
        return token

    token = secrets.token_hex(32)
    set_cart_cookie(response, token)
    response.headers[CART_SESSION_HEADER] = token
    return token


CartSession = Annotated[str, Depends(get_cart_session)]


# Rate limiting dependency


async def check_checkout_rate_limit(request: Request, user: OptionalUser) -> None:
    """Limit checkout submissions per user, or per client IP for guests.

    Raises:
        RateLimitError: If too many checkout attempts were made recently.
    """
    if user:
        key = f"user:{user.user_id}"
    else:
        client_ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if not client_ip and request.client:
            client_ip = request.client.host
        key = f"ip:{client_ip or 'unknown'}"

    allowed, retry_after = get_rate_limiter().check_and_record(key, authenticated=user is not None)
    if not allowed:
        raise RateLimitError(
            message="Too many checkout attempts. Please wait before trying again.",
            retry_after=retry_after,
        )


CheckoutRateLimit = Annotated[None, Depends(check_checkout_rate_limit)]
