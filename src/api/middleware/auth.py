"""Supabase access token verification."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK, PyJWKSet

from src.core.config import get_settings
from src.schemas.auth import TokenPayload

# Supabase signs user sessions for this audience; anon and service keys differ
SUPABASE_AUDIENCE = "authenticated"
SIGNING_ALGORITHMS = ["ES256"]


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache
def get_signing_keys() -> dict[str | None, Any]:
    """Load the project's public signing keys, indexed by key ID.

    ``SUPABASE_SIGNING_KEY_JWK`` may hold a single JWK or the project's
    JWKS document (``{"keys": [...]}``), which is what Supabase publishes
    while a signing key is being rotated.

    Raises:
        AuthError: If no key is configured or the JSON is not a valid JWK.
    """
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
        if "keys" in jwk_data:
            keys = PyJWKSet.from_dict(jwk_data).keys
        else:
            keys = [PyJWK.from_dict(jwk_data)]
    except (json.JSONDecodeError, jwt.PyJWTError) as e:
        raise AuthError(f"Invalid signing key JWK format: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return {key.key_id: key.key for key in keys}


def _key_for(token: str) -> Any:
    keys = get_signing_keys()
    kid = jwt.get_unverified_header(token).get("kid")
    if kid in keys:
        return keys[kid]
    if len(keys) == 1:
        # Keys pasted from the dashboard often lack a kid
        return next(iter(keys.values()))
    raise AuthError(f"Unknown signing key: {kid}", AuthErrorCode.INVALID_SIGNATURE)


def decode_jwt(token: str) -> TokenPayload:
    """Verify a Supabase access token and return its claims.

    Args:
        token: The raw JWT from the ``Authorization`` header.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If the token is malformed, expired, signed by an unknown
            key, or issued for another audience.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _key_for(token),
            algorithms=SIGNING_ALGORITHMS,
            audience=SUPABASE_AUDIENCE,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED) from e
    except jwt.InvalidSignatureError as e:
        raise AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE) from e
    except jwt.InvalidAudienceError as e:
        raise AuthError("Token was not issued for storefront users", AuthErrorCode.INVALID_TOKEN) from e
    except jwt.MissingRequiredClaimError as e:
        raise AuthError(f"Token missing required claim: {e}", AuthErrorCode.INVALID_TOKEN) from e
    except jwt.PyJWTError as e:
        raise AuthError(f"Invalid token: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return TokenPayload(
        sub=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role"),
        exp=payload["exp"],
        iat=payload["iat"],
        aud=payload.get("aud"),
        iss=payload.get("iss"),
        app_metadata=payload.get("app_metadata") or {},
        user_metadata=payload.get("user_metadata") or {},
    )
