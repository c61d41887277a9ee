"""Authentication schemas for JWT tokens and user context."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Authenticated user context extracted from JWT token.

    This model represents the authenticated user for the current request.
    It is populated by the auth middleware from the validated JWT.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="Storefront role ('customer' or 'admin')")
    first_name: str | None = Field(default=None, description="First name from signup metadata")
    last_name: str | None = Field(default=None, description="Last name from signup metadata")

    @property
    def is_admin(self) -> bool:
        """Whether the token carries the admin role claim."""
        return self.role == "admin"


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens.

    Represents the claims contained in a Supabase-issued JWT.
    Used for validation and extraction of user information.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="Postgres role claim (usually 'authenticated')")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")
    app_metadata: dict[str, Any] = Field(default_factory=dict, description="Server-controlled metadata")
    user_metadata: dict[str, Any] = Field(default_factory=dict, description="User-editable signup metadata")

    @property
    def expiration_datetime(self) -> datetime:
        """Get expiration as datetime object."""
        return datetime.fromtimestamp(self.exp)

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        The storefront role lives in ``app_metadata.role``; the top-level
        ``role`` claim is the Postgres role and is only used as a fallback.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.app_metadata.get("role") or self.role,
            first_name=self.user_metadata.get("first_name"),
            last_name=self.user_metadata.get("last_name"),
        )
