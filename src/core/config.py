"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="ashhadu-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,https://ashhadu.co.uk",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    stripe_publishable_key: str = Field(default="", description="Stripe publishable key (for frontend)")

    # PayPal
    paypal_client_id: str = Field(default="", description="PayPal REST client ID")
    paypal_client_secret: str = Field(default="", description="PayPal REST client secret")
    paypal_environment: str = Field(default="sandbox", description="PayPal environment (sandbox/live)")
    paypal_timeout_seconds: float = Field(default=15.0, description="Timeout for PayPal API calls")

    # Apple Pay
    apple_pay_merchant_id: str = Field(default="", description="Apple Pay merchant identifier")
    apple_pay_merchant_cert_path: str = Field(default="", description="Path to the Apple Pay merchant identity certificate (PEM)")
    apple_pay_merchant_key_path: str = Field(default="", description="Path to the Apple Pay merchant identity private key (PEM)")
    apple_pay_domain: str = Field(default="ashhadu.co.uk", description="Domain registered with Apple Pay")
    apple_pay_display_name: str = Field(default="Ashhadu Islamic Art", description="Merchant name shown on the payment sheet")

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Ashhadu Islamic Art <orders@ashhadu.co.uk>",
        description="From address for transactional emails",
    )
    email_reply_to: str = Field(default="support@ashhadu.co.uk", description="Reply-to address for transactional emails")
    admin_notification_emails: str = Field(
        default="admin@ashhadu.co.uk",
        description="Comma-separated list of addresses that receive new-order alerts",
    )

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Frontend application URL for email links and redirects",
    )

    # Pricing
    currency: str = Field(default="GBP", description="ISO currency code for all prices")
    vat_rate: Decimal = Field(default=Decimal("0.20"), description="UK VAT rate applied to the cart subtotal")
    free_shipping_threshold: Decimal = Field(default=Decimal("100.00"), description="Subtotal at which shipping becomes free")
    standard_shipping_fee: Decimal = Field(default=Decimal("8.99"), description="Flat shipping fee below the threshold")

    # Orders
    order_number_prefix: str = Field(default="ASH", description="Prefix for human-readable order numbers")

    # Cart
    cart_cookie_name: str = Field(default="ashhadu_cart", description="Cart session cookie name")
    cart_cookie_secure: bool = Field(default=True, description="Use secure cookies (HTTPS only)")
    cart_ttl_seconds: int = Field(default=604800, description="Idle lifetime of a server-side cart (7 days)")
    cart_max_size: int = Field(default=10000, description="Maximum number of carts held in memory")

    # Checkout rate limiting
    checkout_rate_limit_guest: int = Field(default=5, description="Checkout attempts per window for guests")
    checkout_rate_limit_customer: int = Field(default=10, description="Checkout attempts per window for signed-in customers")
    checkout_rate_limit_window_seconds: int = Field(default=60, description="Checkout rate limit window in seconds")

    # Checkout reconciliation
    checkout_intent_timeout_seconds: int = Field(
        default=1800,
        description="Age after which an unpaid checkout intent is considered abandoned",
    )
    checkout_reconcile_interval_seconds: int = Field(
        default=300,
        description="How often the reconciliation job scans for abandoned checkout intents",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_emails_list(self) -> list[str]:
        """Parse admin notification emails into a list."""
        return [email.strip() for email in self.admin_notification_emails.split(",") if email.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")

    @property
    def is_paypal_configured(self) -> bool:
        """Check if PayPal credentials are present."""
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def paypal_api_base(self) -> str:
        """Base URL of the PayPal REST API for the configured environment."""
        if self.paypal_environment == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    @property
    def is_apple_pay_configured(self) -> bool:
        """Check if the Apple Pay merchant identity is available."""
        return bool(
            self.apple_pay_merchant_id
            and self.apple_pay_merchant_cert_path
            and self.apple_pay_merchant_key_path
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
