"""Unit tests for configuration module."""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, get_settings

REQUIRED = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SECRET_KEY": "test-secret-key",
    "SUPABASE_SIGNING_KEY_JWK": '{"kty":"EC"}',
}


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        """Test that Settings loads values from environment variables."""
        env_vars = {
            **REQUIRED,
            "APP_NAME": "test-app",
            "APP_ENV": "testing",
            "DEBUG": "true",
            "HOST": "127.0.0.1",
            "PORT": "9000",
            "VAT_RATE": "0.05",
            "FREE_SHIPPING_THRESHOLD": "75",
            "PAYPAL_ENVIRONMENT": "live",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings()

            assert settings.app_name == "test-app"
            assert settings.app_env == "testing"
            assert settings.debug is True
            assert settings.host == "127.0.0.1"
            assert settings.port == 9000
            assert settings.supabase_url == "https://test.supabase.co"
            assert settings.vat_rate == Decimal("0.05")
            assert settings.free_shipping_threshold == Decimal("75")
            assert settings.paypal_api_base == "https://api-m.paypal.com"

    def test_settings_cors_origins_list(self) -> None:
        """Test that CORS origins are correctly parsed into a list."""
        env_vars = {
            **REQUIRED,
            "CORS_ORIGINS": "http://localhost:3000, http://example.com , http://test.com",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            origins = Settings().cors_origins_list

            assert origins == ["http://localhost:3000", "http://example.com", "http://test.com"]

    def test_settings_admin_emails_list(self) -> None:
        """Test that admin alert recipients are parsed into a list."""
        env_vars = {**REQUIRED, "ADMIN_NOTIFICATION_EMAILS": "a@ashhadu.co.uk,, b@ashhadu.co.uk "}

        with patch.dict(os.environ, env_vars, clear=True):
            assert Settings().admin_emails_list == ["a@ashhadu.co.uk", "b@ashhadu.co.uk"]

    def test_settings_is_production_property(self) -> None:
        """Test the is_production property."""
        with patch.dict(os.environ, {**REQUIRED, "APP_ENV": "production"}, clear=True):
            assert Settings().is_production is True

        with patch.dict(os.environ, {**REQUIRED, "APP_ENV": "development"}, clear=True):
            assert Settings().is_production is False

    def test_provider_configuration_flags(self) -> None:
        """Test that provider flags follow the presence of credentials."""
        env_vars = {
            **REQUIRED,
            "STRIPE_SECRET_KEY": "sk_test_123",
            "PAYPAL_CLIENT_ID": "client",
            "APPLE_PAY_MERCHANT_ID": "merchant.uk.co.ashhadu",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings()

            assert settings.is_stripe_test_mode is True
            assert settings.is_paypal_configured is False
            assert settings.is_apple_pay_configured is False

    def test_settings_default_values(self) -> None:
        """Test that default values are applied correctly."""
        with patch.dict(os.environ, REQUIRED, clear=True):
            settings = Settings()

            assert settings.app_name == "ashhadu-backend"
            assert settings.app_env == "development"
            assert settings.debug is False
            assert settings.port == 8080
            assert settings.currency == "GBP"
            assert settings.vat_rate == Decimal("0.20")
            assert settings.free_shipping_threshold == Decimal("100.00")
            assert settings.standard_shipping_fee == Decimal("8.99")
            assert settings.order_number_prefix == "ASH"
            assert settings.paypal_api_base == "https://api-m.sandbox.paypal.com"
            assert settings.checkout_reconcile_interval_seconds == 300

    def test_settings_validation_error_missing_required(self) -> None:
        """Test that validation errors are raised for missing required fields."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            error_fields = [e["loc"][0] for e in exc_info.value.errors()]
            assert "supabase_url" in error_fields
            assert "supabase_secret_key" in error_fields


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """Test that get_settings returns a Settings instance."""
        get_settings.cache_clear()

        assert isinstance(get_settings(), Settings)

        get_settings.cache_clear()

    def test_get_settings_returns_cached_singleton(self) -> None:
        """Test that get_settings returns the same cached instance."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()

        get_settings.cache_clear()

    def test_get_settings_cache_can_be_cleared(self) -> None:
        """Test that cache can be cleared to reload settings."""
        get_settings.cache_clear()

        settings1 = get_settings()
        get_settings.cache_clear()
        settings2 = get_settings()

        assert settings1 is not settings2

        get_settings.cache_clear()
