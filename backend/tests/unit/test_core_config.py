"""Tests for application configuration.

Covers defaults, derived values, timing bounds, and production security
validation.
"""

import pytest
from pydantic import SecretStr, ValidationError

from profilelink.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_TEST_API_KEY = "k" * 32
_PRODUCTION = "production"


class TestDefaults:
    """Tests for default and derived values."""

    def test_database_url_uses_asyncpg(self):
        s = Settings(
            database_user="u",
            database_password="p",
            database_host="db",
            database_port=5433,
            database_name="n",
        )
        assert s.database_url == "postgresql+asyncpg://u:p@db:5433/n"

    def test_roblox_session_none_when_cookie_empty(self):
        s = Settings(roblox_session_cookie=SecretStr(""))
        assert s.roblox_session is None

    def test_roblox_session_returns_cookie_value(self):
        s = Settings(roblox_session_cookie=SecretStr("cookie"))
        assert s.roblox_session == "cookie"

    def test_secrets_not_in_repr(self):
        """Bot token and session cookie never appear in repr."""
        s = Settings(
            discord_bot_token=SecretStr("bot-secret"),
            roblox_session_cookie=SecretStr("cookie-secret"),
        )
        assert "bot-secret" not in repr(s)
        assert "cookie-secret" not in repr(s)


class TestTimingValidation:
    """Tests for HTTP timeout and scan deadline bounds."""

    @pytest.mark.parametrize("timeout", [5.0, 8.0, 10.0])
    def test_allows_timeout_in_range(self, timeout):
        s = Settings(http_timeout_seconds=timeout)
        assert s.http_timeout_seconds == timeout

    @pytest.mark.parametrize("timeout", [0.5, 4.9, 10.1, 30.0])
    def test_rejects_timeout_out_of_range(self, timeout):
        with pytest.raises(ValidationError) as exc_info:
            Settings(http_timeout_seconds=timeout)
        assert "HTTP_TIMEOUT_SECONDS must be between 5 and 10" in str(exc_info.value)

    def test_rejects_deadline_shorter_than_timeout(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(http_timeout_seconds=8.0, scan_deadline_seconds=5.0)
        assert "SCAN_DEADLINE_SECONDS" in str(exc_info.value)

    def test_rejects_unknown_store_backend(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(store_backend="redis")
        assert "STORE_BACKEND must be one of" in str(exc_info.value)

    def test_allows_memory_store_backend(self):
        assert Settings(store_backend="memory").store_backend == "memory"


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self):
        """Default password is allowed in development environment."""
        s = Settings(
            environment="development",
            database_password=_INSECURE_DEFAULT_PASSWORD,
        )
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self):
        """Default password is rejected in production environment."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_INSECURE_DEFAULT_PASSWORD,
                api_key=SecretStr(_TEST_API_KEY),
            )

        errors = exc_info.value.errors()
        assert len(errors) == 1
        assert "Cannot use default database password in production" in str(
            errors[0]["msg"]
        )

    def test_rejects_missing_api_key_in_production(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_SECURE_DB_PASSWORD,
                api_key=SecretStr(""),
            )
        assert "API_KEY must be set in production" in str(exc_info.value)

    def test_allows_secure_production_settings(self):
        s = Settings(
            environment=_PRODUCTION,
            database_password=_SECURE_DB_PASSWORD,
            api_key=SecretStr(_TEST_API_KEY),
        )
        assert s.environment == _PRODUCTION
