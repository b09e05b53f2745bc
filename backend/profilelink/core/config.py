"""Application configuration loaded from environment variables.

Settings for the database, the dispatcher API, the chat platform client,
and the external identity API. Uses pydantic-settings for validation and
.env file support.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "profilelink_dev_password"  # nosec B105

# Bounds for a single outbound HTTP call (seconds)
_MIN_HTTP_TIMEOUT = 5.0
_MAX_HTTP_TIMEOUT = 10.0

_STORE_BACKENDS = ("postgres", "memory")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "profilelink"
    database_user: str = "profilelink_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # "postgres" or "memory" (in-process, data lost on restart)
    store_backend: str = "postgres"

    # Dispatcher authentication
    # Empty key disables the check (local development only)
    api_key: SecretStr = SecretStr("")

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Chat platform (Discord REST v10)
    discord_api_base: str = "https://discord.com/api/v10"
    discord_bot_token: SecretStr = SecretStr("")

    # External identity platform (Roblox)
    roblox_users_api_base: str = "https://users.roblox.com"
    roblox_web_base: str = "https://www.roblox.com"
    roblox_friends_api_base: str = "https://friends.roblox.com"
    # Optional .ROBLOSECURITY cookie; enables the authenticated fetch strategy
    roblox_session_cookie: SecretStr = SecretStr("")

    # Verification timing
    http_timeout_seconds: float = 8.0
    scan_deadline_seconds: float = 45.0

    # Rate Limiting (Security)
    # Each check fans out to several external calls
    # Format: "count/period" (e.g., "5/minute", "100/hour")
    rate_limit_check: str = "6/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def roblox_session(self) -> str | None:
        """Session cookie value, or None when not configured."""
        value = self.roblox_session_cookie.get_secret_value()
        return value or None

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate timing bounds and production security requirements.

        Checks:
        - HTTP timeout stays within 5-10 seconds (all environments)
        - Scan deadline is at least one HTTP timeout (all environments)
        - Store backend is a known one (all environments)
        - Database password must not be the default in production
        - API key must be set in production
        """
        if not _MIN_HTTP_TIMEOUT <= self.http_timeout_seconds <= _MAX_HTTP_TIMEOUT:
            msg = (
                f"HTTP_TIMEOUT_SECONDS must be between {_MIN_HTTP_TIMEOUT:g} and "
                f"{_MAX_HTTP_TIMEOUT:g}. Got: {self.http_timeout_seconds}"
            )
            raise ValueError(msg)

        if self.store_backend not in _STORE_BACKENDS:
            msg = (
                f"STORE_BACKEND must be one of: {', '.join(_STORE_BACKENDS)}. "
                f"Got: {self.store_backend}"
            )
            raise ValueError(msg)

        if self.scan_deadline_seconds < self.http_timeout_seconds:
            msg = (
                "SCAN_DEADLINE_SECONDS must be at least HTTP_TIMEOUT_SECONDS. "
                f"Got: {self.scan_deadline_seconds}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if not self.api_key.get_secret_value():
                msg = "API_KEY must be set in production."
                raise ValueError(msg)

        return self


settings = Settings()
