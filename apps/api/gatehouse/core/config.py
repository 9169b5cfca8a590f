"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    LOG_LEVEL: str = "INFO"

    # Database (PostgreSQL in production; SQLite works for local runs and tests)
    DATABASE_URL: str = "sqlite:///./gatehouse.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Authorization policy
    ROLE_APPROVAL_THRESHOLD: int = 8  # Minimum effective level to decide role requests
    HOUSEHOLD_ADMIN_LEVEL: int = 8  # Minimum level to manage another account's household
    MODULE_ADMIN_LEVEL: int = 8  # Minimum level to toggle community modules
    ACCOUNT_APPROVAL_LEVEL: int = 8  # Minimum level to approve/reject pending accounts
    GUEST_DEFAULT_ACCESS_DAYS: int = 30  # Guest expiry when none is supplied

    # Account provisioning service (empty = provision locally)
    PROVISIONING_URL: str = ""
    PROVISIONING_API_KEY: str = ""
    PROVISIONING_TIMEOUT_SECONDS: float = 10.0
    PROVISIONING_MAX_ATTEMPTS: int = 3
    PROVISIONING_RETRY_STATUSES: list[int] = [429, 500, 502, 503, 504]

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60
    RATE_LIMIT_ROLE_REQUESTS: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets


settings = Settings()
