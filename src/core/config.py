"""Configuration management for taskdeck."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    sqlite_db_path: str = Field(default="./data/taskdeck.db", description="Path to the SQLite database file")

    # Authentication Configuration
    secret_key: str = Field(default="change-me-in-production", description="Secret used to sign access tokens")
    access_token_max_age_seconds: int = Field(
        default=60 * 60 * 24 * 30, description="Lifetime of an issued access token (in seconds)"
    )

    # Time bucketing for analytics and daily stats
    timezone: str = Field(default="UTC", description="IANA timezone used for day/week/month buckets")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    log_level: str = Field(default="INFO", description="Root logging level")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # File Storage Configuration
    storage_base_url: str | None = Field(
        default=None, description="Remote file storage base URL (local disk storage is used when unset)"
    )
    storage_api_key: str | None = Field(default=None, description="Remote file storage API key")
    upload_dir: str = Field(default="./uploads", description="Local directory for uploaded files")

    environment: str = Field(default="development", description="Deployment environment name")

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30
    API_PREFIX: str = "/api"

    # Rate Limiting
    MAX_NOTIFICATIONS_CREATED_PER_HOUR: int = 10
    NOTIFICATION_RATE_LIMIT_WINDOW_SECONDS: int = 3600
    MAX_ANALYTICS_REQUESTS_PER_WINDOW: int = 100
    ANALYTICS_RATE_LIMIT_WINDOW_SECONDS: int = 900  # 15 minutes

    # Cache TTLs
    CACHE_TTL_ANALYTICS_SECONDS: int = 300  # 5 minutes

    # Pagination Defaults
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    DEFAULT_UPCOMING_LIMIT: int = 5
    MAX_UPCOMING_LIMIT: int = 50

    # Notification Limits
    MAX_NOTIFICATIONS_PER_USER: int = 100
    MAX_PENDING_NOTIFICATIONS_PER_USER: int = 20
    MAX_BULK_DELETE_IDS: int = 50
    REMINDER_LEAD_TIME_HOURS: int = 1

    # Analytics Configuration
    ANALYTICS_CHUNK_SIZE: int = 500  # Page size for batch fetching analytics data
    DEFAULT_ANALYTICS_PERIOD_DAYS: int = 30
    MAX_ANALYTICS_PERIOD_DAYS: int = 365
    MAX_CUSTOM_RANGE_DAYS: int = 365
    WEEKLY_TREND_BUCKETS: int = 8
    MONTHLY_PRODUCTIVITY_BUCKETS: int = 6
    RECENT_ACTIVITY_DAYS: int = 7
    RECENT_ACTIVITY_LIMIT: int = 10
    CATEGORY_GROWTH_BUCKETS: int = 30
    PRODUCTIVE_CATEGORY_MIN_TASKS: int = 3
    PRODUCTIVE_CATEGORY_LIMIT: int = 5

    # Uploads
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_UPLOAD_CONTENT_TYPES: frozenset[str] = frozenset(
        {
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/gif",
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "text/plain",
            "text/csv",
        }
    )

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10  # Maximum connections in Redis connection pool
    REDIS_RETRY_ATTEMPTS: int = 3
    REDIS_RETRY_BASE_DELAY_SECONDS: float = 0.1
    CACHE_NAMESPACE: str = "taskdeck"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
