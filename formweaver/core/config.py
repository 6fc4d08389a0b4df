"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: major.minor.patch)
    VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite:///./formweaver.db"
    AUTO_CREATE_TABLES: bool = False  # Local dev only; production schema is managed externally

    # Key-value cache (unset or memory:// uses the in-process store)
    REDIS_URL: str = ""

    # Signed tokens
    JWT_SECRET: str = "change-this-in-production"
    ACCESS_TOKEN_TTL_SECONDS: int = 60 * 60  # 1 hour
    REFRESH_TOKEN_TTL_SECONDS: int = 30 * 24 * 60 * 60  # 30 days

    # One-time tokens
    VERIFY_TOKEN_TTL_SECONDS: int = 24 * 60 * 60
    RESET_TOKEN_TTL_SECONDS: int = 60 * 60

    # Published form read cache
    FORM_CACHE_TTL_SECONDS: int = 600

    # Public submission limiter (fixed window, per client IP)
    SUBMISSION_RATE_LIMIT_MAX: int = 10
    SUBMISSION_RATE_LIMIT_WINDOW_SECONDS: int = 10 * 60

    # Header injected by the edge proxy with the connecting client IP
    CLIENT_IP_HEADER: str = "CF-Connecting-IP"

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 20  # Signup/login/reset attempts

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_dev(self) -> bool:
        """Raw error messages are exposed only in development."""
        return self.ENV.lower() in ("dev", "development")


settings = Settings()


def get_settings() -> Settings:
    """Settings dependency (overridable in tests)."""
    return settings
