from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


# Salt used when RATE_LIMIT_SALT is not configured. Well-known, so any
# deployment still using it is treated as misconfigured.
PLACEHOLDER_SALT = "change-me"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # Pydantic v2 settings config
    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Ensure environment variables override .env file
        env_ignore_empty=True,
    )

    # Database Configuration - empty means storage is not bound
    DATABASE_URL: str = ""

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Rate limiting - salt for client key hashing
    RATE_LIMIT_SALT: str = ""
    RATE_LIMIT_SALT_REQUIRED: bool = False
    RATE_LIMIT_WINDOW_MS: int = 30_000

    # Messages
    MESSAGE_MAX_CHARS: int = 50
    MESSAGES_LIST_LIMIT: int = 10

    # CORS - "*" for any origin, otherwise a comma-separated allow-list
    CORS_ALLOW_ORIGINS: str = "*"

    @property
    def rate_limit_salt(self) -> str:
        """Configured salt, or the placeholder when unset."""
        return self.RATE_LIMIT_SALT or PLACEHOLDER_SALT

    @property
    def salt_is_placeholder(self) -> bool:
        return self.rate_limit_salt == PLACEHOLDER_SALT

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
