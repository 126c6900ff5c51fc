from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class PolicySettings(BaseModel):
    """Ceiling and fixed window length for one rate-limit tier."""

    max_requests: int
    window_seconds: int

    @field_validator("max_requests", "window_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Rate limit policy values must be at least 1")
        return v


def _default_policies() -> dict[str, PolicySettings]:
    return {
        # Read traffic
        "default": PolicySettings(max_requests=100, window_seconds=3600),
        # Public write submissions
        "strict": PolicySettings(max_requests=5, window_seconds=3600),
        # Admin event update/delete and shop create, keyed by address
        "very_strict": PolicySettings(max_requests=3, window_seconds=3600),
        # Admin event create, keyed by authenticated user id
        "admin": PolicySettings(max_requests=30, window_seconds=3600),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    environment: Literal["development", "production"] = "development"

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./directory.db"
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle: int = 300

    # Redis settings (shared counter store)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Rate limiting settings
    rate_limit_policies: dict[str, PolicySettings] = Field(default_factory=_default_policies)
    rate_limit_in_memory_fallback: bool = True
    rate_limit_require_shared_store: bool = False
    rate_limit_on_unavailable: Literal["allow", "deny"] = "allow"
    rate_limit_unavailable_remaining: int = 999
    rate_limit_cleanup_interval_seconds: int = 300

    # Duplicate detection settings
    duplicate_on_unavailable: Literal["allow", "deny"] = "allow"
    duplicate_lookback_hours: int = 24

    # Spam filter
    honeypot_field: str = "honeypot"

    # Admin credentials
    admin_token: str = ""
    admin_user_id: str = "admin"

    # Browsers allowed to call the API directly
    cors_origins: Annotated[list[str], NoDecode] = []

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        # Comma separated ("https://a.example,https://b.example") or a list
        if v is None:
            return []
        items = v if isinstance(v, list) else str(v).split(",")
        return [str(item).strip() for item in items if str(item).strip()]

    # Client address resolution
    trust_forwarded_for: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_policies")
    @classmethod
    def validate_policies_not_empty(
        cls, v: dict[str, PolicySettings]
    ) -> dict[str, PolicySettings]:
        if not v:
            raise ValueError("At least one rate limit policy must be configured")
        return v

    @field_validator("duplicate_lookback_hours")
    @classmethod
    def validate_lookback(cls, v: int) -> int:
        if v < 1:
            raise ValueError("duplicate_lookback_hours must be at least 1")
        return v

    @field_validator("admin_token")
    @classmethod
    def strip_admin_token(cls, v: str) -> str:
        # Secret stores often append a trailing newline
        return v.strip()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
