"""Application settings for the session-and-trust backend."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings

THIRTY_DAYS_SECONDS = 30 * 24 * 3600
NINETY_DAYS_SECONDS = 90 * 24 * 3600


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    sg_app_env: str = "dev"

    sg_jwt_secret: str = Field(min_length=1)
    sg_access_token_expire_seconds: int = Field(default=3600, ge=1)
    sg_refresh_token_expire_seconds: int = Field(default=604800, ge=1)

    sg_sqlite_path: str = "sessionguard.db"

    sg_store_backend: Literal["redis", "memory"] = "redis"
    sg_redis_url: str = "redis://localhost:6379/0"
    sg_store_timeout_seconds: float = Field(default=2.0, gt=0)

    sg_cookie_secure: bool = False
    sg_cookie_domain: str | None = None

    sg_login_max_attempts: int = Field(default=5, ge=1)
    sg_login_lock_seconds: int = Field(default=900, ge=1)
    sg_security_profile_ttl_seconds: int = Field(default=THIRTY_DAYS_SECONDS, ge=1)
    sg_anomaly_record_ttl_seconds: int = Field(default=NINETY_DAYS_SECONDS, ge=1)

    sg_seed_hash_migration_enabled: bool = True
    sg_log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_refresh_lifetime(self) -> "Settings":
        """Ensure refresh tokens outlive the access tokens they renew."""
        if self.sg_refresh_token_expire_seconds <= self.sg_access_token_expire_seconds:
            raise ValueError(
                "SG_REFRESH_TOKEN_EXPIRE_SECONDS must be greater than "
                "SG_ACCESS_TOKEN_EXPIRE_SECONDS"
            )
        return self


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
