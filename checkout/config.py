from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration driven by environment variables."""

    environment: str = "development"
    cors_allowed_origins: str | None = None
    rate_limit_per_minute: int = 60
    log_level: str = "INFO"
    checkoutchamp_base_url: str = "https://api.checkoutchamp.com"
    checkoutchamp_login_id: str = ""
    checkoutchamp_password: str = ""
    checkoutchamp_campaign_id: str = ""
    upstream_timeout_seconds: float = 20.0
    google_maps_api_key: str | None = None
    google_maps_map_id: str | None = None
    static_dir: str = "public"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="APP_", case_sensitive=False, extra="ignore")

    @field_validator("rate_limit_per_minute")
    @classmethod
    def validate_rate_limit(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("rate_limit_per_minute must be greater than zero")
        return value

    @field_validator("upstream_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("upstream_timeout_seconds must be greater than zero")
        return value

    @property
    def allowed_origins(self) -> List[str]:
        if not self.cors_allowed_origins:
            return []
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @property
    def maps_enabled(self) -> bool:
        return bool(self.google_maps_api_key)

    @property
    def upstream_credentials(self) -> dict[str, str]:
        return {
            "loginId": self.checkoutchamp_login_id,
            "password": self.checkoutchamp_password,
            "campaignId": self.checkoutchamp_campaign_id,
        }


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
