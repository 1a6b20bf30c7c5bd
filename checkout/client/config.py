from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings of the checkout form controller."""

    backend_url: str = "http://localhost:8000"
    ip_lookup_url: str = "https://api.ipify.org?format=json"
    lead_debounce_seconds: float = 0.5
    lead_storage_key: str = "partialLeadId"
    thank_you_path: str = "/thankyou.html"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="APP_CLIENT_", case_sensitive=False, extra="ignore")

    @field_validator("lead_debounce_seconds")
    @classmethod
    def validate_debounce(cls, value: float) -> float:
        if value < 0:
            raise ValueError("lead_debounce_seconds must not be negative")
        return value


@lru_cache
def get_client_settings() -> ClientSettings:
    """Return a cached ClientSettings instance."""

    return ClientSettings()
