from datetime import tzinfo
from functools import lru_cache
from typing import List
from zoneinfo import ZoneInfo

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Salon Agenda Booking Engine")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
        ]
    )
    store_base_url: AnyHttpUrl | None = Field(
        default=None
    )
    store_api_key: str | None = Field(
        default=None
    )
    store_timeout: float = Field(
        default=10.0
    )
    use_mock_data: bool = Field(
        default=True
    )
    timezone: str = Field(
        default="America/Sao_Paulo"
    )
    default_slot_granularity_minutes: int = Field(
        default=30, gt=0
    )
    notifications_enabled: bool = Field(
        default=True
    )

    model_config = SettingsConfigDict(env_prefix="SALON_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("timezone")
    def _check_timezone(cls, value: str) -> str:
        ZoneInfo(value)
        return value

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
