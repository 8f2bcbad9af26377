from __future__ import annotations

from typing import List, Optional

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TRACKER_", case_sensitive=False, extra="ignore")
    """Application runtime configuration."""

    app_name: str = "Time Tracker"
    environment: str = "production"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    # Hosted backend connection; both are required before any remote call.
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    entries_table: str = "time_tracker"
    categories_table: str = "categories"
    request_timeout: int = 15

    session_cookie_name: str = "tracker_session"
    cookie_secure: bool = False

    cors_origins: str = "http://127.0.0.1:5173,http://localhost:5173"

    @field_validator("supabase_url", "supabase_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @computed_field
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
