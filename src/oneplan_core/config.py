"""Application settings loaded from the environment."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the 1Plan API process."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str = "sqlite:///./oneplan.db"
    create_schema: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 4000
    log_level: str = "INFO"

    # API configuration
    api_prefix: str = "/api"
    api_version: str = "v1"

    # CORS (comma-separated list of origins)
    cors_origin: str = "http://localhost:3000"

    # Rate limiting: max requests per window (seconds) per caller
    rate_limit_max: int = Field(100, ge=1)
    rate_limit_window: float = Field(60.0, gt=0)

    # Request body size cap in bytes
    body_limit: int = Field(1_048_576, ge=1)

    # Health check timeout in seconds
    health_check_timeout: float = Field(5.0, gt=0)

    # Idempotency key replay window
    idempotency_ttl_hours: int = Field(24, ge=1)

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    @property
    def api_root(self) -> str:
        """Mount point for versioned routes, e.g. ``/api/v1``."""
        prefix = self.api_prefix.rstrip("/")
        return f"{prefix}/{self.api_version}"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (parsed once)."""
    return Settings()
