"""Gateway settings loaded from the environment."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Settings for the 1Plan MCP gateway process."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    api_base_url: str = "http://localhost:4000/api/v1"
    api_token: Optional[str] = None  # Sent as a bearer token when set
    api_timeout: float = Field(30.0, gt=0)

    mcp_server_name: str = "1plan-gateway"
    mcp_server_version: str = "1.0.0"

    log_level: str = "INFO"


@lru_cache
def get_gateway_settings() -> GatewaySettings:
    return GatewaySettings()
