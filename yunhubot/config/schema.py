"""Configuration schema for yunhubot."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


DEFAULT_HOME = Path.home() / ".yunhubot"
DEFAULT_ENDPOINT = "https://chat-go.jwzhd.com"
DEFAULT_WEBHOOK_PATH = "/yunhu"
API_PATH = "/open-apis/v1"
CURRENT_SCHEMA_VERSION = 1


class YunhuConfig(BaseModel):
    """Yunhu bot configuration."""

    token: str = ""
    bot_id: str = ""  # Reported as self id on sessions
    endpoint: str = DEFAULT_ENDPOINT
    path: str = DEFAULT_WEBHOOK_PATH


class GatewayConfig(BaseModel):
    """Webhook server configuration."""

    host: str = "0.0.0.0"
    port: int = 18790


class MediaConfig(BaseModel):
    """Media upload configuration."""

    image_ceiling: int = 10 * 1024 * 1024  # Platform upload limit for images
    fetch_timeout: float = 30.0
    request_timeout: float = 60.0


class Config(BaseSettings):
    """Root configuration for yunhubot."""

    model_config = {"env_prefix": "YUNHUBOT_", "env_nested_delimiter": "__"}

    schema_version: int = CURRENT_SCHEMA_VERSION
    yunhu: YunhuConfig = Field(default_factory=YunhuConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)

    @property
    def api_base(self) -> str:
        """Base URL for the bot open API."""
        return f"{self.yunhu.endpoint.rstrip('/')}{API_PATH}"
