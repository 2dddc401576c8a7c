"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from product_fetch.fetch.config import TransportConfig


DEFAULT_BASE_URL = "http://localhost:8000/api"


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL, validation_alias="PRODUCT_API_BASE_URL"
    )
    log_level: str = Field(default="INFO", validation_alias="PRODUCT_API_LOG_LEVEL")
    json_logs: bool = Field(default=True, validation_alias="PRODUCT_API_JSON_LOGS")

    def transport_config(self) -> TransportConfig:
        """Build the transport configuration for the configured API."""
        return TransportConfig(base_url=self.base_url)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
