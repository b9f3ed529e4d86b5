"""
Application Settings

Process-wide configuration loaded from environment variables (or a local
`.env` file). Import the shared `settings` instance rather than building a
new `Settings` object.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the query log replay tool."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # IOx server
    IOX_ADDR: str = Field(
        "http://127.0.0.1:8082", description="gRPC address of the IOx server"
    )
    IOX_CONNECT_TIMEOUT: float = Field(
        10.0, description="Seconds to wait for the gRPC channel to become ready"
    )
    IOX_CONNECT_MAX_RETRIES: int = Field(
        3, ge=1, description="Connection attempts before giving up"
    )
    IOX_CONNECT_RETRY_DELAY: float = Field(
        1.0, ge=0.0, description="Base delay between connection attempts (seconds)"
    )

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FORMAT: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="logging format string",
    )
    LOG_FILE: Optional[str] = Field(None, description="Optional log file path")


settings = Settings()
