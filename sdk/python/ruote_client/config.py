"""Environment configuration for the ruote-kit client.

Settings are loaded from environment variables prefixed with ``RUOTE_`` and
from a local ``.env`` file, if present:

- RUOTE_URL      (default: http://localhost:8080/_ruote)
- RUOTE_TIMEOUT  (seconds, default: 30)
- RUOTE_API_KEY  (optional)
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Connection settings used by ``Agent.from_settings``."""

    url: str = Field(
        default="http://localhost:8080/_ruote",
        description="Base URL of the ruote-kit server, including its mount path",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )
    api_key: str | None = Field(
        default=None,
        description="Bearer token sent with every request",
    )

    model_config = SettingsConfigDict(
        env_prefix="RUOTE_",
        env_file=".env",
        extra="ignore",
    )
