"""Central configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REGISTRY_PATH = Path("~/.config/twofa/accounts.json").expanduser()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TWOFA_", env_file=".env", env_file_encoding="utf-8", extra="ignore",
    )

    # Registry
    registry_path: Path = Field(default_factory=lambda: DEFAULT_REGISTRY_PATH)

    # Encryption (base64 of 32 bytes; empty stores secrets unencrypted)
    master_key: str = ""

    # Codes
    default_digits: int = Field(default=6, ge=6, le=8)
    period: int = Field(default=30, gt=0)  # Google Authenticator ignores other periods

    # Logging
    log_level: str = "WARNING"


settings = Settings()
