"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment reads for shadowc happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Environment variables use the SHADOWC_ prefix (SHADOWC_SERVERS,
SHADOWC_POOL, ...) and may also come from a .env file in the working
directory. Command-line flags in main.py take precedence over settings.

Layer rule: core/ does not import from state/ or main.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger("shadowc.config")


class Settings(BaseSettings):
    """shadowc settings. Every field has a default so Settings() works in tests."""

    model_config = SettingsConfigDict(
        env_prefix="SHADOWC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Upstream
    # ------------------------------------------------------------------

    # Comma-separated host[:port] list, in failover order.
    servers: Annotated[list[str], NoDecode] = []
    pool: str = ""
    cert_path: str = "/etc/shadowc/cert.pem"
    # None leaves the timeout to the transport.
    request_timeout: Optional[float] = None

    # ------------------------------------------------------------------
    # Local files and tools
    # ------------------------------------------------------------------

    shadow_path: str = "/etc/shadow"
    passwd_path: str = "/etc/passwd"
    useradd_command: str = "useradd"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("servers", mode="before")
    @classmethod
    def split_servers(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("servers")
    @classmethod
    def reject_urls(cls, value: list[str]) -> list[str]:
        for address in value:
            if "://" in address:
                raise ValueError(f"server address {address!r} must be host[:port], not a URL")
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() after changing the environment.
    """
    return Settings()
