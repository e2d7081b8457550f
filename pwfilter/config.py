"""
Edge filter configuration.

Two layers:
  - Settings: process-wide tunables (timeouts, cache TTLs, logging), from
    environment variables prefixed PW_FILTER_.
  - ServiceConfig: per-host connection details for the paywalls.net cloud API
    (host, key, publisher id, VAI prefix). Each CDN adapter builds one from
    whatever config surface its runtime exposes.
"""

import platform
from functools import lru_cache

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

SDK_VERSION = "1.2.0"
DEFAULT_API_HOST = "https://cloud-api.paywalls.net"
DEFAULT_VAI_PATH = "/pw"


class Settings(BaseSettings):
    # --- Remote service ---
    default_api_host: str = DEFAULT_API_HOST
    default_vai_path: str = DEFAULT_VAI_PATH
    request_timeout_seconds: float = 5.0  # metadata + auth + VAI
    log_timeout_seconds: float = 5.0

    # --- Caches ---
    pattern_cache_ttl_seconds: float = 3600.0  # 1 hour
    classification_cache_max_entries: int | None = None  # None = unbounded, cleared on refresh
    strict_patterns: bool = False  # True = one bad pattern fails the whole load

    # --- Bot signals ---
    bot_score_threshold: int = 30

    # --- Logging ---
    debug: bool = False

    model_config = {"env_prefix": "PW_FILTER_", "env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()


class ServiceConfig(BaseModel):
    """Connection details for one publisher's cloud API account."""

    model_config = ConfigDict(frozen=True)

    api_host: str = DEFAULT_API_HOST
    api_key: str | None = None
    publisher_id: str | None = None
    vai_path: str = DEFAULT_VAI_PATH

    @classmethod
    def build(
        cls,
        api_host: str | None,
        api_key: str | None,
        publisher_id: str | None,
        vai_path: str | None,
        settings: Settings | None = None,
    ) -> "ServiceConfig":
        """Fill unset host / VAI prefix from settings, the way every adapter needs."""
        settings = settings or get_settings()
        return cls(
            api_host=(api_host or settings.default_api_host).rstrip("/"),
            api_key=api_key or None,
            publisher_id=publisher_id or None,
            vai_path=(vai_path or settings.default_vai_path).rstrip("/"),
        )


def sdk_user_agent() -> str:
    """User-Agent sent on every outbound call to the cloud API."""
    return (
        f"pw-filter-sdk/{SDK_VERSION} "
        f"({platform.python_implementation()}/{platform.python_version()}; httpx/{httpx.__version__})"
    )
