# Registry/config.py
"""Environment-driven settings for the registry MCP server."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_API_URL = "https://recherche-entreprises.api.gouv.fr"
DEFAULT_CONNECTION_CHECK_DELAY = 5.0


@dataclass(frozen=True)
class Settings:
    registry_api_url: str = DEFAULT_REGISTRY_API_URL
    connection_check_delay: float = DEFAULT_CONNECTION_CHECK_DELAY
    log_level: str = "INFO"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables (and a local .env file)."""
    load_dotenv()

    registry_api_url = os.getenv("REGISTRY_API_URL", DEFAULT_REGISTRY_API_URL).strip().rstrip("/")
    connection_check_delay = _float_env("CONNECTION_CHECK_DELAY", DEFAULT_CONNECTION_CHECK_DELAY)
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    return Settings(
        registry_api_url=registry_api_url or DEFAULT_REGISTRY_API_URL,
        connection_check_delay=connection_check_delay,
        log_level=log_level,
    )
