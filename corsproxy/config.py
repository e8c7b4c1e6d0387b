from __future__ import annotations

import logging
import os
import sys

import httpx
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger(__name__)

DEFAULT_UPSTREAM_URL = "https://2026.everythingopen.au/schedule/conference.json"


def _env(primary: str, *fallbacks: str, default: str = "") -> str:
    """Read env var with fallback aliases."""
    val = os.getenv(primary)
    if val is not None:
        return val
    for fb in fallbacks:
        val = os.getenv(fb)
        if val is not None:
            return val
    return default


def _flag(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "yes")


class Settings:
    # --- Server ---
    HOST: str = os.getenv("CORSPROXY_HOST", "0.0.0.0")
    PORT: int = int(_env("CORSPROXY_PORT", "PORT", default="8787"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # --- Upstream ---
    UPSTREAM_URL: str = os.getenv("UPSTREAM_URL", DEFAULT_UPSTREAM_URL)
    USER_AGENT: str = os.getenv("USER_AGENT", "eo-local-test-proxy")
    UPSTREAM_TIMEOUT: float = float(os.getenv("UPSTREAM_TIMEOUT", "10"))

    # --- Cache ---
    RESOURCE_PATH: str = os.getenv("RESOURCE_PATH", "/conference.json")
    CACHE_TTL: float = float(_env("CACHE_TTL", "CACHE_TTL_SECONDS", default="300"))
    WARM_ON_START: bool = _flag("WARM_ON_START")

    @classmethod
    def validate(cls) -> None:
        """Log warnings for odd settings; exit if the upstream is unusable."""
        if not cls.UPSTREAM_URL:
            log.error("UPSTREAM_URL is empty: nothing to proxy")
            sys.exit(1)
        try:
            httpx.URL(cls.UPSTREAM_URL)
        except httpx.InvalidURL as e:
            log.error("UPSTREAM_URL %r is malformed: %s", cls.UPSTREAM_URL, e)
            sys.exit(1)
        if not cls.UPSTREAM_URL.startswith(("http://", "https://")):
            log.warning("UPSTREAM_URL %r is not an http(s) URL", cls.UPSTREAM_URL)
        if not cls.RESOURCE_PATH.startswith("/"):
            log.warning("RESOURCE_PATH %r should start with '/'", cls.RESOURCE_PATH)
        if cls.CACHE_TTL <= 0:
            log.warning("CACHE_TTL=%s: every request will hit upstream", cls.CACHE_TTL)
        if cls.UPSTREAM_TIMEOUT <= 0:
            log.warning(
                "UPSTREAM_TIMEOUT=%s: upstream calls will fail immediately",
                cls.UPSTREAM_TIMEOUT,
            )


settings = Settings()
