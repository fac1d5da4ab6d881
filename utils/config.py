"""
Environment-driven configuration.

Values are read at call time so that tests can patch os.environ without
reloading modules. A .env file is loaded once by main.py via python-dotenv.
"""

import os
import logging
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PATHS = [
    "/health",
    "/health/**",
    "/actuator/**",
    "/docs",
    "/docs/**",
    "/redoc",
    "/openapi.json",
    "/api/auth/**",
    "/error",
]

_TRUTHY = {"1", "true", "yes", "on"}


def get_excluded_paths() -> List[str]:
    """
    Get the path patterns that bypass tenant resolution.

    Reads TENANT_EXCLUDED_PATHS as a comma-separated list. A pattern ending
    in "/**" matches the prefix and everything below it; any other pattern
    must match the request path exactly.

    Returns:
        List of path patterns
    """
    raw = os.getenv("TENANT_EXCLUDED_PATHS")
    if raw is None:
        return list(DEFAULT_EXCLUDED_PATHS)

    return [p.strip() for p in raw.split(",") if p.strip()]


def is_legacy_header_auth_enabled() -> bool:
    """
    Whether X-Tenant-ID / X-User-ID headers are accepted without a JWT.

    Defaults to true. Set ALLOW_LEGACY_HEADER_AUTH=false to require a bearer
    token.
    """
    return os.getenv("ALLOW_LEGACY_HEADER_AUTH", "true").strip().lower() in _TRUTHY


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}. Using {default}.")
        return default


def get_default_page_size() -> int:
    return _get_int("DEFAULT_PAGE_SIZE", 20)


def get_max_page_size() -> int:
    return _get_int("MAX_PAGE_SIZE", 100)
