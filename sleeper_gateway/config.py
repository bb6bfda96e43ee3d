"""
Configuration constants and shared utilities for the Sleeper Gateway.

Module-level values are resolved once from the ConfigManager, with hardcoded
fallbacks so the package still imports when the configuration is unusable.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config_manager import get_config_manager

logger = logging.getLogger(__name__)


def _get_timeout_config() -> httpx.Timeout:
    """Get upstream timeout configuration from ConfigManager."""
    try:
        return get_config_manager().get_http_timeout()
    except (ValueError, RuntimeError) as e:
        logger.warning(f"Falling back to default timeout: {e}")
        return httpx.Timeout(10.0, connect=5.0)


def _get_long_timeout_config() -> httpx.Timeout:
    """Get long timeout configuration from ConfigManager."""
    try:
        return get_config_manager().get_long_http_timeout()
    except (ValueError, RuntimeError) as e:
        logger.warning(f"Falling back to default long timeout: {e}")
        return httpx.Timeout(60.0, connect=15.0)


DEFAULT_TIMEOUT = _get_timeout_config()
LONG_TIMEOUT = _get_long_timeout_config()


def _get_server_version() -> str:
    try:
        return get_config_manager().config.server.version
    except (ValueError, RuntimeError):
        return "1.0.0"


def _get_service_name() -> str:
    try:
        return get_config_manager().config.server.service_name
    except (ValueError, RuntimeError):
        return "sleeper-client"


def _get_user_agent() -> str:
    try:
        return get_config_manager().get_user_agent()
    except (ValueError, RuntimeError):
        return f"sleeper-gateway/{_get_server_version()}"


def _get_base_url() -> str:
    try:
        return get_config_manager().config.upstream.base_url.rstrip("/")
    except (ValueError, RuntimeError):
        return "https://api.sleeper.app/v1"


def _get_execute_deadline() -> float:
    try:
        return get_config_manager().config.server.execute_deadline_seconds
    except (ValueError, RuntimeError):
        return 25.0


def _get_cache_settings() -> Dict[str, Any]:
    try:
        cache = get_config_manager().config.cache
        return {
            "players_ttl_seconds": cache.players_ttl_seconds,
            "key_version": cache.key_version,
            "sqlite_path": cache.sqlite_path,
        }
    except (ValueError, RuntimeError):
        return {
            "players_ttl_seconds": 24 * 60 * 60,
            "key_version": "v1",
            "sqlite_path": "sleeper_cache.db",
        }


def _get_limits() -> Dict[str, int]:
    """Get clamping limits from ConfigManager."""
    try:
        return get_config_manager().get_limits_dict()
    except (ValueError, RuntimeError):
        return {
            "free_agents_min": 1,
            "free_agents_max": 100,
            "free_agents_default": 25,
            "search_min": 1,
            "search_max": 25,
            "search_default": 10,
            "transactions_min": 1,
            "transactions_max": 100,
            "transactions_default": 25,
        }


SERVER_VERSION = _get_server_version()
SERVICE_NAME = _get_service_name()
USER_AGENT = _get_user_agent()
SLEEPER_BASE_URL = _get_base_url()
EXECUTE_DEADLINE_SECONDS = _get_execute_deadline()
CACHE_SETTINGS = _get_cache_settings()
LIMITS = _get_limits()


def get_http_headers(auth_header: Optional[str] = None) -> Dict[str, str]:
    """
    Get standard upstream request headers.

    Args:
        auth_header: Optional credential header value supplied by the caller.
            Sleeper's public API does not need one; it is forwarded unchanged
            when present.

    Returns:
        Dictionary with Accept and User-Agent (and Authorization if given)
    """
    headers = {
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    if auth_header:
        headers["Authorization"] = auth_header
    return headers


def create_http_client(timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
    """
    Create a configured HTTP client with standard settings.

    Args:
        timeout: Optional custom timeout, uses DEFAULT_TIMEOUT if not provided

    Returns:
        Configured httpx.AsyncClient
    """
    return httpx.AsyncClient(
        timeout=timeout or DEFAULT_TIMEOUT,
        follow_redirects=True
    )
