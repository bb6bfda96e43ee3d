"""
Upstream client for the Sleeper public REST API.

Every call gets its own httpx client and a hard deadline. Failures are raised
as GatewayError with a SLEEPER_* code; nothing here retries, callers decide.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from .config import DEFAULT_TIMEOUT, SLEEPER_BASE_URL, create_http_client, get_http_headers
from .errors import ErrorCode, GatewayError

logger = logging.getLogger(__name__)

_SPORT_TO_SLEEPER = {
    "football": "nfl",
    "basketball": "nba",
}
_SLEEPER_TO_SPORT = {v: k for k, v in _SPORT_TO_SLEEPER.items()}


def sleeper_sport_to_canonical(sport: str) -> str:
    """Map a Sleeper sport string ("nfl") to the canonical one ("football")."""
    return _SLEEPER_TO_SPORT.get(sport, sport)


def canonical_sport_to_sleeper(sport: str) -> str:
    """Map a canonical sport ("basketball") to Sleeper's ("nba")."""
    return _SPORT_TO_SLEEPER.get(sport, sport)


def _timeout_seconds(timeout: Optional[httpx.Timeout]) -> float:
    t = timeout or DEFAULT_TIMEOUT
    # httpx.Timeout exposes per-phase values; the read phase bounds the call
    return t.read if t.read is not None else 10.0


async def sleeper_fetch(
    path: str,
    timeout: Optional[httpx.Timeout] = None,
    auth_header: Optional[str] = None,
) -> httpx.Response:
    """
    Issue a GET against the Sleeper API.

    Args:
        path: API path starting with "/", e.g. "/league/123/rosters"
        timeout: Optional timeout; the total is also enforced as a hard
            deadline by cancelling the request
        auth_header: Optional credential header forwarded upstream

    Returns:
        The raw httpx.Response, whatever its status

    Raises:
        GatewayError: SLEEPER_TIMEOUT when the deadline passes,
            SLEEPER_API_ERROR on connection failures
    """
    url = f"{SLEEPER_BASE_URL}{path}"
    deadline = _timeout_seconds(timeout)
    logger.debug(f"Fetching: {path}")

    try:
        async with create_http_client(timeout=timeout) as client:
            return await asyncio.wait_for(
                client.get(url, headers=get_http_headers(auth_header)),
                timeout=deadline,
            )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        raise GatewayError(ErrorCode.SLEEPER_TIMEOUT, "Request timed out")
    except httpx.TransportError as e:
        raise GatewayError(ErrorCode.SLEEPER_API_ERROR, f"Network error contacting Sleeper: {e}")


def raise_for_sleeper_status(response: httpx.Response) -> None:
    """
    Map a non-2xx Sleeper response onto the error taxonomy.

    Raises:
        GatewayError: always, for non-success responses
    """
    if response.is_success:
        return

    status = response.status_code
    if status == 404:
        raise GatewayError(ErrorCode.SLEEPER_NOT_FOUND, "League or resource not found", status)
    if status == 429:
        raise GatewayError(ErrorCode.SLEEPER_RATE_LIMIT, "Too many requests. Please wait.", status)
    if status == 400:
        raise GatewayError(ErrorCode.SLEEPER_BAD_REQUEST, "Invalid request", status)
    raise GatewayError(ErrorCode.SLEEPER_API_ERROR, f"Sleeper returned {status}", status)


def parse_json(response: httpx.Response) -> Any:
    """Decode a response body, mapping malformed JSON to SLEEPER_API_ERROR."""
    try:
        return response.json()
    except ValueError as e:
        raise GatewayError(ErrorCode.SLEEPER_API_ERROR, f"Invalid JSON from Sleeper: {e}")


async def fetch_sleeper_json(
    path: str,
    timeout: Optional[httpx.Timeout] = None,
    auth_header: Optional[str] = None,
) -> Any:
    """Fetch a path, raise on error status and return the decoded body."""
    response = await sleeper_fetch(path, timeout=timeout, auth_header=auth_header)
    raise_for_sleeper_status(response)
    return parse_json(response)
