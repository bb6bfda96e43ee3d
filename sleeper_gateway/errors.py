"""
Error handling utilities for the Sleeper Gateway.

Errors travel as ``"<CODE>: <message>"`` strings: upstream and handler code
raises ``GatewayError``, and the dispatcher boundary turns anything it catches
into the ``{success, error, code}`` envelope using ``extract_error_code``.
"""

import logging
import re
from functools import wraps
from typing import Any, Callable, Dict, Optional


logger = logging.getLogger(__name__)


class ErrorCode:
    """Closed set of error codes returned to callers."""
    SPORT_NOT_SUPPORTED = "SPORT_NOT_SUPPORTED"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    MISSING_PARAM = "MISSING_PARAM"

    SLEEPER_NOT_FOUND = "SLEEPER_NOT_FOUND"
    SLEEPER_RATE_LIMIT = "SLEEPER_RATE_LIMIT"
    SLEEPER_BAD_REQUEST = "SLEEPER_BAD_REQUEST"
    SLEEPER_API_ERROR = "SLEEPER_API_ERROR"
    SLEEPER_TIMEOUT = "SLEEPER_TIMEOUT"

    # Soft warning: attached to successful responses, never a failure code
    PLAYER_ENRICHMENT_UNAVAILABLE = "PLAYER_ENRICHMENT_UNAVAILABLE"

    INTERNAL_ERROR = "INTERNAL_ERROR"


_CODE_PATTERN = re.compile(r"^([A-Z_]+):")


class GatewayError(Exception):
    """Exception whose message follows the ``CODE: message`` convention."""

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        self.code = code
        self.message = message
        self.status = status
        super().__init__(f"{code}: {message}")


def extract_error_code(error: Any) -> str:
    """
    Extract a machine-readable error code from a caught error.

    Args:
        error: Exception (or any value) raised somewhere below the dispatcher

    Returns:
        The ``CODE`` prefix of the error message, or INTERNAL_ERROR when the
        value is not an exception or carries no prefix
    """
    if isinstance(error, BaseException):
        match = _CODE_PATTERN.match(str(error))
        if match:
            return match.group(1)
    return ErrorCode.INTERNAL_ERROR


def error_message(error: Any) -> str:
    """Human-readable message for an error value."""
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    return "Unknown error"


def create_error_response(error_message: str, code: str = ErrorCode.INTERNAL_ERROR) -> Dict[str, Any]:
    """
    Create a failed envelope.

    Args:
        error_message: Human-readable error description
        code: Error code (see ErrorCode constants)

    Returns:
        ``{"success": False, "error": ..., "code": ...}``
    """
    logger.warning(f"Error ({code}): {error_message}")
    return {
        "success": False,
        "error": error_message,
        "code": code,
    }


def create_success_response(data: Any) -> Dict[str, Any]:
    """
    Create a successful envelope.

    Args:
        data: Tool-specific payload

    Returns:
        ``{"success": True, "data": data}``
    """
    return {
        "success": True,
        "data": data,
    }


def create_exception_response(error: Any) -> Dict[str, Any]:
    """Failed envelope for a caught exception."""
    return create_error_response(error_message(error), extract_error_code(error))


def handle_tool_errors(operation_name: str = "tool call") -> Callable:
    """
    Decorator that converts exceptions escaping a tool handler into a failed
    envelope.

    Args:
        operation_name: Name of the operation for log messages

    Returns:
        Decorator function
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Dict[str, Any]:
            try:
                return await func(*args, **kwargs)
            except GatewayError as e:
                logger.info(f"{operation_name} failed: {e}")
                return create_exception_response(e)
            except Exception as e:
                logger.error(f"Unexpected error during {operation_name}: {e}", exc_info=True)
                return create_exception_response(e)

        return wrapper
    return decorator
