"""
Execute boundary: one ``{tool, params}`` request in, one envelope out.

``execute`` validates the request, picks the sport registry and the tool,
runs the handler under a deadline and logs the call. It never raises; every
failure is returned as a ``{"success": False, "error", "code"}`` envelope.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .config import EXECUTE_DEADLINE_SECONDS, SERVICE_NAME
from .errors import ErrorCode, create_error_response, create_exception_response, error_message
from .logging_config import log_with_context
from .metrics import get_metrics_collector
from .models import GatewayEnv, ToolRequest
from .sport_tools import tool_deadline
from .tool_registry import get_sport_tools
from .tracing import TraceContext

logger = logging.getLogger(__name__)


def _describe_validation_error(error: ValidationError) -> str:
    fields = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        fields.append(f"{location} ({item.get('msg', 'invalid')})" if location else item.get("msg", "invalid"))
    return "Invalid or missing parameters: " + ", ".join(fields)


def parse_request(body: Any) -> ToolRequest:
    """
    Validate a raw request body.

    Raises:
        ValidationError: when ``tool``, ``params`` or ``params.sport`` is
            missing or a field has the wrong type
    """
    return ToolRequest.model_validate(body if isinstance(body, dict) else {})


async def execute(
    body: Any,
    env: GatewayEnv,
    trace: TraceContext,
    deadline_seconds: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Dispatch a single tool call.

    Args:
        body: decoded JSON request body (``{"tool": ..., "params": {...}}``)
        env: host collaborators (durable player cache, optional auth header)
        trace: correlation and evaluation ids for this request
        deadline_seconds: overall handler deadline, defaults to the configured value

    Returns:
        The tool's envelope
    """
    started = time.monotonic()
    metrics = get_metrics_collector()
    base_context = {
        "service": SERVICE_NAME,
        "correlation_id": trace.correlation_id,
        "run_id": trace.eval_run_id,
        "trace_id": trace.eval_trace_id,
    }

    try:
        request = parse_request(body)
    except ValidationError as e:
        result = create_error_response(_describe_validation_error(e), ErrorCode.MISSING_PARAM)
        _log_end(base_context, None, None, None, result, started)
        return result

    tool = request.tool
    params = request.params
    context = dict(base_context, tool=tool, sport=params.sport, league_id=params.league_id)

    log_with_context(
        logger, "info",
        f"{tool} {params.sport} league={params.league_id} season={params.season_year}",
        phase="execute_start", **context,
    )

    registry = get_sport_tools(params.sport)
    if registry is None:
        result = create_error_response(
            f'Sport "{params.sport}" is not supported for Sleeper', ErrorCode.SPORT_NOT_SUPPORTED
        )
        _log_end(base_context, tool, params.sport, params.league_id, result, started)
        return result

    handler = registry.get_handler(tool)
    if handler is None:
        result = create_error_response(f"Unknown {params.sport} tool: {tool}", ErrorCode.UNKNOWN_TOOL)
        _log_end(base_context, tool, params.sport, params.league_id, result, started)
        return result

    deadline = deadline_seconds if deadline_seconds is not None else EXECUTE_DEADLINE_SECONDS
    try:
        with tool_deadline(deadline):
            result = await asyncio.wait_for(handler(env, params), timeout=deadline)
    except asyncio.TimeoutError:
        result = create_error_response(f"Tool {tool} exceeded {deadline:g}s deadline", ErrorCode.SLEEPER_TIMEOUT)
    except Exception as e:
        duration_ms = _elapsed_ms(started)
        log_with_context(
            logger, "error", "execute failed",
            phase="execute_error", status="error", error=error_message(e),
            duration_ms=duration_ms, **context,
        )
        metrics.increment_counter("tool_executions_total", tool=tool, sport=params.sport, status="error")
        metrics.record_timing("tool_execution_duration", duration_ms, tool=tool, sport=params.sport)
        return create_exception_response(e)

    _log_end(base_context, tool, params.sport, params.league_id, result, started)
    return result


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _log_end(
    base_context: Dict[str, Any],
    tool: Optional[str],
    sport: Optional[str],
    league_id: Optional[str],
    result: Dict[str, Any],
    started: float,
) -> None:
    duration_ms = _elapsed_ms(started)
    success = bool(result.get("success"))
    log_with_context(
        logger, "info",
        f"{tool} {sport} completed success={str(success).lower()}",
        phase="execute_end", tool=tool, sport=sport, league_id=league_id,
        duration_ms=duration_ms, status=str(success).lower(), code=result.get("code"),
        **base_context,
    )

    metrics = get_metrics_collector()
    labels = {"tool": tool or "unknown", "sport": sport or "unknown"}
    metrics.increment_counter(
        "tool_executions_total", status="success" if success else "failure", **labels
    )
    metrics.record_timing("tool_execution_duration", duration_ms, **labels)
