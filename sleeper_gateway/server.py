#!/usr/bin/env python3
"""
Sleeper Gateway HTTP server.

Exposes two routes to the upstream gateway:

- ``GET /health``: liveness probe
- ``POST /execute``: run one ``{tool, params}`` call and return its envelope

Any other path answers 404 with a directory of the endpoints above.
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .config import CACHE_SETTINGS, SERVER_VERSION, SERVICE_NAME
from .config_manager import get_config_manager
from .dispatcher import execute
from .errors import ErrorCode, create_error_response
from .kv_store import SQLiteKVStore
from .logging_config import log_with_context, setup_logging
from .metrics import get_metrics_collector
from .middleware import RequestLoggingMiddleware
from .models import GatewayEnv
from .players_cache import clear_in_memory_cache
from .tracing import apply_trace_headers, get_trace_context

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "/health": "GET - Health check",
    "/execute": "POST - Execute tool (called by gateway)",
}


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint with a summary of the in-process metrics."""
    return JSONResponse({
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVER_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "metrics": get_metrics_collector().get_metrics(),
    })


async def execute_tool(request: Request) -> JSONResponse:
    env: GatewayEnv = request.app.state.env
    trace = get_trace_context(request.headers)
    started = time.monotonic()

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log_with_context(
            logger, "error", "execute failed",
            phase="execute_error", service=SERVICE_NAME, status="error",
            correlation_id=trace.correlation_id, run_id=trace.eval_run_id, trace_id=trace.eval_trace_id,
            duration_ms=int((time.monotonic() - started) * 1000), error=str(e),
        )
        response = JSONResponse(
            create_error_response(f"Malformed JSON body: {e}", ErrorCode.INTERNAL_ERROR),
            status_code=500,
        )
        apply_trace_headers(response.headers, trace)
        return response

    result = await execute(body, env, trace)
    response = JSONResponse(result)
    apply_trace_headers(response.headers, trace)
    return response


async def not_found(request: Request, exc: Exception) -> JSONResponse:
    # Also serves wrong-method calls such as GET /execute
    return JSONResponse({"error": "Endpoint not found", "endpoints": ENDPOINTS}, status_code=404)


def create_lifespan(env: GatewayEnv):
    """Lifespan that releases the durable cache binding on shutdown."""
    @asynccontextmanager
    async def app_lifespan(app):
        logger.info(f"{SERVICE_NAME} {SERVER_VERSION} starting")
        yield
        close = getattr(env.players_cache, "close", None)
        if close is not None:
            await close()
        clear_in_memory_cache()
        logger.info(f"{SERVICE_NAME} stopped")

    return app_lifespan


def create_app(env: Optional[GatewayEnv] = None) -> Starlette:
    """
    Create and configure the gateway application.

    Args:
        env: host collaborators; defaults to a SQLite-backed player cache at
            the configured path

    Returns:
        Starlette application
    """
    if env is None:
        env = GatewayEnv(players_cache=SQLiteKVStore(CACHE_SETTINGS["sqlite_path"]))

    app = Starlette(
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Route("/execute", execute_tool, methods=["POST"]),
        ],
        middleware=[
            Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]),
            Middleware(RequestLoggingMiddleware, exclude_paths=["/health"]),
        ],
        exception_handlers={404: not_found, 405: not_found},
        lifespan=create_lifespan(env),
    )
    app.state.env = env
    return app


def main():
    """Main entry point for the server."""
    server_config = get_config_manager().config.server
    setup_logging(log_level=server_config.log_level, service_name=SERVICE_NAME, version=SERVER_VERSION)

    app = create_app()

    import uvicorn
    uvicorn.run(app, host=server_config.host, port=server_config.port, log_config=None)


if __name__ == "__main__":
    main()
