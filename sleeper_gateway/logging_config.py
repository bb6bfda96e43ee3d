"""
Structured logging configuration for the Sleeper gateway.

Log lines are single JSON objects so the host's log pipeline can filter on
fields such as ``correlation_id`` or ``phase`` without parsing free text.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SERVICE_NAME = "sleeper-client"
DEFAULT_VERSION = "1.0.0"


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME, version: str = DEFAULT_VERSION):
        super().__init__()
        self.service_name = service_name
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.version,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Fields attached by log_with_context
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_entry.update(context)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        return json.dumps(log_entry, default=str)


class RequestFormatter(logging.Formatter):
    """Specialized formatter for HTTP request/response logging."""

    REQUEST_FIELDS = (
        "method", "path", "status_code", "response_time_ms",
        "user_agent", "client_ip", "correlation_id",
    )

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "type": "http_request",
            "message": record.getMessage(),
        }
        for field in self.REQUEST_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)
        return json.dumps(log_entry, default=str)


def setup_logging(
    log_level: str = "INFO",
    service_name: str = DEFAULT_SERVICE_NAME,
    version: str = DEFAULT_VERSION,
    enable_file_logging: bool = False,
    log_file_path: Optional[str] = None
) -> None:
    """
    Setup structured logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        service_name: Name of the service for log entries
        version: Version of the service
        enable_file_logging: Whether to also write a rotating log file
        log_file_path: Path to log file (defaults to logs/sleeper_gateway.log)
    """
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
                "service_name": service_name,
                "version": version
            },
            "request": {
                "()": RequestFormatter,
                "service_name": service_name
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "structured",
                "stream": sys.stdout
            },
            "requests": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "request",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "sleeper_gateway": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "sleeper_gateway.requests": {
                "level": "INFO",
                "handlers": ["requests"],
                "propagate": False
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }

    if enable_file_logging:
        if log_file_path is None:
            log_file_path = str(Path("logs") / "sleeper_gateway.log")
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "structured",
            "filename": log_file_path,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "encoding": "utf8"
        }
        config["loggers"]["sleeper_gateway"]["handlers"].append("file")
        config["root"]["handlers"].append("file")

    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: str, message: str, **context) -> None:
    """
    Log a message with additional structured fields.

    Context values whose value is None are dropped, so optional ids (an
    absent eval run, say) do not show up as nulls in every line.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields to include in log
    """
    fields = {key: value for key, value in context.items() if value is not None}
    logger.log(getattr(logging, level.upper()), message, extra={"context": fields})
