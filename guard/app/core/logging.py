"""Structured logging configuration for the directory guard.

This module provides a structured logging setup using Python's standard
logging module with JSON formatting for production environments. Log
extras pass through a sanitizing filter so that reporter emails, phone
numbers and credentials never reach the log sink in clear text.
"""

import json
import logging
import logging.config
import re
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from guard.app.core.config import settings


# Attributes every LogRecord carries; anything else arrived through extra=
_RESERVED_ATTRS = frozenset(
    (
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "asctime", "taskName",
    )
)

_PHONE_PATTERN = re.compile(r"(\d{3})\d+(\d{3})")


def mask_email(email: str) -> str:
    """Mask the local part of an email address.

    Examples:
        >>> mask_email("jane@example.com")
        'j***e@example.com'
        >>> mask_email("jo@example.com")
        '***@example.com'
    """
    if not email or "@" not in email:
        return email
    local, domain = email.split("@", 1)
    if len(local) <= 2:
        return f"***@{domain}"
    return f"{local[0]}***{local[-1]}@{domain}"


def mask_phone(phone: str) -> str:
    """Keep the first and last three digits of a phone number."""
    if not phone:
        return phone
    return _PHONE_PATTERN.sub(r"\1****\2", phone)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as JSON objects for consumption by log aggregation
    systems like ELK Stack or Grafana Loki.
    """

    # Contextual fields for request tracking
    CONTEXT_FIELDS = [
        "request_id",    # Request ID from X-Request-ID header
        "client_ip",     # Resolved client network address
        "user_id",       # Authenticated admin identity
        "policy",        # Rate limit tier name
        "action",        # Audit action (report.create, event.delete, ...)
        "path",          # Request path
        "method",        # HTTP method
        "status_code",   # HTTP response status
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                log_data[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in self.CONTEXT_FIELDS
        }
        if extra:
            log_data["extra"] = extra

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds default contextual fields to log records."""

    CONTEXT_DEFAULTS = {field: None for field in JSONFormatter.CONTEXT_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


class SanitizingFilter(logging.Filter):
    """Mask PII and remove secrets from log record extras.

    Runs on every handler, so callers can pass raw payload fields in
    ``extra=`` without worrying about what ends up in the sink.
    """

    EMAIL_FIELDS = ("email", "reporter_email", "submitter_email")
    PHONE_FIELDS = ("phone",)
    SECRET_FIELDS = ("password", "token", "secret", "api_key", "admin_token")

    def filter(self, record: logging.LogRecord) -> bool:
        for field in self.EMAIL_FIELDS:
            value = getattr(record, field, None)
            if isinstance(value, str):
                setattr(record, field, mask_email(value))
        for field in self.PHONE_FIELDS:
            value = getattr(record, field, None)
            if isinstance(value, str):
                setattr(record, field, mask_phone(value))
        for field in self.SECRET_FIELDS:
            if field in record.__dict__:
                delattr(record, field)
        return True


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s - request_id=%(request_id)s - client_ip=%(client_ip)s - policy=%(policy)s"
        },
    }

    if log_format == "json":
        formatters["json"] = {
            "()": "guard.app.core.logging.JSONFormatter",
        }
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context", "sanitize"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context", "sanitize"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {
                "()": "guard.app.core.logging.ContextFilter",
            },
            "sanitize": {
                "()": "guard.app.core.logging.SanitizingFilter",
            },
        },
        "handlers": handlers,
        "loggers": {
            "guard": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str = "guard") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    client_ip: Optional[str] = None,
    user_id: Optional[str] = None,
    policy: Optional[str] = None,
    action: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Create a log context dictionary for use with the extra parameter.

    None values are dropped so the ContextFilter defaults stay in place.

    Example:
        >>> logger.info(
        ...     "Rate limit exceeded",
        ...     extra=get_log_context(client_ip="203.0.113.7", policy="strict"),
        ... )
    """
    context = {
        "request_id": request_id,
        "client_ip": client_ip,
        "user_id": user_id,
        "policy": policy,
        "action": action,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
