"""Logging infrastructure for the Sous Chef agent core.

Provides centralized logging with configurable format (text/JSON) and level.
Configured via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)

Request-scoped loggers (see `request_logger`) attach request_id, session_id,
user_id and agent_id to every record so a single request can be traced
through the pipeline in either format.
"""

import json
import logging
import os
import sys
from typing import Any, Optional


# Extra record attributes rendered by both formatters when present
CORRELATION_FIELDS = ("request_id", "session_id", "user_id", "agent_id")


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format.

        Returns:
            JSON string with timestamp, level, logger name, message, correlation
            fields and optional traceback.
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in CORRELATION_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        return json.dumps(log_data, default=str)


class RichTextFormatter(logging.Formatter):
    """Formatter that outputs colored text with emoji icons."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
        "RESET": "\033[0m",
    }

    ICONS = {
        "DEBUG": "🔍",
        "INFO": "ℹ️",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🔥",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as colored text.

        The request id (when bound) is appended in brackets so interleaved
        requests stay readable on a console.

        Args:
            record: Log record to format.

        Returns:
            Formatted string with color codes and emoji icon.
        """
        level = record.levelname
        color = self.COLORS.get(level, self.COLORS["RESET"])
        icon = self.ICONS.get(level, "")
        reset = self.COLORS["RESET"]

        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = f"{color}{icon} {timestamp} {level:<8} {record.name:<20} {record.getMessage()}"

        request_id = getattr(record, "request_id", None)
        if request_id:
            message += f" [{request_id}]"
        message += reset

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


def get_logger(name: str) -> logging.Logger:
    """Create and configure logger instance.

    Args:
        name: Logger name, typically module name.

    Returns:
        Configured logger instance.
    """
    logger_instance = logging.getLogger(name)

    # Return existing logger if already configured
    if logger_instance.handlers:
        return logger_instance

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_type = os.getenv("LOG_TYPE", "text").lower()

    log_level = getattr(logging, log_level_str, logging.INFO)
    logger_instance.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if log_type == "json" else RichTextFormatter())
    logger_instance.addHandler(handler)

    # Records are handled here; the root logger must not print them twice
    logger_instance.propagate = False

    return logger_instance


def request_logger(
    request_id: str,
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    base: Optional[logging.Logger] = None,
) -> logging.LoggerAdapter:
    """Bind correlation fields to a logger for the lifetime of one request.

    Args:
        request_id: Identifier of the request being handled.
        session_id: Optional session identifier.
        user_id: Optional user identifier.
        agent_id: Optional id of the agent handling the request.
        base: Logger to wrap (defaults to the module-level logger).

    Returns:
        LoggerAdapter whose records carry the given fields as attributes.
    """
    extra = {
        "request_id": request_id,
        "session_id": session_id,
        "user_id": user_id,
        "agent_id": agent_id,
    }
    return logging.LoggerAdapter(base or logger, extra)


# Create module-level logger instance
logger = get_logger("sous_chef")
