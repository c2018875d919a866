"""
Logging configuration for the MyHomeTech API.

Features:
- Structured JSON logging for production (log aggregators like Datadog, CloudWatch, ELK)
- Colored console output for development
- Workflow context tracking (user_id, request_id, event)
- Log levels: DEBUG, INFO, WARNING, ERROR, CRITICAL

Usage:
    from .logging_config import get_logger, log_state_change, log_notification

    logger = get_logger("scheduling")
    logger.info("Message", extra={"request_id": 42, "user_id": 7})

    log_state_change(42, "pending", "scheduled", technician_id=7)
"""

import logging
import sys
import json
import os
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Structured JSON logging for production (easy to parse by log aggregators)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra fields if present (user_id, request_id, event, etc.)
        if getattr(record, "user_id", None):
            log_data["user_id"] = record.user_id
        if getattr(record, "request_id", None):
            log_data["request_id"] = record.request_id
        if getattr(record, "event", None):
            log_data["event"] = record.event
        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        # Include exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console output for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)

        # Build context string from extra fields
        context_parts = []
        user_id = getattr(record, "user_id", None)
        request_id = getattr(record, "request_id", None)
        event = getattr(record, "event", None)

        if request_id:
            context_parts.append(f"SR:{request_id}")
        if user_id:
            context_parts.append(f"User:{user_id}")
        if event:
            context_parts.append(f"Event:{event}")

        context = f" [{', '.join(context_parts)}]" if context_parts else ""

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        message = f"{color}[{timestamp}] {record.levelname:8}{self.RESET}{context} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class WorkflowContextFilter(logging.Filter):
    """Filter that adds default values for workflow context fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Ensure all context fields exist (even if empty)
        if not hasattr(record, "user_id"):
            record.user_id = None
        if not hasattr(record, "request_id"):
            record.request_id = None
        if not hasattr(record, "event"):
            record.event = ""
        if not hasattr(record, "extra_data"):
            record.extra_data = None
        return True


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)
        log_file: Optional file path to write logs

    Returns:
        Configured root logger for the app
    """
    logger = logging.getLogger("myhometech")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers.clear()  # Remove any existing handlers

    context_filter = WorkflowContextFilter()

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = ConsoleFormatter()

    # Console handler (always enabled, writes to stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.DEBUG)
    # Handler-level filter so records from child loggers get defaults too
    console_handler.addFilter(context_filter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())  # Always JSON for files
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


# Initialize logging from environment variables
_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
_LOG_FORMAT_JSON = os.getenv("LOG_FORMAT", "console").lower() == "json"
_LOG_FILE = os.getenv("LOG_FILE", None)

_root_logger = setup_logging(
    log_level=_LOG_LEVEL,
    json_format=_LOG_FORMAT_JSON,
    log_file=_LOG_FILE
)


def get_logger(name: str = "") -> logging.Logger:
    """
    Get a child logger with the given name.

    Args:
        name: Logger name suffix (e.g., "scheduling", "notifications", "db")

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"myhometech.{name}")
    return logging.getLogger("myhometech")


# =============================================================================
# Convenience functions for structured logging
# =============================================================================

def log_state_change(request_id: int, from_status: str, to_status: str, **extra_data):
    """
    Log service request status transitions.

    Args:
        request_id: Service request ID
        from_status: Previous status
        to_status: New status
        **extra_data: Additional context data (technician_id, proposal_id, ...)
    """
    logger = get_logger("state")
    logger.info(
        f"Status: {from_status} -> {to_status}",
        extra={"request_id": request_id, "event": to_status, "extra_data": extra_data}
    )


def log_notification(user_id: int, event: str, delivered: bool, **extra_data):
    """Log a notification fan-out attempt for one user."""
    logger = get_logger("notifications")
    status = "pushed" if delivered else "stored only"
    logger.debug(
        f"Notification {event} for user {user_id}: {status}",
        extra={"user_id": user_id, "event": event, "extra_data": extra_data}
    )


def log_error(error: Exception, context: str = "", user_id: Optional[int] = None,
              request_id: Optional[int] = None):
    """
    Log errors with full context.

    Args:
        error: The exception
        context: Additional context about what was happening
        user_id: Acting or affected user
        request_id: Related service request
    """
    logger = get_logger("error")
    msg = f"{context}: {type(error).__name__}: {error}" if context else f"{type(error).__name__}: {error}"
    logger.error(msg, extra={"user_id": user_id, "request_id": request_id}, exc_info=True)

