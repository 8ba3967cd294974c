"""Logging configuration for the application."""

import logging
import sys
from contextvars import ContextVar
from typing import Any

from hvac_search.config import get_settings

# Context variable for request ID tracking
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Longest cause message kept in logs and error payloads
MAX_CAUSE_LENGTH = 200


class RequestIdFilter(logging.Filter):
    """Add request ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add request_id to the log record.

        Args:
            record: Log record to filter

        Returns:
            True to allow the record to be logged
        """
        record.request_id = request_id_var.get() or "N/A"
        return True


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for console output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors.

        Args:
            record: Log record to format

        Returns:
            Formatted log string with colors
        """
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"

        formatted = super().format(record)

        # Reset levelname for other handlers
        record.levelname = levelname

        return formatted


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler with colored output
    - Request ID tracking
    - Structured log format with timestamps
    - Appropriate log levels
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)

    log_format = (
        "%(asctime)s | %(levelname)-8s | %(request_id)s | "
        "%(name)s:%(funcName)s:%(lineno)d | %(message)s"
    )
    date_format = "%Y-%m-%d %H:%M:%S"

    if sys.stdout.isatty():
        formatter = ColoredFormatter(log_format, datefmt=date_format)
    else:
        formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler.setFormatter(formatter)
    console_handler.addFilter(RequestIdFilter())
    root_logger.addHandler(console_handler)

    # Set levels for third-party loggers to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("chromadb").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {settings.log_level}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def set_request_id(request_id: str) -> None:
    """Set the request ID for the current context.

    Args:
        request_id: Request ID to set
    """
    request_id_var.set(request_id)


def clear_request_id() -> None:
    """Clear the request ID from the current context."""
    request_id_var.set(None)


def truncate(text: str, limit: int = MAX_CAUSE_LENGTH) -> str:
    """Shorten text to limit characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def format_cause_chain(error: BaseException, depth: int = 3) -> str:
    """Render an exception and its causes as a single line.

    Follows ``__cause__`` (then ``__context__``) up to ``depth`` links.

    Args:
        error: Outermost exception
        depth: Maximum number of exceptions to include

    Returns:
        "Type: message <- Type: message ..." with each message truncated
    """
    parts = []
    current: BaseException | None = error
    seen: set[int] = set()
    while current is not None and len(parts) < depth and id(current) not in seen:
        seen.add(id(current))
        parts.append(f"{type(current).__name__}: {truncate(str(current))}")
        current = current.__cause__ or current.__context__
    return " <- ".join(parts)


def mask_secret(secret: str | None, prefix_length: int = 6) -> dict[str, Any]:
    """Describe a secret without revealing it.

    Args:
        secret: API key or token (may be None)
        prefix_length: Number of leading characters to expose

    Returns:
        Dictionary with set flag, length, and short prefix
    """
    if not secret:
        return {"set": False, "length": 0, "prefix": None}
    return {
        "set": True,
        "length": len(secret),
        "prefix": secret[:prefix_length],
    }


def log_operation_metrics(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    error: BaseException | None = None,
    **context: Any,
) -> None:
    """Log one line describing an external operation.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "vector_query", "embed")
        duration_ms: Elapsed time in milliseconds
        error: Exception raised by the operation, if any
        **context: Additional context to log (top_k, filter keys, counts)
    """
    fields = " | ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    message = f"{operation}: {duration_ms:.0f}ms"
    if fields:
        message += f" | {fields}"
    if error is not None:
        logger.error(f"{message} | error={format_cause_chain(error)}")
    else:
        logger.info(message)
