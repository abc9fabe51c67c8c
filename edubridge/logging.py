"""Logging setup for Edubridge using Loguru.

Console output is human-readable in development and JSON lines in
production/staging. JSON records carry the current user, request id and
operation from context variables, so every backend call made on behalf of a
signed-in user can be traced back to them.

Example:
    >>> from edubridge.logging import logger, set_request_context
    >>> set_request_context(user_id="4f1c...", operation="send_message")
    >>> logger.info("Message sent")
"""

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from edubridge.config import settings

# =============================================================================
# Context Variables
# =============================================================================

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


# =============================================================================
# JSON Serialization
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Serialize a Loguru record into a compact JSON line.

    Args:
        record: Loguru log record dictionary

    Returns:
        JSON string with the selected fields and context
    """
    subset = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }

    if request_id := request_id_var.get():
        subset["request_id"] = request_id
    if user_id := user_id_var.get():
        subset["user_id"] = user_id
    if operation := operation_var.get():
        subset["operation"] = operation

    subset.update(record["extra"])

    if exc := record["exception"]:
        subset["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(
                exc.type, exc.value, exc.traceback
            ),
        }

    return json.dumps(subset, default=str)


def patching(record: dict[str, Any]) -> None:
    """Attach the serialized JSON to the record (modified in-place)."""
    record["serialized"] = serialize(record)


def json_formatter(record: dict[str, Any]) -> str:
    """Format a record using its pre-serialized JSON."""
    return "{serialized}\n"


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
    diagnose: bool = True,
) -> Any:
    """Configure Loguru sinks.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Output JSON lines instead of the human format
        log_file: Optional file path for a rotating file sink
        colorize: Colour the human-readable console output
        diagnose: Show variable values in tracebacks (off in production)

    Returns:
        Configured Loguru logger instance
    """
    loguru_logger.remove()

    patched_logger = loguru_logger.patch(patching)

    if json_logs:
        patched_logger.add(
            sys.stderr,
            level=level,
            format=json_formatter,
            serialize=False,
            diagnose=diagnose,
        )
    else:
        patched_logger.add(
            sys.stderr,
            level=level,
            format=(
                "<green>{time:HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
                "<level>{message}</level>"
            ),
            colorize=colorize,
            diagnose=diagnose,
        )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched_logger.add(
            log_file,
            level=level,
            format=json_formatter if json_logs else "{time} | {level} | {message}",
            rotation="10 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
            diagnose=diagnose,
        )

    return patched_logger


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.data_dir / "edubridge.log" if settings.log_to_file else None,
    colorize=not settings.log_json,
    diagnose=not settings.is_production,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Set context variables included in every following log record.

    Args:
        request_id: Identifier of the current user action
        user_id: Signed-in user id
        operation: Operation name (e.g., "submit_post", "send_message")
    """
    if request_id is not None:
        request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)
    if operation is not None:
        operation_var.set(operation)


def clear_request_context() -> None:
    """Clear all context variables (e.g. after sign-out)."""
    request_id_var.set(None)
    user_id_var.set(None)
    operation_var.set(None)


def get_request_context() -> dict[str, str | None]:
    """Get current context variable values."""
    return {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
        "operation": operation_var.get(),
    }


__all__ = [
    "logger",
    "request_id_var",
    "user_id_var",
    "operation_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "setup_logging",
]
