"""
Logging for ImageStore.

Records go to stderr (stdout carries CLI results), either as one JSON object
per line or as plain text, and optionally to a rotating file. Each record is
stamped with the correlation id of the repository operation that emitted it,
and storage credentials are masked before anything is written.
"""

import inspect
import json
import logging
import logging.handlers
import re
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

# Correlation id of the repository operation running in the current task
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Context keys promoted to top-level fields of JSON records
OPERATION_FIELDS = ("operation", "container", "pathname", "duration_ms", "error_type")

# Facade arguments that name the album and image an operation touches
_CONTAINER_ARGUMENTS = ("container", "source_container", "name")


class CorrelationFilter(logging.Filter):
    """Stamp every record with the current correlation id ('-' outside an operation)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


class CredentialFilter(logging.Filter):
    """Mask account keys, SAS signatures and Authorization headers."""

    PATTERNS = [
        (re.compile(r"(Authorization:\s+)(?:Bearer\s+|SharedKey\s+)?\S+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(AccountKey=)[^;]+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(SharedAccessSignature=)[^;&]+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(sig=)[^;&\s]+", re.IGNORECASE), r"\1***REDACTED***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = message
        for pattern, replacement in self.PATTERNS:
            masked = pattern.sub(replacement, masked)
        if masked != message:
            # Freeze the masked text so formatters do not re-apply args
            record.msg = masked
            record.args = None
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, with operation fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        corr_id = getattr(record, "correlation_id", None) or correlation_id.get()
        if corr_id and corr_id != "-":
            entry["correlation_id"] = corr_id

        context = dict(getattr(record, "context", None) or {})
        for field in OPERATION_FIELDS:
            if field in context:
                entry[field] = context.pop(field)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text: time, level, correlation id, logger and message."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )


def _handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationFilter())
    handler.addFilter(CredentialFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[str] = None,
    rotation_bytes: int = 10 * 1024 * 1024,
    rotation_count: int = 5,
    module_levels: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configure the root logger for ImageStore.

    Args:
        level: Root log level name
        format_type: "json" or "text"
        log_file: Also write records to this file, rotated by size
        rotation_bytes: Size at which the log file is rotated
        rotation_count: Rotated files to keep
        module_levels: Per-logger levels, e.g. {"imagestore.storage": "DEBUG"}
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    formatter = JsonLineFormatter() if format_type == "json" else ConsoleFormatter()
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), formatter))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=rotation_bytes,
                backupCount=rotation_count,
                encoding="utf-8",
            ),
            formatter,
        ))

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(module_level.upper())

    root.debug(f"Logging configured: level={level}, format={format_type}, file={log_file}")


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set (or generate) the correlation id for the current task and return it."""
    corr_id = corr_id or str(uuid.uuid4())
    correlation_id.set(corr_id)
    return corr_id


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log message with structured context fields."""
    logger.log(level, message, extra={"context": context} if context else {})


def _target(func, args, kwargs) -> Dict[str, Any]:
    """Pick the album and pathname out of a facade call's arguments."""
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs).arguments
    except TypeError:
        return {}
    target: Dict[str, Any] = {}
    for argument in _CONTAINER_ARGUMENTS:
        if bound.get(argument):
            target["container"] = bound[argument]
            break
    if bound.get("pathname"):
        target["pathname"] = bound["pathname"]
    return target


def track_operation(logger: logging.Logger, operation: str):
    """
    Decorator for async repository operations.

    Assigns a correlation id when the calling task has none and logs the
    operation, its album/pathname and its duration. Failures are logged at
    WARNING and re-raised; cancellation is not an Exception and passes
    through unlogged.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            token = None
            if correlation_id.get() is None:
                token = correlation_id.set(str(uuid.uuid4()))
            target = _target(func, args, kwargs)
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"{operation} failed: {e}",
                    operation=operation,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                    error_type=type(e).__name__,
                    **target,
                )
                raise
            else:
                log_with_context(
                    logger,
                    logging.DEBUG,
                    f"{operation} completed",
                    operation=operation,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                    **target,
                )
                return result
            finally:
                if token is not None:
                    correlation_id.reset(token)
        return wrapper
    return decorator
