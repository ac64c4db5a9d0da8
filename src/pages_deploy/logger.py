"""
Structured logger for deployment runs.

Wraps the standard library logger with keyword extras, a thread-local
context (repository, environment, command) attached to every record,
and an optional JSON formatter for CI log collection.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

UTC = timezone.utc

# Quiet mode only lets fatal messages through
FATAL = logging.CRITICAL


class LogContext:
    """Thread-safe context storage for logging."""

    def __init__(self):
        self._local = threading.local()

    @property
    def data(self) -> Dict[str, Any]:
        """Get context data for current thread."""
        if not hasattr(self._local, "data"):
            self._local.data = {}
        return self._local.data

    def set(self, key: str, value: Any):
        self.data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def clear(self):
        self.data.clear()

    def update(self, **kwargs):
        self.data.update(kwargs)


# Global context instance
log_context = LogContext()


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": "FATAL" if record.levelno >= FATAL else record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        context_data = log_context.data.copy()
        if context_data:
            log_data["context"] = context_data

        extra_fields = getattr(record, "extra", {})
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                if key not in log_data:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines with extras appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra_fields = getattr(record, "extra", {})
        if isinstance(extra_fields, dict) and extra_fields:
            pairs = " ".join(f"{k}={v}" for k, v in extra_fields.items())
            line = f"{line} ({pairs})"
        return line


class StructuredLogger:
    """
    Logger with structured extras and operation tracking.

    Every logger shares one handler on the ``pages_deploy`` root so that
    ``configure_logging`` can switch level and format for the whole run.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    @contextmanager
    def operation_context(self, operation: str, **kwargs) -> Iterator[None]:
        """
        Log start, completion and failure of an orchestration step.

        Args:
            operation: Name of the step (e.g. "publish")
            **kwargs: Context data attached to records inside the step
        """
        previous_context = log_context.data.copy()
        log_context.update(operation=operation, **kwargs)

        self.debug(f"Operation started: {operation}")
        start_time = time.time()

        try:
            yield
        except Exception as e:
            self.error(
                f"Operation failed: {operation}",
                duration_seconds=round(time.time() - start_time, 3),
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise
        else:
            self.debug(
                f"Operation completed: {operation}",
                duration_seconds=round(time.time() - start_time, 3),
            )
        finally:
            log_context.clear()
            log_context.update(**previous_context)

    def debug(self, msg: str, **kwargs):
        self.logger.debug(msg, extra={"extra": kwargs})

    def info(self, msg: str, **kwargs):
        self.logger.info(msg, extra={"extra": kwargs})

    def warning(self, msg: str, **kwargs):
        self.logger.warning(msg, extra={"extra": kwargs})

    def error(self, msg: str, **kwargs):
        self.logger.error(msg, extra={"extra": kwargs})

    def fatal(self, msg: str, **kwargs):
        """Log a condition that terminates the command."""
        self.logger.log(FATAL, msg, extra={"extra": kwargs})

    def log(self, level: int, msg: str, **kwargs):
        self.logger.log(level, msg, extra={"extra": kwargs})


ROOT_LOGGER_NAME = "pages_deploy"


def configure_logging(
    verbose: bool = False,
    quiet: bool = False,
    json_format: bool = False,
    stream: Optional[Any] = None,
) -> int:
    """
    Configure the package root logger for a CLI run.

    Quiet overrides verbose. Returns the selected level.
    """
    if quiet:
        level = FATAL
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False

    # Remove existing handlers to avoid duplicates
    root.handlers = []

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter() if json_format else TextFormatter())
    root.addHandler(handler)
    return level


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger under the package root."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(name)
