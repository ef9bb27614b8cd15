"""
Logging configuration for the note sender.

Console output is human readable; an optional rotating log file receives
structured JSON records. Each send runs inside a :class:`LoggingContext` so
that every record it emits is tagged with the operation and a short id.
"""

import json
import logging
import logging.handlers
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class SimpleFormatter(logging.Formatter):
    """Simple human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S")
        level = record.levelname.ljust(5)

        context_parts = []
        operation = operation_var.get()
        if operation:
            context_parts.append(f"op:{operation}")
        request_id = request_id_var.get()
        if request_id:
            context_parts.append(f"req:{request_id}")
        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        logger_name = record.name.split(".")[-1]
        line = f"{timestamp} {level}{context_str} {logger_name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        operation = operation_var.get()
        if operation:
            log_entry["operation"] = operation
        request_id = request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def setup_logging(debug: bool = False, log_dir: Optional[Union[str, Path]] = None) -> None:
    """Install console logging and, when *log_dir* is given, a JSON log file."""

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(SimpleFormatter())
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "crosspoint-sender.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


class LoggingContext:
    """Context manager tagging log records with an operation name."""

    def __init__(self, operation: str, **kwargs):
        self.operation = operation
        self.request_id = generate_request_id()
        self.kwargs = kwargs
        self.logger = logging.getLogger(f"crosspoint_sender.context.{operation}")
        self._tokens = None
        self._start = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        self._tokens = (operation_var.set(self.operation), request_id_var.set(self.request_id))
        self.logger.debug("Started %s", self.operation, extra={"operation_start": True, **self.kwargs})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self._start) * 1000
        if exc_type:
            self.logger.error(
                "Failed %s", self.operation,
                extra={"success": False, "duration_ms": duration_ms, **self.kwargs},
                exc_info=(exc_type, exc_val, exc_tb),
            )
        else:
            self.logger.debug(
                "Completed %s", self.operation,
                extra={"success": True, "duration_ms": duration_ms, **self.kwargs},
            )
        operation_token, request_token = self._tokens
        operation_var.reset(operation_token)
        request_id_var.reset(request_token)
        return False
