"""Logging setup for Met Explorer.

Two channels are configured here:

- the root logger, used by every module through ``logging.getLogger``
- ``met_explorer.performance``, a non-propagating logger that receives one
  JSON record per timed operation (results pages, detail loads)

Call ``configure_logging`` once from the entry point.
"""

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

PERFORMANCE_LOGGER = "met_explorer.performance"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_HANDLER_NAME = "met_explorer.console"
FILE_HANDLER_NAME = "met_explorer.file"

# httpx logs every request at INFO; one line per hydrated object is noise.
CHATTY_LIBRARIES = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Renders each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Set on Python 3.12+ when the record is emitted from inside a task.
        task_name = getattr(record, "taskName", None)
        if task_name:
            entry["task"] = task_name

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(getattr(record, "extra_fields", None) or {})
        return json.dumps(entry, default=str)


def _rotating_handler(
    log_file: Path, max_bytes: int, backup_count: int, formatter: logging.Formatter
) -> RotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
    handler.setFormatter(formatter)
    return handler


class PerformanceLogger:
    """Writes timing records for explorer operations.

    Without a ``log_file`` the records are still emitted, but nothing is
    attached to the logger, so they go nowhere unless a test or caller adds
    a handler.
    """

    def __init__(self, log_file: Optional[Path] = None, name: str = PERFORMANCE_LOGGER):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        if log_file is not None and not self._writes_to(log_file):
            self.logger.addHandler(
                _rotating_handler(log_file, 10 * 1024 * 1024, 5, JSONFormatter())
            )

    def _writes_to(self, log_file: Path) -> bool:
        target = os.path.abspath(log_file)
        return any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename == target
            for handler in self.logger.handlers
        )

    def log_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        fields: Dict[str, Any] = dict(metadata or {})
        fields.update(
            event_type="performance",
            operation=operation,
            duration_ms=round(duration_ms, 3),
            success=success,
        )
        self.logger.info("%s took %.1fms", operation, duration_ms, extra={"extra_fields": fields})

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Iterator[Dict[str, Any]]:
        """Time the ``with`` body and record it, successful or not.

        The yielded dict starts as ``metadata``; anything the body adds to
        it (card counts, failures) is included in the record.
        """
        fields: Dict[str, Any] = dict(metadata)
        started = time.monotonic()
        ok = False
        try:
            yield fields
            ok = True
        finally:
            self.log_operation(operation, (time.monotonic() - started) * 1000, ok, fields)


def quiet_library_loggers(level: int = logging.WARNING) -> None:
    """Raise the threshold of third-party loggers that log per request."""
    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(level)


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    use_json: bool = False,
    console_output: bool = True,
) -> None:
    """Attach console and/or rotating file handlers to the root logger.

    Does nothing when the root logger already has handlers, so repeated
    calls (tests, re-entrant CLI runs) never duplicate output.

    Args:
        log_file: Rotating log file; its directory is created if needed
        level: Threshold for the root logger and its handlers
        max_bytes: Size at which the file is rotated
        backup_count: Rotated files to keep
        use_json: Emit JSON records instead of plain text
        console_output: Also log to stderr
    """
    root = logging.getLogger()
    if root.handlers:
        return

    formatter = (
        JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)
    )

    handlers: List[logging.Handler] = []
    if console_output:
        console = logging.StreamHandler()
        console.set_name(CONSOLE_HANDLER_NAME)
        console.setFormatter(formatter)
        handlers.append(console)
    if log_file is not None:
        file_handler = _rotating_handler(log_file, max_bytes, backup_count, formatter)
        file_handler.set_name(FILE_HANDLER_NAME)
        handlers.append(file_handler)

    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    if level > logging.DEBUG:
        quiet_library_loggers()


def setup_performance_logging(log_dir: Path = Path("logs")) -> PerformanceLogger:
    """Performance logger writing ``performance.log`` under ``log_dir``."""
    return PerformanceLogger(log_dir / "performance.log")
