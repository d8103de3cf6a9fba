"""
Operational logging for EaaS.

setup_logging wires the project loggers to four sinks: stderr, a rotating
text file, a rotating JSON-lines file and an error-only file. The per-job
audit trail lives in eaas.evaluation.event_log and is not handled here.
"""

import functools
import json
import logging
import logging.handlers
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

# Logger trees configured by setup_logging
PROJECT_LOGGERS = ("eaas", "utils")

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(lineno)d | %(message)s"
ERROR_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d\n%(message)s\n---"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }
        return json.dumps(entry, default=str)


def _rotating(path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
    json_logs: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    logger_names: Iterable[str] = PROJECT_LOGGERS,
) -> logging.Logger:
    """
    Attach the EaaS handlers to each logger in logger_names.

    Calling it again replaces the handlers rather than stacking them.

    Args:
        level: Level name for the project loggers
        log_dir: Directory for the log files, created if missing
        console: Also log to stderr
        json_logs: Also write eaas.json.log
        max_bytes: Rotation size per file
        backup_count: Rotated files to keep

    Returns:
        The "eaas" logger
    """
    log_dir = log_dir or Path.home() / ".eaas" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = []
    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        handlers.append(stream)

    handlers.append(_rotating(log_dir / "eaas.log", logging.DEBUG, logging.Formatter(FILE_FORMAT), max_bytes, backup_count))
    if json_logs:
        handlers.append(_rotating(log_dir / "eaas.json.log", logging.DEBUG, StructuredFormatter(), max_bytes, backup_count))
    handlers.append(_rotating(log_dir / "eaas.error.log", logging.ERROR, logging.Formatter(ERROR_FORMAT), max_bytes, backup_count))

    numeric_level = getattr(logging, level.upper())
    for name in logger_names:
        project_logger = logging.getLogger(name)
        for old in list(project_logger.handlers):
            project_logger.removeHandler(old)
            old.close()
        project_logger.setLevel(numeric_level)
        for handler in handlers:
            project_logger.addHandler(handler)
        project_logger.propagate = False

    return logging.getLogger("eaas")


class LogContext(logging.Filter):
    """
    Tags every record from one logger with key/value context while active.

    The JSON log writes the tags under "context". Nested contexts merge,
    and the inner values win.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__()
        self.logger = logger
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = {**getattr(record, "context", {}), **self.context}
        return True

    def __enter__(self) -> "LogContext":
        self.logger.addFilter(self)
        return self

    def __exit__(self, *args) -> None:
        self.logger.removeFilter(self)


def log_performance(logger: Optional[logging.Logger] = None):
    """Log how long the wrapped call took. Failures are logged at ERROR and re-raised."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or logging.getLogger(func.__module__)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error("%s failed after %.1fms: %s", func.__qualname__, _elapsed_ms(start), e, exc_info=True)
                raise
            log.debug("%s completed in %.1fms", func.__qualname__, _elapsed_ms(start))
            return result

        return wrapper

    return decorator


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
