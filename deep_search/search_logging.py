"""Centralized logging configuration for the search engine.

Provides:
- Structured JSON logging support
- Optional rotating file output
- Per-component category loggers
- Debug context manager
"""

import json
import logging
import logging.handlers
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

ROOT_LOGGER_NAME = "deep_search"


class LogCategory(Enum):
    """Log categories for multi-component debugging."""

    WORKFLOW = "workflow"
    CACHE = "cache"
    MATCHER = "matcher"
    PIPELINE = "pipeline"
    COORDINATOR = "coordinator"
    FILES = "files"
    WATCHER = "watcher"
    PERFORMANCE = "performance"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Produces one JSON object per record with consistent fields and
    the scan-specific extras (file id, match count, timing) when present.
    """

    EXTRA_FIELDS = ("duration_ms", "operation", "file_id", "match_count")

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON string representation of the log entry.
        """
        log_entry: dict = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def get_default_log_file(project_path: Path | None = None) -> Path:
    """Get the default log file path, optionally inside a workspace."""
    if project_path:
        log_dir = project_path / ".deep-search" / "logs"
    else:
        log_dir = Path.home() / ".deep-search" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "deep-search.log"


def setup_logging(
    level: str = "INFO",
    quiet: bool = False,
    verbose: bool = False,
    log_file: Path | None = None,
    enable_file_logging: bool = False,
    project_path: Path | None = None,
    log_format: str = "text",
    rotation_count: int = 3,
    max_bytes: int = 10485760,
) -> logging.Logger:
    """Setup global logging configuration.

    Args:
        level: Base log level (DEBUG, INFO, WARNING, ERROR).
        quiet: Suppress console output (only ERROR level).
        verbose: Enable debug-level output.
        log_file: Explicit log file path.
        enable_file_logging: Log to the default file when no log_file is given.
        project_path: Workspace root for the default log file location.
        log_format: File output format ("text" or "json").
        rotation_count: Number of backup files.
        max_bytes: Max file size before rotation.

    Returns:
        Configured root logger of the package.
    """
    import logging.config

    if log_file is None and enable_file_logging:
        log_file = get_default_log_file(project_path)

    if quiet:
        effective_level = "ERROR"
    elif verbose:
        effective_level = "DEBUG"
    else:
        effective_level = level.upper()

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {"format": "%(levelname)s | %(message)s"},
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": effective_level,
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            ROOT_LOGGER_NAME: {
                "handlers": ["console"],
                "level": "DEBUG",
                "propagate": False,
            }
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json" if log_format == "json" else "detailed",
            "level": "DEBUG",
            "filename": str(log_file),
            "maxBytes": max_bytes,
            "backupCount": rotation_count,
        }
        config["loggers"][ROOT_LOGGER_NAME]["handlers"].append("file")

    logging.config.dictConfig(config)
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_logger() -> logging.Logger:
    """Get the package logger."""
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_category_logger(category: LogCategory) -> logging.Logger:
    """Get a logger for a specific component category.

    Example:
        >>> logger = get_category_logger(LogCategory.CACHE)
        >>> logger.debug("Evicted 1 leaf node")
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{category.value}")


@contextmanager
def debug_context(
    logger: logging.Logger | None = None,
) -> Generator[logging.Logger, None, None]:
    """Temporarily enable debug-level logging on a logger and its handlers."""
    target_logger = logger or get_logger()
    original_level = target_logger.level
    original_handler_levels = [handler.level for handler in target_logger.handlers]
    try:
        target_logger.setLevel(logging.DEBUG)
        for handler in target_logger.handlers:
            handler.setLevel(logging.DEBUG)
        yield target_logger
    finally:
        target_logger.setLevel(original_level)
        for handler, level in zip(
            target_logger.handlers, original_handler_levels, strict=False
        ):
            handler.setLevel(level)
