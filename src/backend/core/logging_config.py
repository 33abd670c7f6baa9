"""
Logging configuration for the Complaint Portal.

- Console output with colored levels
- Rotating files: app.log (everything), realtime.log (dashboard channel),
  database.log (data layer)
- File writes go through a QueueHandler; a QueueListener thread does the
  I/O so log calls never block the event loop
- Every record carries the request correlation ID
"""

import atexit
import logging
import logging.handlers
import queue
import sys
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from core.middleware.correlation import CorrelationIdFilter

# Global queue listener for cleanup
_queue_listener: Optional[logging.handlers.QueueListener] = None

REALTIME_LOGGERS = (
    "services.dashboard_channel",
    "api.v1.endpoints.dashboard_socket",
)
DATABASE_LOGGERS = (
    "crud",
    "core.database",
    "core.decorators",
    "services.stats_service",
    "sqlalchemy",
)


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True
    enable_query_logging: bool = False


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    grey = "\x1b[38;21m"
    yellow = "\x1b[33;21m"
    red = "\x1b[31;21m"
    bold_red = "\x1b[31;1m"
    blue = "\x1b[34;21m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.grey)
        original = record.levelname
        record.levelname = f"{color}{record.levelname}{self.reset}"
        try:
            return f"{super().format(record)}{self.reset}"
        finally:
            record.levelname = original


class LoggerPrefixFilter(logging.Filter):
    """Pass only records from loggers under one of the given prefixes."""

    def __init__(self, prefixes: Iterable[str]):
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return any(
            record.name == p or record.name.startswith(p + ".") for p in self.prefixes
        )


def _rotating_handler(config: LogConfig, filename: str, formatter: logging.Formatter):
    handler = logging.handlers.RotatingFileHandler(
        Path(config.log_dir) / filename,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, config.level.upper()))
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Setup application logging with configuration."""
    global _queue_listener

    if config is None:
        config = LogConfig()
    level = getattr(logging, config.level.upper())

    # Stop existing listener if running
    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    correlation_filter = CorrelationIdFilter()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.addFilter(correlation_filter)
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(message)s",
                datefmt=config.date_format,
            )
        )
        root_logger.addHandler(console_handler)

    if config.enable_file_logging:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | "
            "%(funcName)s:%(lineno)d | %(message)s",
            datefmt=config.date_format,
        )

        app_handler = _rotating_handler(config, "app.log", file_formatter)

        realtime_handler = _rotating_handler(config, "realtime.log", file_formatter)
        realtime_handler.addFilter(LoggerPrefixFilter(REALTIME_LOGGERS))

        db_handler = _rotating_handler(config, "database.log", file_formatter)
        db_handler.addFilter(LoggerPrefixFilter(DATABASE_LOGGERS))

        log_queue = queue.Queue(-1)
        queue_handler = logging.handlers.QueueHandler(log_queue)
        # The correlation ID must be captured on the event loop thread
        queue_handler.addFilter(correlation_filter)
        root_logger.addHandler(queue_handler)

        _queue_listener = logging.handlers.QueueListener(
            log_queue,
            app_handler,
            realtime_handler,
            db_handler,
            respect_handler_level=True,
        )
        _queue_listener.start()
        atexit.register(stop_queue_listener)

    sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
    sqlalchemy_logger.setLevel(level if config.enable_query_logging else logging.WARNING)


def stop_queue_listener() -> None:
    """Stop the queue listener gracefully. Safe to call more than once."""
    global _queue_listener

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None
