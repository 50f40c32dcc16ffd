"""
Logging configuration for the application.

structlog on top of the standard library: JSON lines in production, a
colored console renderer in development. Every record carries the service
name and whatever request context the middleware bound.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List

import structlog
from dotenv import load_dotenv
from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

SERVICE_NAME = "serial-registry"

# Libraries that log every decoded PNG chunk or pooled connection at DEBUG
NOISY_LOGGERS = ("PIL", "pytesseract", "aiosqlite", "asyncio", "sqlalchemy.pool")


def add_service_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _file_handlers(log_dir: str, log_level: int) -> List[logging.Handler]:
    max_log_size = int(os.getenv("MAX_LOG_SIZE", "10485760"))  # 10MB
    backup_count = int(os.getenv("BACKUP_COUNT", "5"))
    encoding = os.getenv("LOG_ENCODING", "utf-8")

    os.makedirs(log_dir, exist_ok=True)

    app_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, os.getenv("APP_LOG_FILE", "app.log")),
        maxBytes=max_log_size,
        backupCount=backup_count,
        encoding=encoding,
    )
    app_handler.setLevel(log_level)

    error_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, os.getenv("ERROR_LOG_FILE", "error.log")),
        maxBytes=max_log_size,
        backupCount=backup_count,
        encoding=encoding,
    )
    error_handler.setLevel(logging.ERROR)

    return [app_handler, error_handler]


def _processors(log_format: str) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if os.getenv("ENABLE_PERFORMANCE_LOGGING", "false").lower() == "true":
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def setup_logging(level: str = "INFO", format_type: str = "json") -> None:
    """
    Configure structured logging for the application.

    Values in ``.env.logging`` and the environment (LOG_LEVEL, LOG_FORMAT,
    LOG_DIR) take precedence over the arguments. An empty LOG_DIR keeps
    logging on stdout only.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" for production, anything else for the console renderer
    """
    load_dotenv(".env.logging")

    log_level = getattr(logging, os.getenv("LOG_LEVEL", level).upper(), logging.INFO)
    log_format = os.getenv("LOG_FORMAT", format_type).lower()
    log_dir = os.getenv("LOG_DIR", "logs")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    handlers: List[logging.Handler] = [console_handler]
    if log_dir:
        handlers.extend(_file_handlers(log_dir, log_level))

    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=_processors(log_format),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Example:
        ```python
        logger = get_logger(__name__)
        logger.info("Serial inserted", serial="LB42836549R", filename="bill.jpg")
        ```
    """
    return structlog.get_logger(name)
