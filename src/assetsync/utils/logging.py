"""Logging configuration and utilities."""

import asyncio
import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import colorlog
import structlog
from structlog.typing import Processor

if TYPE_CHECKING:
    from ..config.settings import LoggingSettings


CONSOLE_HANDLER_NAME = "assetsync-console"
FILE_HANDLER_NAME = "assetsync-file"

# Third-party loggers that are only interesting when something breaks
QUIET_LOGGERS = ("apscheduler", "aiohttp", "PIL")


def setup_logging(
    config: Optional["LoggingSettings"] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the stdlib handlers it writes through.

    Explicit arguments win over ``config``. Calling this again replaces the
    handlers installed by the previous call.

    Args:
        config: Logging section of the application settings
        log_level: Level name such as "INFO"
        log_format: "json" for one JSON object per line, anything else for
            human readable console output
        log_file: Optional path of a rotating log file
    """
    level = (log_level or (config.level if config else None) or "INFO").upper()
    format_type = log_format or (config.format if config else None) or "console"
    file_path = log_file or (config.file_path if config else None)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level))
    for handler in list(root.handlers):
        if handler.get_name() in (CONSOLE_HANDLER_NAME, FILE_HANDLER_NAME):
            root.removeHandler(handler)
            handler.close()

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        # colorlog colors the whole line
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if file_path:
        setup_file_logging(file_path, level)

    setup_console_logging(level)


def setup_file_logging(file_path: str, level: str) -> None:
    """Write already rendered events to a rotating file, one per line."""
    log_file = Path(file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8"
    )
    file_handler.set_name(FILE_HANDLER_NAME)
    file_handler.setLevel(getattr(logging, level.upper()))
    file_handler.setFormatter(logging.Formatter("%(message)s"))

    logging.getLogger().addHandler(file_handler)


def setup_console_logging(level: str) -> None:
    """Set up colored console logging."""
    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(getattr(logging, level.upper()))

    console_formatter = colorlog.ColoredFormatter(
        "%(log_color)s%(message)s",
        reset=True,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    )
    console_handler.setFormatter(console_formatter)

    logging.getLogger().addHandler(console_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def _operation_context(operation: str, args: tuple) -> Dict[str, Any]:
    context: Dict[str, Any] = {"operation": operation}
    owner = args[0] if args else None
    if owner is not None:
        context["component"] = owner.__class__.__name__
        location = getattr(owner, "location", None)
        if location is not None:
            context["location"] = getattr(location, "value", location)
    return context


def log_operation_time(operation: str):
    """Log the duration of a store or coordinator operation.

    Works on plain and coroutine methods. Successes are logged at debug,
    failures at error before the exception propagates.
    """

    def decorator(func):
        logger_name = func.__module__

        def finished(args, start_time, error=None):
            logger = get_logger(logger_name)
            context = _operation_context(operation, args)
            context["duration_ms"] = round((time.monotonic() - start_time) * 1000, 2)
            if error is None:
                logger.debug("Operation finished", **context)
            else:
                logger.error("Operation failed", error=str(error), **context)

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    finished(args, start_time, e)
                    raise
                finished(args, start_time)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                finished(args, start_time, e)
                raise
            finished(args, start_time)
            return result

        return wrapper

    return decorator
