# iplocate/core/logging.py
# Logging setup
#
# What it does:
# 1. Central configuration for every log line the worker and CLI emit
# 2. Two formats: coloured console (development) and JSON (production)
# 3. A decorator that logs each call of an outbound capability
# 4. Plays along with temporalio's workflow.logger / activity.logger, which
#    are adapters over the standard logging tree
#
# Usage:
#   from iplocate.core.logging import get_logger
#   logger = get_logger(__name__)
#   logger.info("hello")

import asyncio
import json
import logging
import sys
from datetime import datetime
from functools import wraps
from typing import Callable, Optional

from iplocate.core.config import settings


# ==================== Colour support ====================

class Colors:
    """
    ANSI colour codes

    Usage:
        print(f"{Colors.RED}red text{Colors.RESET}")
    """
    RESET = "\033[0m"
    RED = "\033[31m"       # ERROR
    GREEN = "\033[32m"     # INFO
    YELLOW = "\033[33m"    # WARNING
    BLUE = "\033[34m"      # DEBUG
    MAGENTA = "\033[35m"   # CRITICAL
    CYAN = "\033[36m"      # timestamps
    GRAY = "\033[90m"      # logger location


LEVEL_COLORS = {
    "DEBUG": Colors.BLUE,
    "INFO": Colors.GREEN,
    "WARNING": Colors.YELLOW,
    "ERROR": Colors.RED,
    "CRITICAL": Colors.MAGENTA,
}


# ==================== Formatters ====================

class ColoredFormatter(logging.Formatter):
    """
    Coloured console formatter (development)

    Output:
    2026-01-30 12:00:00 | INFO     | iplocate.workflows.worker:run_worker:88 - Worker started
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        level_name = record.levelname
        level_color = LEVEL_COLORS.get(level_name, Colors.RESET)

        location = f"{record.name}:{record.funcName}:{record.lineno}"

        formatted = (
            f"{Colors.CYAN}{timestamp}{Colors.RESET} | "
            f"{level_color}{level_name:8}{Colors.RESET} | "
            f"{Colors.GRAY}{location}{Colors.RESET} - "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class JSONFormatter(logging.Formatter):
    """
    JSON formatter (production)

    One object per line:
    {"timestamp": "2026-01-30T12:00:00", "level": "INFO", "logger": "...", ...}

    Context passed as logger.info("...", extra={"extra_data": {...}}) ends up
    under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        # temporalio attaches workflow / activity info to its adapter records
        for key in ("temporal_workflow", "temporal_activity"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ==================== Setup ====================

def setup_logging() -> None:
    """
    Initialise logging

    Call once at process start (worker entry point, CLI main).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL)

    # Avoid duplicate handlers when called twice
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.LOG_LEVEL)

    if settings.LOG_FORMAT == "json":
        formatter = JSONFormatter()
    else:
        formatter = ColoredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Quiet chatty libraries unless debugging
    if settings.DEBUG:
        logging.getLogger("httpx").setLevel(logging.INFO)
    else:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("temporalio").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger

    Args:
        name: usually __name__

    Returns:
        logging.Logger: the logger
    """
    return logging.getLogger(name)


# ==================== Call logging decorator ====================

def log_execution(logger: Optional[logging.Logger] = None):
    """
    Log each call of the decorated function and its outcome

    Calls and return values go to DEBUG, exceptions to ERROR before being
    re-raised.

    Args:
        logger: optional logger, defaults to the function's module logger

    Example:
        @log_execution()
        async def fetch_json(url: str) -> dict:
            ...

    Output:
        DEBUG | call fetch_json('http://ip-api.com/json/1.1.1.1')
        DEBUG | fetch_json returned: {...}
    """
    def decorator(func: Callable):
        func_logger = logger or get_logger(func.__module__)

        def _format_args(args, kwargs) -> str:
            args_str = ", ".join([repr(a) for a in args])
            kwargs_str = ", ".join([f"{k}={repr(v)}" for k, v in kwargs.items()])
            return ", ".join(filter(None, [args_str, kwargs_str]))

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            func_logger.debug(f"call {func.__name__}({_format_args(args, kwargs)})")

            try:
                result = await func(*args, **kwargs)
                func_logger.debug(f"{func.__name__} returned: {result}")
                return result
            except Exception as e:
                func_logger.error(f"{func.__name__} failed: {e}")
                raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            func_logger.debug(f"call {func.__name__}({_format_args(args, kwargs)})")

            try:
                result = func(*args, **kwargs)
                func_logger.debug(f"{func.__name__} returned: {result}")
                return result
            except Exception as e:
                func_logger.error(f"{func.__name__} failed: {e}")
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
