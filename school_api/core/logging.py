import inspect
import json
import logging
import os
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Iterable, Optional

from school_api.core.config import get_logging_config

# Attributes passed through ``extra=`` that end up in the JSON record
CONTEXT_FIELDS = ("request_id", "user_id", "school_id", "method", "path", "status_code", "duration")

MAX_LOG_BYTES = 10 * 1024 * 1024


class CustomJsonFormatter(logging.Formatter):
    """One JSON object per line, with request and tenant context when present"""

    def __init__(self, context_fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__()
        self.context_fields = tuple(context_fields)

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        for field in self.context_fields:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            }
        return json.dumps(payload, default=str)


class AccessRecordFilter(logging.Filter):
    """Selects request lines (records carrying a ``path``), or everything else when inverted"""

    def __init__(self, access: bool = True):
        super().__init__()
        self.access = access

    def filter(self, record: logging.LogRecord) -> bool:
        return hasattr(record, "path") == self.access


class LoggerFactory:
    """Builds the application logger and its handlers"""

    @staticmethod
    def _file_handler(handler: logging.Handler, level: int, access: Optional[bool] = None) -> logging.Handler:
        handler.setLevel(level)
        handler.setFormatter(CustomJsonFormatter())
        if access is not None:
            handler.addFilter(AccessRecordFilter(access))
        return handler

    @staticmethod
    def create_logger(name: str, log_dir: Optional[str] = None, level: str = "INFO") -> logging.Logger:
        """
        app.log      every non-request record
        error.log    ERROR and above
        access.log   one line per HTTP request, rotated daily
        console      plain text
        """
        if log_dir is None:
            log_dir = os.path.join(os.getcwd(), "logs")
        os.makedirs(log_dir, exist_ok=True)
        log_level = getattr(logging, level, logging.INFO)

        logger = logging.getLogger(name)
        logger.setLevel(log_level)
        logger.propagate = False
        if logger.handlers:
            logger.handlers.clear()

        logger.addHandler(LoggerFactory._file_handler(
            RotatingFileHandler(os.path.join(log_dir, "app.log"), maxBytes=MAX_LOG_BYTES, backupCount=5, delay=True),
            log_level,
            access=False
        ))
        logger.addHandler(LoggerFactory._file_handler(
            RotatingFileHandler(os.path.join(log_dir, "error.log"), maxBytes=MAX_LOG_BYTES, backupCount=5, delay=True),
            logging.ERROR
        ))
        logger.addHandler(LoggerFactory._file_handler(
            TimedRotatingFileHandler(
                os.path.join(log_dir, "access.log"), when="midnight", interval=1, backupCount=30, delay=True
            ),
            log_level,
            access=True
        ))

        console = logging.StreamHandler()
        console.setLevel(log_level)
        console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(console)
        return logger


def log_function_call(logger: logging.Logger):
    """Decorator logging entry, exit and duration (ms) of a sync or async call at DEBUG"""

    def decorator(func):
        name = func.__qualname__

        def finished(started: float) -> None:
            logger.debug(f"Exiting {name}", extra={"duration": round((time.perf_counter() - started) * 1000, 2)})

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                logger.debug(f"Entering {name}")
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    logger.error(f"Error in {name}", exc_info=True)
                    raise
                finished(started)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            logger.debug(f"Entering {name}")
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.error(f"Error in {name}", exc_info=True)
                raise
            finished(started)
            return result
        return sync_wrapper

    return decorator


_config = get_logging_config()

logger = LoggerFactory.create_logger(
    "school_api",
    log_dir=_config["log_dir"],
    level=_config["log_level"]
)
