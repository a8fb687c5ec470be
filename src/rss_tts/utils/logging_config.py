"""
Logging infrastructure for the RSS-to-Speech pipeline.
Console output plus rotating plain-text, JSON and error logs; worker thread names
are included so interleaved output from the pool stays readable.
"""

import logging
import logging.handlers
import sys
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
import traceback
import time

DEFAULT_LOG_DIR = Path('data') / 'logs'


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line"""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for console and plain log files"""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class PerformanceLogger:
    """Context manager that logs how long an operation took"""

    def __init__(self, operation_name: str, logger: logging.Logger):
        self.operation_name = operation_name
        self.logger = logger
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.start_time
        extra = {'extra_fields': {'duration_seconds': round(self.duration, 3)}}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation_name} in {self.duration:.2f}s", extra=extra)
        else:
            # The caller decides whether this is fatal; only record the timing here.
            self.logger.warning(f"Failed {self.operation_name} after {self.duration:.2f}s: {exc_val}",
                                extra=extra)
        return False


class LoggingManager:
    """
    Configures the root logger for a pipeline run.
    Console logging is always enabled; file logging is skipped when log_dir is None.
    """

    def __init__(self, log_dir: Optional[str] = str(DEFAULT_LOG_DIR), log_level: str = 'INFO'):
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        level = getattr(logging, log_level.upper(), None)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {log_level}")
        self.log_level = level
        self._configure_logging()

    def _configure_logging(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(HumanReadableFormatter())
        root_logger.addHandler(console_handler)

        if self.log_dir is not None:
            main_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / 'rss_tts.log',
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=10
            )
            main_handler.setLevel(self.log_level)
            main_handler.setFormatter(HumanReadableFormatter())
            root_logger.addHandler(main_handler)

            structured_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / 'rss_tts_structured.log',
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            )
            structured_handler.setLevel(self.log_level)
            structured_handler.setFormatter(StructuredFormatter())
            root_logger.addHandler(structured_handler)

            error_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / 'errors.log',
                maxBytes=5 * 1024 * 1024,  # 5MB
                backupCount=10
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(HumanReadableFormatter())
            root_logger.addHandler(error_handler)

        logging.info(f"Logging configured with level {logging.getLevelName(self.log_level)}")
        if self.log_dir is not None:
            logging.info(f"Logs directory: {self.log_dir}")


def setup_logging(log_dir: Optional[str] = str(DEFAULT_LOG_DIR), log_level: str = 'INFO') -> LoggingManager:
    """
    Set up application logging.

    Args:
        log_dir: Directory for log files, or None for console-only logging
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        LoggingManager instance
    """
    return LoggingManager(log_dir, log_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (convenience function)"""
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, exception: BaseException,
                  context: str = None, extra_data: Dict[str, Any] = None):
    """Log an exception with context and additional structured fields"""
    message = f"Exception in {context}: {exception}" if context else f"Exception: {exception}"

    extra_fields = {
        'exception_type': type(exception).__name__,
        'exception_message': str(exception)
    }

    if extra_data:
        extra_fields.update(extra_data)

    logger.error(
        message,
        extra={'extra_fields': extra_fields},
        exc_info=(type(exception), exception, exception.__traceback__)
    )
