"""
Structured logging for ATC Cattle Analysis API

Format: [LEVEL] [component] message | key=value key2=value2

Components are colon-separated so related lines can be grepped together,
e.g. 'pipeline:decode', 'pipeline:nms', 'model:load'.
"""

import logging
import sys
import threading
import traceback

from .config import LOG_LEVEL

MAX_VALUE_LENGTH = 200
MAX_TRACEBACK_LENGTH = 500


class Logger:
    """
    Structured logger with component tags and key=value formatting.

    Usage:
        log = Logger('atc-api')
        log.info('startup', 'Server started', port=3001)
        log.error('model:load', 'Model load failed', error='file missing', fix='Copy best.onnx into models/')
    """

    def __init__(self, name: str = 'atc-api', level: str = LOG_LEVEL):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.DEBUG))
        self._lock = threading.Lock()

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('%(asctime)s %(message)s', datefmt='%H:%M:%S'))
            self._logger.addHandler(handler)

    @staticmethod
    def _format_value(value, limit: int = MAX_VALUE_LENGTH) -> str:
        if isinstance(value, float):
            value = round(value, 4)
        value = str(value)
        if len(value) > limit:
            value = value[:limit] + "..."
        return value.replace('|', '\\|')

    def _format(self, level: str, component: str, message: str, **kwargs) -> str:
        """Format: [LEVEL] [component] message | key=value key2=value2"""
        base = f"[{level}] [{component}] {message}"

        kv_pairs = []
        for k, v in kwargs.items():
            if v is None:
                continue
            # Tracebacks are already trimmed by exception()
            limit = MAX_TRACEBACK_LENGTH + 3 if k == 'traceback' else MAX_VALUE_LENGTH
            kv_pairs.append(f"{k}={self._format_value(v, limit)}")
        if kv_pairs:
            return f"{base} | {' '.join(kv_pairs)}"
        return base

    def _emit(self, level: int, tag: str, component: str, message: str, **kwargs):
        if not self._logger.isEnabledFor(level):
            return
        with self._lock:
            self._logger.log(level, self._format(tag, component, message, **kwargs))

    def debug(self, component: str, message: str, **kwargs):
        self._emit(logging.DEBUG, "DEBUG", component, message, **kwargs)

    def info(self, component: str, message: str, **kwargs):
        self._emit(logging.INFO, "INFO", component, message, **kwargs)

    def warn(self, component: str, message: str, **kwargs):
        self._emit(logging.WARNING, "WARN", component, message, **kwargs)

    def error(self, component: str, message: str, **kwargs):
        """
        Log an error. Always include 'error' kwarg with the actual error.
        Optionally include 'fix' kwarg with action to take.
        """
        self._emit(logging.ERROR, "ERROR", component, message, **kwargs)

    def critical(self, component: str, message: str, **kwargs):
        """For errors that stop the server."""
        self._emit(logging.CRITICAL, "CRITICAL", component, message, **kwargs)

    def exception(self, component: str, message: str, **kwargs):
        """Log error with a trimmed stack trace."""
        tb = traceback.format_exc().strip().replace('\n', ' / ')
        if len(tb) > MAX_TRACEBACK_LENGTH:
            tb = "..." + tb[-MAX_TRACEBACK_LENGTH:]
        kwargs['traceback'] = tb
        self.error(component, message, **kwargs)


# Global logger instance
log = Logger('atc-api')
