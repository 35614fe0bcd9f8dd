"""
Structured Logging Utilities

Request-scoped context (set by the API layer) and per-call ``extra`` fields
are merged and attached to every record emitted through StructuredLogger.
The plain formatter configured in main.py does not print ``extra``, so the
fields are also rendered as a ``[key=value ...]`` suffix on the message.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional


# Context variable for request-scoped logging context
_logging_context: ContextVar[Dict[str, Any]] = ContextVar('logging_context', default={})

# Attribute names a LogRecord already owns; passing them in ``extra`` raises
_RESERVED_KEYS = frozenset(
    logging.LogRecord('', logging.INFO, '', 0, '', (), None).__dict__
) | {'message', 'asctime'}


class StructuredLogger:
    """
    Wrapper around standard logger that adds structured context.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Broadcast started", extra={"backend": "pm2"})
        # -> "Broadcast started [backend=pm2 operation=stream_start]"
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _merge(self, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        context = _logging_context.get().copy()
        if extra:
            context.update(extra)
        return context

    @staticmethod
    def _render(message: str, context: Dict[str, Any]) -> str:
        # The stream id is usually already the "[stream_...]" prefix
        fields = [
            f"{key}={context[key]}"
            for key in sorted(context)
            if not (key == 'stream_id' and str(context[key]) in message)
        ]
        return f"{message} [{' '.join(fields)}]" if fields else message

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]], exc_info: bool = False):
        if not self.logger.isEnabledFor(level):
            return
        context = self._merge(extra)
        record_extra = {k: v for k, v in context.items() if k not in _RESERVED_KEYS}
        self.logger.log(
            level,
            self._render(message, context),
            extra=record_extra,
            exc_info=exc_info,
            stacklevel=3,
        )

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self._log(logging.ERROR, message, extra, exc_info=exc_info)


def set_logging_context(**kwargs):
    """
    Set logging context for the current request/operation.

    Tasks created afterwards inherit a copy of the context.

    Example:
        set_logging_context(operation="stream_stop", stream_id=stream_id)
    """
    context = _logging_context.get().copy()
    context.update(kwargs)
    _logging_context.set(context)


@contextmanager
def logging_context(**kwargs) -> Iterator[None]:
    """Add fields to the logging context for the duration of a block."""
    token = _logging_context.set({**_logging_context.get(), **kwargs})
    try:
        yield
    finally:
        _logging_context.reset(token)


def get_logging_context() -> Dict[str, Any]:
    """Current logging context (copy)."""
    return _logging_context.get().copy()
