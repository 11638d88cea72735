"""
Structured Logging Utilities

Request-scoped identifiers (user_id, workspace_id, task_id, ...) are kept in
a context variable and attached to every record logged through
StructuredLogger, so one request can be followed through the services.
"""

import inspect
import logging
from typing import Any, Dict, Optional
from contextvars import ContextVar
from functools import wraps


_logging_context: ContextVar[Dict[str, Any]] = ContextVar('logging_context', default={})

# Argument names lifted into the log context by @log_operation
CONTEXT_KEYS = ("workspace_id", "task_id", "user_id", "event_id", "channel_id")


class StructuredLogger:
    """
    Logger that merges the request context into each record's extras.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Task assigned", extra={"task_id": task.id, "assignee_id": assignee_id})
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log(self, level: int, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        context = dict(_logging_context.get())
        context.update(extra or {})
        self.logger.log(level, message, extra=context, exc_info=exc_info)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self.log(logging.ERROR, message, extra, exc_info=exc_info)


def set_logging_context(**kwargs):
    """
    Add identifiers to the context of the current request.

    None values are skipped.
    """
    context = dict(_logging_context.get())
    context.update({k: v for k, v in kwargs.items() if v is not None})
    _logging_context.set(context)


def _context_arguments(func, args: tuple, kwargs: dict) -> Dict[str, Any]:
    """Identifiers among the call arguments, whether passed by position or by keyword"""
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs).arguments
    except TypeError:
        # The call itself will fail with a clearer error
        bound = kwargs
    return {key: bound[key] for key in CONTEXT_KEYS if bound.get(key) is not None}


class _OperationLog:
    """Start/finish/failure records for one decorated call"""

    def __init__(self, func, operation_name: str, args: tuple, kwargs: dict):
        self.logger = StructuredLogger(func.__module__)
        self.name = operation_name
        self.context = {"operation": operation_name}
        self.context.update(_context_arguments(func, args, kwargs))

    def started(self):
        self.logger.debug(f"Starting {self.name}", extra=self.context)

    def finished(self):
        self.logger.info(f"Completed {self.name}", extra=self.context)

    def failed(self, error: Exception):
        self.logger.warning(f"Failed {self.name}: {error}",
                            extra={**self.context, "error_type": type(error).__name__})


def log_operation(operation_name: str):
    """
    Decorator logging the start and outcome of a service operation.

    Arguments named workspace_id, task_id, user_id, event_id or channel_id
    are added to the log context, whether passed by position or by keyword.
    Exceptions are logged and re-raised.

    Example:
        @log_operation("provision_workspace")
        def provision_workspace(self, event_id: str, user_id: str):
            ...
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                record = _OperationLog(func, operation_name, args, kwargs)
                record.started()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    record.failed(e)
                    raise
                record.finished()
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            record = _OperationLog(func, operation_name, args, kwargs)
            record.started()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                record.failed(e)
                raise
            record.finished()
            return result
        return sync_wrapper

    return decorator
