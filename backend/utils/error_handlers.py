"""
Error handling decorators and utilities for API endpoints.

Routes raise nothing themselves: services raise ApplicationError subclasses
and the handle_api_errors decorator turns them into HTTPException responses
with a consistent status mapping.
"""

import inspect
from functools import wraps
from typing import Callable
from fastapi import HTTPException
import logging

from constants import HTTPStatus
from exceptions import (
    AccessDeniedError,
    ApplicationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    LifecycleError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Order matters: first match wins
ERROR_STATUS_MAP = (
    (NotFoundError, HTTPStatus.NOT_FOUND, "Not found"),
    (AccessDeniedError, HTTPStatus.FORBIDDEN, "Access denied"),
    (ValidationError, HTTPStatus.BAD_REQUEST, "Validation error"),
    (LifecycleError, HTTPStatus.BAD_REQUEST, "Lifecycle error"),
    (ConflictError, HTTPStatus.CONFLICT, "Conflict"),
    (ConfigurationError, HTTPStatus.BAD_REQUEST, "Configuration error"),
    (DatabaseError, HTTPStatus.INTERNAL_SERVER_ERROR, "Database error"),
)


def to_http_exception(operation_name: str, error: Exception) -> HTTPException:
    """
    Map an exception raised inside an endpoint to an HTTPException.

    Client errors (4xx) are logged as warnings, server errors (5xx) as errors
    with the traceback attached.

    Args:
        operation_name: Human-readable name of the operation
        error: The exception that escaped the endpoint

    Returns:
        HTTPException to raise in its place
    """
    if isinstance(error, ApplicationError):
        for error_type, status_code, label in ERROR_STATUS_MAP:
            if isinstance(error, error_type):
                break
        else:
            status_code, label = HTTPStatus.INTERNAL_SERVER_ERROR, "Application error"

        if status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"{operation_name} - {label}: {error.message}", exc_info=error)
            detail = f"{operation_name} failed: {error.message}"
        else:
            logger.warning(f"{operation_name} - {label}: {error.message}")
            detail = error.message
        return HTTPException(status_code=status_code, detail=detail)

    logger.error(f"{operation_name} - Unexpected error: {error}", exc_info=error)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"{operation_name} failed. Please check server logs or contact support."
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle common API errors consistently across endpoints.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Provision workspace")

    Returns:
        Decorated function that handles errors uniformly

    Example:
        @router.post("/provision")
        @handle_api_errors("Provision workspace")
        def provision(...):
            return service.provision_workspace(...)
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e) from e

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e) from e

        # Return appropriate wrapper based on whether the function is async
        if inspect.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator
