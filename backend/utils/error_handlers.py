"""
Error handling decorators and utilities for API endpoints.

This module centralizes the translation of application exceptions into
HTTP responses so endpoints only deal with the happy path.
"""

import inspect
from functools import wraps
from typing import Callable
from fastapi import HTTPException
import logging

from constants import HTTPStatus
from exceptions import (
    ApplicationError,
    ConfigurationError,
    ExternalManagerError,
    InvalidInputError,
    NotFoundError,
    SpawnError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_exception(operation_name: str, e: Exception) -> HTTPException:
    """
    Convert an exception raised by an endpoint into an HTTPException.

    Args:
        operation_name: Human-readable name of the operation
        e: The exception raised

    Returns:
        HTTPException carrying the status code for the exception type
    """
    if isinstance(e, InvalidInputError):
        logger.warning(f"{operation_name} - Invalid input: {e.message}")
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=e.message)
    if isinstance(e, ValidationError):
        logger.warning(f"{operation_name} - Validation error: {e.message}")
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=e.message)
    if isinstance(e, ConfigurationError):
        logger.warning(f"{operation_name} - Configuration error: {e.message}")
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=e.message)
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=e.message)
    if isinstance(e, SpawnError):
        logger.error(f"{operation_name} - Spawn error: {e.message}")
        return HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Broadcast process failed to start: {e.message}"
        )
    if isinstance(e, ExternalManagerError):
        logger.error(f"{operation_name} - Process manager error: {e.message}")
        return HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail=f"Process manager unavailable: {e.message}"
        )
    if isinstance(e, ApplicationError):
        logger.error(f"{operation_name} - Application error: {e.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"{operation_name} failed: {e.message}"
        )

    logger.error(f"{operation_name} - Unexpected error: {e}", exc_info=True)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"{operation_name} failed. Please check server logs."
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle application errors consistently across endpoints.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Stream start")

    Example:
        @router.post("/stream/start")
        @handle_api_errors("Stream start")
        async def start_stream(...):
            return await supervisor.start_stream(...)
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
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e) from e

        # Return appropriate wrapper based on whether the function is async
        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
