"""
Custom exception classes for the application.

This module defines domain-specific exceptions that provide better error handling
and clearer error messages throughout the application.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    def __init__(self, message: str, missing_keys: list[str] | None = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when validation fails"""

    def __init__(self, message: str, invalid_fields: dict | None = None):
        details = {"invalid_fields": invalid_fields} if invalid_fields else {}
        super().__init__(message, details)


class InvalidInputError(ValidationError):
    """Raised when a stream request is rejected before anything is spawned"""
    pass


class SpawnError(ApplicationError):
    """Raised when the broadcast process (or the external manager) fails to launch"""

    def __init__(self, stream_id: str, message: str):
        details = {"stream_id": stream_id}
        super().__init__(message, details)


class NotFoundError(ApplicationError):
    """Raised when a stream is not known to the supervisor"""

    def __init__(self, stream_id: str, message: str | None = None):
        details = {"stream_id": stream_id}
        super().__init__(message or f"Stream {stream_id} not found", details)


class StreamConflictError(ApplicationError):
    """Raised when a stream identifier is already registered"""

    def __init__(self, stream_id: str):
        super().__init__(f"Stream {stream_id} is already registered", {"stream_id": stream_id})


class ExternalManagerError(ApplicationError):
    """Raised when a command or query sent to the external process manager fails"""

    def __init__(self, command: str, message: str, returncode: int | None = None):
        details = {"command": command}
        if returncode is not None:
            details["returncode"] = returncode
        super().__init__(message, details)
