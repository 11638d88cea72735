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


class NotFoundError(ApplicationError):
    """Raised when a requested record does not exist"""

    def __init__(self, resource: str, resource_id: str | None = None, message: str | None = None):
        details = {"resource": resource, "resource_id": resource_id}
        msg = message or f"{resource} not found"
        super().__init__(msg, details)


class AccessDeniedError(ApplicationError):
    """Raised when a user lacks membership or a permission in a workspace"""

    def __init__(self, message: str, workspace_id: str | None = None, permission: str | None = None):
        details = {"workspace_id": workspace_id}
        if permission:
            details["permission"] = permission
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when validation fails"""

    def __init__(self, message: str, invalid_fields: dict | None = None):
        details = {"invalid_fields": invalid_fields} if invalid_fields else {}
        super().__init__(message, details)


class ConflictError(ApplicationError):
    """Raised when a write would duplicate an existing record"""

    def __init__(self, resource: str, message: str):
        super().__init__(message, {"resource": resource})


class LifecycleError(ApplicationError):
    """Raised when a workspace status transition is not allowed"""

    def __init__(self, workspace_id: str, current_status: str, message: str):
        details = {"workspace_id": workspace_id, "current_status": current_status}
        super().__init__(message, details)


class DatabaseError(ApplicationError):
    """Raised when database operations fail"""

    def __init__(self, operation: str, message: str):
        details = {"operation": operation}
        super().__init__(message, details)
