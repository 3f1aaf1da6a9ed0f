"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """Exception for notification webhook failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Webhook", message, details)


class InvalidTransitionError(DomainException):
    """Raised when a status change is not allowed from the current status."""

    def __init__(
        self,
        current: Any,
        proposed: Any,
        reason: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.current = current
        self.proposed = proposed
        current_value = getattr(current, "value", current)
        proposed_value = getattr(proposed, "value", proposed)
        message = f"Cannot transition from {current_value} to {proposed_value}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            details or {"current": current_value, "proposed": proposed_value}
        )


class UnknownStatusError(DomainException):
    """Raised when a value outside a closed status enumeration is used."""

    def __init__(self, value: Any, enum_name: str, details: Optional[dict] = None):
        self.value = value
        self.enum_name = enum_name
        super().__init__(
            f"Unknown {enum_name} value: {value!r}",
            details or {"value": str(value), "enum": enum_name}
        )
