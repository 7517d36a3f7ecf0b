"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


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


class InvalidCalendarConfigException(ConfigurationException):
    """
    The working calendar cannot produce correct SLA numbers.

    Raised at startup; the process must refuse to serve.
    """


class StorageUnavailableException(RepositoryException):
    """The issue store could not be reached during an escalation cycle."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(f"Issue store unavailable: {message}", details)


class ConcurrentModificationException(RepositoryException):
    """A compare-and-swap write lost against a concurrent update."""

    def __init__(self, issue_id: str, expected_version: int):
        self.issue_id = issue_id
        self.expected_version = expected_version
        super().__init__(
            f"Issue {issue_id} changed since version {expected_version}",
            {"issue_id": issue_id, "expected_version": expected_version}
        )
