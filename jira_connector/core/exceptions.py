"""Custom exceptions for connector-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class JiraConnectorException(Exception):
    """Base exception for all connector errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for log records and CLI output."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


# ===== JIRA EXCEPTIONS =====


class JiraException(JiraConnectorException):
    """Base exception for Jira-related errors."""


class JiraConnectionError(JiraException):
    """Raised when cannot connect to Jira."""

    def __init__(self, message: str = "Failed to connect to Jira"):
        super().__init__(message, error_code="JIRA_CONNECTION_ERROR")


class JiraAuthenticationError(JiraException):
    """Raised when Jira authentication fails."""

    def __init__(self, message: str = "Jira authentication failed"):
        super().__init__(message, error_code="JIRA_AUTH_ERROR")


class JiraFetchError(JiraException):
    """Raised when a search page cannot be retrieved."""

    def __init__(self, message: str, *, start_at: Optional[int] = None, status_code: Optional[int] = None):
        details: Dict[str, Any] = {}
        if start_at is not None:
            details["start_at"] = start_at
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code="JIRA_FETCH_ERROR", details=details)


# ===== DATABASE EXCEPTIONS =====


class DatabaseException(JiraConnectorException):
    """Base exception for database-related errors."""


class DatabaseConnectionError(DatabaseException):
    """Raised when the store cannot be reached."""

    def __init__(self, message: str = "Failed to connect to database"):
        super().__init__(message, error_code="DB_CONNECTION_ERROR")


class DatabaseQueryError(DatabaseException):
    """Raised when a statement fails."""

    def __init__(self, message: str, query: Optional[str] = None):
        details = {"query": query} if query else {}
        super().__init__(message, error_code="DB_QUERY_ERROR", details=details)


# ===== VALIDATION EXCEPTIONS =====


class ValidationException(JiraConnectorException):
    """Base exception for validation errors."""


class InvalidConfigurationError(ValidationException):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, setting: Optional[str] = None, *, problems: Optional[list[str]] = None):
        details: Dict[str, Any] = {}
        if setting:
            details["setting"] = setting
        if problems:
            details["problems"] = list(problems)
        super().__init__(message, error_code="INVALID_CONFIG", details=details)


# ===== SYNC EXCEPTIONS =====


class SyncCancelledError(JiraConnectorException):
    """Raised when a sync run observes a cancellation request."""

    def __init__(self, message: str = "Synchronization cancelled", *, stage: Optional[str] = None):
        details = {"stage": stage} if stage else {}
        super().__init__(message, error_code="SYNC_CANCELLED", details=details)
