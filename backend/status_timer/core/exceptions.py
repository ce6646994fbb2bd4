"""
Custom exceptions for the Status Timer service.
Provides meaningful error types for different failure scenarios.
"""
from typing import Any, Optional


class TimerException(Exception):
    """Base exception for all Status Timer errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(TimerException):
    """Raised when command arguments fail validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details, status_code=422)


class IssueSourceError(TimerException):
    """
    Raised when the issue tracker cannot be reached or answers with an error.

    Transient: the item is retried on the next tick.
    """

    def __init__(
        self,
        message: str,
        issue_key: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[str] = None
    ):
        details = {}
        if issue_key:
            details["issue_key"] = issue_key
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = original_error

        super().__init__(message, details, status_code=502)


class IssueNotFoundError(TimerException):
    """Raised when the issue tracker definitively reports an issue as gone."""

    def __init__(self, message: str, issue_key: str):
        super().__init__(message, {"issue_key": issue_key}, status_code=404)


class TrackingRecordNotFoundError(TimerException):
    """Raised when no tracking record exists for a key."""

    def __init__(self, issue_key: str):
        super().__init__(
            f"No tracking data found for issue {issue_key}",
            {"issue_key": issue_key},
            status_code=404
        )


class ThresholdNotFoundError(TimerException):
    """Raised when a threshold update names a status that is not configured."""

    def __init__(self, state: str):
        super().__init__(
            f'"{state}" is not a valid Campaign Status',
            {"state": state},
            status_code=404
        )


class JobNotFoundError(TimerException):
    """Raised when a scheduler operation names a job that is not registered or running."""

    def __init__(self, job_id: str):
        super().__init__(
            f"No scheduled job named {job_id}",
            {"job_id": job_id},
            status_code=404
        )


class PersistenceError(TimerException):
    """Raised when the tracking snapshot cannot be written or read back."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[str] = None
    ):
        details = {}
        if path:
            details["path"] = path
        if original_error:
            details["original_error"] = original_error

        super().__init__(message, details, status_code=500)


class NotificationDeliveryError(TimerException):
    """Raised when the chat transport rejects or fails to deliver a message."""

    def __init__(
        self,
        message: str,
        channel_id: Optional[str] = None,
        slack_error: Optional[str] = None
    ):
        details = {}
        if channel_id:
            details["channel_id"] = channel_id
        if slack_error:
            details["slack_error"] = slack_error

        super().__init__(message, details, status_code=502)


class ConfigurationError(TimerException):
    """Raised when required configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        config_key: str,
        expected_type: Optional[str] = None,
        actual_value: Optional[str] = None
    ):
        details = {
            "config_key": config_key
        }
        if expected_type:
            details["expected_type"] = expected_type
        if actual_value:
            details["actual_value"] = actual_value[:50] if len(str(actual_value)) > 50 else actual_value

        super().__init__(message, details, status_code=500)
