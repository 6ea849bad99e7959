"""Storywire exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from StorywireError for easy catching.
"""

from __future__ import annotations


class StorywireError(Exception):
    """Base exception for all Storywire errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "storywire_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(StorywireError):
    """Invalid input provided.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(StorywireError):
    """Resource not found.

    Raised when a requested resource (project, story, webhook event) doesn't exist.

    Attributes:
        resource_type: Type of resource (e.g., "project", "story").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(StorywireError):
    """Storage operation failed."""

    code: str = "storage_error"


class ConfigurationError(StorywireError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"


class DeliveryError(StorywireError):
    """A single webhook delivery attempt failed.

    Raised by the delivery transport and consumed by the dispatcher, which
    decides from ``retryable`` whether another attempt is worthwhile.

    Attributes:
        retryable: True for timeouts, connection errors and 5xx responses.
        status_code: HTTP status of the response, if one was received.
    """

    code: str = "delivery_error"

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        status_code: int | None = None,
    ) -> None:
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "retryable": self.retryable,
                "status_code": self.status_code,
                "message": self.message,
            }
        }
