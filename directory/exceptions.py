"""
Error types for the directory services.

Each error carries the HTTP status the admin API reports it with.
"""

from typing import Any, Optional


class DirectoryError(Exception):
    """Base exception for all directory errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DirectoryError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field, **details} if field else details,
            status_code=400,
        )


class AuthorizationError(DirectoryError):
    """Raised when the caller is not an authenticated admin."""

    def __init__(self, message: str = "Unauthorized. Admin access required."):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


class BoostsDisabledError(DirectoryError):
    """Raised when manual boosts are switched off in the scoring config."""

    def __init__(self):
        super().__init__(
            message="Manual quality score boosts are currently disabled in configuration",
            error_code="BOOSTS_DISABLED",
            status_code=403,
        )


class NotFoundError(DirectoryError):
    """Raised when a resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": str(identifier)},
            status_code=404,
        )
