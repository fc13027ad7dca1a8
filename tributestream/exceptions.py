"""Custom exceptions for the Tributestream checkout core."""

from typing import Any


class TributestreamError(Exception):
    """Base exception for all Tributestream errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize Tributestream error.

        Args:
            message: Error message
            details: Additional error details

        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(TributestreamError):
    """Raised when configuration is invalid or missing."""


class ValidationError(TributestreamError):
    """Raised when input validation fails."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class UnknownPackageError(ValidationError):
    """Raised when a package identifier is not in the pricing catalog."""

    def __init__(self, package_id: str) -> None:
        super().__init__("selected_package", package_id, f"Unknown package '{package_id}'")
        self.package_id = package_id


class CacheError(TributestreamError):
    """Raised when cache operations fail."""


class APIError(TributestreamError):
    """Base class for content service errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_text: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            status_code: HTTP status code
            message: Error message
            response_text: Raw response text from API
            details: Additional error details

        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text


class AuthenticationError(APIError):
    """Raised when authentication fails (401)."""

    def __init__(self, message: str = "Authentication failed", response_text: str | None = None) -> None:
        super().__init__(401, message, response_text)


class PermissionError(APIError):
    """Raised when access is forbidden (403)."""

    def __init__(self, message: str = "Access forbidden", response_text: str | None = None) -> None:
        super().__init__(403, message, response_text)


class NotFoundError(APIError):
    """Raised when resource is not found (404)."""

    def __init__(self, message: str = "Resource not found", response_text: str | None = None) -> None:
        super().__init__(404, message, response_text)


class RateLimitError(APIError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        response_text: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(429, message, response_text)
        self.retry_after = retry_after


class TimeoutError(APIError):
    """Raised when a content service call times out."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        message = f"Operation '{operation}' timed out after {timeout_seconds} seconds"
        super().__init__(408, message, details={"operation": operation, "timeout_seconds": timeout_seconds})
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class SessionNotFoundError(NotFoundError):
    """Raised when a checkout session does not exist or has expired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Checkout session '{session_id}' not found")
        self.session_id = session_id


class ContributionRequestNotFoundError(NotFoundError):
    """Raised when a contribution request does not exist."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Contribution request '{request_id}' not found")
        self.request_id = request_id


class ConflictError(TributestreamError):
    """Raised when a state transition is not permitted."""

    def __init__(self, message: str, current_status: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, {"current_status": current_status, **(details or {})})
        self.current_status = current_status


class SessionConflictError(ConflictError):
    """Raised when a completed checkout session would be modified."""

    def __init__(self, session_id: str, current_status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} checkout session '{session_id}' in status '{current_status}'",
            current_status,
            {"session_id": session_id, "action": action},
        )
        self.session_id = session_id
        self.action = action


class DuplicatePendingRequestError(ConflictError):
    """Raised when a contributor already has a pending request for a tribute."""

    def __init__(self, tribute_id: str, contributor_id: str, existing_id: str) -> None:
        super().__init__(
            f"Contributor '{contributor_id}' already has a pending request for tribute '{tribute_id}'",
            "pending",
            {"tribute_id": tribute_id, "contributor_id": contributor_id, "existing_id": existing_id},
        )
        self.tribute_id = tribute_id
        self.contributor_id = contributor_id
        self.existing_id = existing_id


class RequestAlreadyDecidedError(ConflictError):
    """Raised when responding to a contribution request that is no longer pending."""

    def __init__(self, request_id: str, current_status: str) -> None:
        super().__init__(
            f"Contribution request '{request_id}' was already {current_status}",
            current_status,
            {"request_id": request_id},
        )
        self.request_id = request_id


class InvalidSessionStateError(TributestreamError):
    """Raised when a stored session exists but cannot be interpreted."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"Checkout session '{session_id}' is in an unexpected state: {reason}", {"reason": reason})
        self.session_id = session_id
        self.reason = reason
