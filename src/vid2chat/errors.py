"""Exception classes for vid2chat."""

from __future__ import annotations

from typing import Any, Dict, Optional


class Vid2ChatError(Exception):
    """Base exception for all vid2chat errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class InvalidInputError(Vid2ChatError):
    """Empty or malformed request (e.g. a video with no transcript)."""

    def __init__(
        self,
        message: str = "Invalid input",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=400,
            code="INVALID_INPUT",
            details=details,
        )


class NotFoundError(Vid2ChatError):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        if resource_id:
            message += f" with id: {resource_id}"
        error_details = details or {}
        error_details["resource"] = resource
        if resource_id:
            error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            status_code=404,
            code="NOT_FOUND",
            details=error_details,
        )


class CollaboratorFailure(Vid2ChatError):
    """An external collaborator failed or returned an unusable payload."""

    def __init__(
        self,
        service: str,
        message: Optional[str] = None,
        code: str = "COLLABORATOR_FAILURE",
        details: Optional[Dict[str, Any]] = None,
    ):
        error_message = message or f"External service '{service}' failed"
        error_details = details or {}
        error_details["service"] = service
        super().__init__(
            message=error_message,
            status_code=502,
            code=code,
            details=error_details,
        )
        self.service = service


class CollaboratorTimeout(Vid2ChatError):
    """An external collaborator did not answer within the configured timeout."""

    def __init__(self, service: str, timeout: float):
        super().__init__(
            message=f"External service '{service}' timed out after {timeout:g}s",
            status_code=504,
            code="COLLABORATOR_TIMEOUT",
            details={"service": service, "timeout_seconds": timeout},
        )
        self.service = service
        self.timeout = timeout


class RateLimitExceeded(Vid2ChatError):
    """Admission control rejected the request."""

    def __init__(self, retry_after_seconds: int, limit: int):
        super().__init__(
            message="Rate limit exceeded. Please try again later.",
            status_code=429,
            code="RATE_LIMIT_EXCEEDED",
            details={"retryAfterSeconds": retry_after_seconds, "limit": limit},
        )
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
