"""Error taxonomy shared by the REST mirror and the live channel."""

from __future__ import annotations

from typing import Any

from fastapi import status


class ChatError(Exception):
    """Base class for failures reported to the caller with a uniform shape."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Server error"

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ValidationFailed(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation error"


class AuthenticationFailed(ChatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Authentication failed"


class PermissionDenied(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Access denied"


class NotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class ServiceUnavailable(ChatError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Service unavailable"
