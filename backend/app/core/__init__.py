"""Core utilities for the Huddle backend."""

from .errors import (
    AuthenticationFailed,
    ChatError,
    NotFound,
    PermissionDenied,
    ServiceUnavailable,
    ValidationFailed,
)

__all__ = [
    "ChatError",
    "ValidationFailed",
    "AuthenticationFailed",
    "PermissionDenied",
    "NotFound",
    "ServiceUnavailable",
]
