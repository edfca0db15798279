"""Pydantic schemas exposed by the API."""

from .auth import (
    LoginRequest,
    NotificationPreferences,
    PreferencesEnvelope,
    PreferencesUpdate,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserPreferences,
    UserRead,
    UserStats,
    UserStatsEnvelope,
)
from .events import ClientEvent, client_event_adapter
from .messages import (
    AttachmentPayload,
    ChatStats,
    ChatStatsEnvelope,
    MessageAuthor,
    MessageCreate,
    MessageEnvelope,
    MessageListResponse,
    MessageRead,
    MessageSearchResponse,
    MessageUpdate,
    OnlineUsersResponse,
    Pagination,
    ReactionEnvelope,
    ReactionRead,
    ReactionRequest,
    ReplyPreview,
    StatusEnvelope,
)

__all__ = [
    "LoginRequest",
    "NotificationPreferences",
    "PreferencesEnvelope",
    "PreferencesUpdate",
    "RegisterRequest",
    "TokenResponse",
    "UserEnvelope",
    "UserPreferences",
    "UserRead",
    "UserStats",
    "UserStatsEnvelope",
    "ClientEvent",
    "client_event_adapter",
    "AttachmentPayload",
    "ChatStats",
    "ChatStatsEnvelope",
    "MessageAuthor",
    "MessageCreate",
    "MessageEnvelope",
    "MessageListResponse",
    "MessageRead",
    "MessageSearchResponse",
    "MessageUpdate",
    "OnlineUsersResponse",
    "Pagination",
    "ReactionEnvelope",
    "ReactionRead",
    "ReactionRequest",
    "ReplyPreview",
    "StatusEnvelope",
]
