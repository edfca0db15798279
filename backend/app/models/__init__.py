"""Database models package."""

from .base import Base
from .chat import Message, MessageAttachment, MessageReaction, User
from .enums import AttachmentType, MessageType, ThemePreference, UserRole

__all__ = [
    "Base",
    "User",
    "Message",
    "MessageAttachment",
    "MessageReaction",
    "AttachmentType",
    "MessageType",
    "ThemePreference",
    "UserRole",
]
