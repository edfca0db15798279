from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Global roles a user account can hold."""

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


class MessageType(str, Enum):
    """Kinds of chat messages."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"
    PRIVATE = "private"


class AttachmentType(str, Enum):
    """Kinds of attachment descriptors carried by a message."""

    IMAGE = "image"
    FILE = "file"
    LINK = "link"


class ThemePreference(str, Enum):
    """UI theme preference stored per user."""

    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"
