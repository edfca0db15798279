"""Application service helpers."""

from .messages import MessageService, can_mutate, serialize_message

__all__ = [
    "MessageService",
    "can_mutate",
    "serialize_message",
]
