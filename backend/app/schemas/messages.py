"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from app.models.enums import AttachmentType, MessageType


class MessageAuthor(BaseModel):
    """Denormalized sender information embedded in message payloads."""

    id: int
    name: str
    avatar: str | None = None


class AttachmentPayload(BaseModel):
    """Attachment descriptor as supplied by clients and returned in payloads."""

    type: AttachmentType
    url: str | None = Field(default=None, max_length=1024)
    filename: str | None = Field(default=None, max_length=255)
    size: int | None = Field(default=None, ge=0)


class ReactionRead(BaseModel):
    user_id: int
    emoji: str
    created_at: datetime


class ReplyPreview(BaseModel):
    """Compact view of the message being replied to."""

    id: int
    content: str
    user_id: int


class MessageRead(BaseModel):
    """Fully hydrated chat message."""

    id: int
    content: str
    message_type: MessageType
    attachments: list[AttachmentPayload] = []
    user: MessageAuthor
    recipient_id: int | None = None
    reply_to: ReplyPreview | None = None
    mentions: list[str] = []
    reactions: list[ReactionRead] = []
    is_edited: bool = False
    edited_at: datetime | None = None
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def formatted_time(self) -> str:
        return self.created_at.strftime("%I:%M %p")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def reaction_count(self) -> int:
        return len(self.reactions)


class MessageCreate(BaseModel):
    """Payload for sending a message to the shared room."""

    content: str | None = None
    message_type: MessageType = MessageType.TEXT
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    reply_to: int | None = None


class MessageUpdate(BaseModel):
    content: str | None = None


class ReactionRequest(BaseModel):
    emoji: str | None = Field(default=None, max_length=32)


class MessageEnvelope(BaseModel):
    success: bool = True
    message: MessageRead


class StatusEnvelope(BaseModel):
    success: bool = True
    message: str


class ReactionEnvelope(BaseModel):
    success: bool = True
    message: str
    reactions: list[ReactionRead]


class Pagination(BaseModel):
    page: int
    limit: int
    has_more: bool


class MessageListResponse(BaseModel):
    success: bool = True
    messages: list[MessageRead]
    pagination: Pagination


class MessageSearchResponse(BaseModel):
    success: bool = True
    messages: list[MessageRead]
    query: str


class ChatStats(BaseModel):
    total_messages: int = 0
    total_reactions: int = 0
    avg_reactions_per_message: float = 0.0
    messages_with_reactions: int = 0


class ChatStatsEnvelope(BaseModel):
    success: bool = True
    stats: ChatStats


class OnlineUsersResponse(BaseModel):
    success: bool = True
    users: list[int]
