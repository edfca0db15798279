"""Inbound live-channel frames, one model per event name.

Frames are JSON objects whose ``type`` key names the event. They are parsed
through :data:`client_event_adapter` before dispatch so handlers only ever
see a validated shape.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.models.enums import MessageType
from app.schemas.messages import AttachmentPayload


class _ClientEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SendMessageEvent(_ClientEvent):
    type: Literal["send_message"]
    content: str | None = None
    message_type: MessageType = MessageType.TEXT
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    reply_to: int | None = None


class EditMessageEvent(_ClientEvent):
    type: Literal["edit_message"]
    message_id: int
    content: str | None = None


class DeleteMessageEvent(_ClientEvent):
    type: Literal["delete_message"]
    message_id: int


class AddReactionEvent(_ClientEvent):
    type: Literal["add_reaction"]
    message_id: int
    emoji: str | None = Field(default=None, max_length=32)


class RemoveReactionEvent(_ClientEvent):
    type: Literal["remove_reaction"]
    message_id: int


class TypingStartEvent(_ClientEvent):
    type: Literal["typing_start"]


class TypingStopEvent(_ClientEvent):
    type: Literal["typing_stop"]


class UpdateStatusEvent(_ClientEvent):
    type: Literal["update_status"]
    status: str = Field(..., min_length=1, max_length=32)


class PrivateMessageEvent(_ClientEvent):
    type: Literal["private_message"]
    recipient_id: int
    content: str | None = None


class PingEvent(_ClientEvent):
    type: Literal["ping"]


class PongEvent(_ClientEvent):
    type: Literal["pong"]


ClientEvent = Annotated[
    Union[
        SendMessageEvent,
        EditMessageEvent,
        DeleteMessageEvent,
        AddReactionEvent,
        RemoveReactionEvent,
        TypingStartEvent,
        TypingStopEvent,
        UpdateStatusEvent,
        PrivateMessageEvent,
        PingEvent,
        PongEvent,
    ],
    Field(discriminator="type"),
]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)
