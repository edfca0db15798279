"""REST mirror of the live-channel message operations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_hub, get_optional_user, require_moderator
from app.core.errors import ValidationFailed
from app.database import get_db
from app.models import User
from app.monitoring.metrics import chat_messages_total
from app.schemas import (
    ChatStatsEnvelope,
    MessageCreate,
    MessageEnvelope,
    MessageListResponse,
    MessageSearchResponse,
    MessageUpdate,
    OnlineUsersResponse,
    Pagination,
    ReactionEnvelope,
    ReactionRequest,
    StatusEnvelope,
)
from app.services.messages import MessageService, serialize_message, serialize_reactions
from huddle.realtime import RealtimeHub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _reaction_event(message) -> dict:
    return {
        "message_id": message.id,
        "reactions": [reaction.model_dump(mode="json") for reaction in serialize_reactions(message)],
    }


@router.get("/messages", response_model=MessageListResponse)
def list_messages(
    page: int = Query(1),
    limit: int = Query(50),
    search: str | None = Query(default=None, max_length=200),
    db: Session = Depends(get_db),
    _user: User | None = Depends(get_optional_user),
) -> MessageListResponse:
    """Return one page of room history, oldest message first."""

    result = MessageService(db).list_page(page, limit, search=search)
    return MessageListResponse(
        messages=[serialize_message(message) for message in result.messages],
        pagination=Pagination(page=result.page, limit=result.limit, has_more=result.has_more),
    )


@router.post("/messages", response_model=MessageEnvelope, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> MessageEnvelope:
    message = MessageService(db).send(
        current_user,
        payload.content,
        message_type=payload.message_type,
        attachments=payload.attachments,
        reply_to=payload.reply_to,
    )
    chat_messages_total.labels("send", "rest").inc()
    serialized = serialize_message(message)
    await hub.publish("new_message", serialized.model_dump(mode="json"))
    return MessageEnvelope(message=serialized)


@router.put("/messages/{message_id}", response_model=MessageEnvelope)
async def edit_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> MessageEnvelope:
    message = MessageService(db).edit(current_user, message_id, payload.content)
    chat_messages_total.labels("edit", "rest").inc()
    serialized = serialize_message(message)
    await hub.publish("message_edited", serialized.model_dump(mode="json"))
    return MessageEnvelope(message=serialized)


@router.delete("/messages/{message_id}", response_model=StatusEnvelope)
async def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> StatusEnvelope:
    message, changed = MessageService(db).soft_delete(current_user, message_id)
    if changed:
        chat_messages_total.labels("delete", "rest").inc()
        await hub.publish("message_deleted", {"message_id": message.id})
    return StatusEnvelope(message="Message deleted successfully")


@router.post("/messages/{message_id}/reactions", response_model=ReactionEnvelope)
async def add_reaction(
    message_id: int,
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> ReactionEnvelope:
    message = MessageService(db).add_reaction(current_user, message_id, payload.emoji)
    chat_messages_total.labels("react", "rest").inc()
    await hub.publish("reaction_added", _reaction_event(message))
    return ReactionEnvelope(message="Reaction added successfully", reactions=serialize_reactions(message))


@router.delete("/messages/{message_id}/reactions", response_model=ReactionEnvelope)
async def remove_reaction(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> ReactionEnvelope:
    message = MessageService(db).remove_reaction(current_user, message_id)
    chat_messages_total.labels("unreact", "rest").inc()
    await hub.publish("reaction_removed", _reaction_event(message))
    return ReactionEnvelope(
        message="Reaction removed successfully", reactions=serialize_reactions(message)
    )


@router.get("/search", response_model=MessageSearchResponse)
def search_messages(
    q: str | None = Query(default=None, max_length=200),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    _user: User | None = Depends(get_optional_user),
) -> MessageSearchResponse:
    if not q or not q.strip():
        raise ValidationFailed("Search query is required")
    messages = MessageService(db).search(q, user_id=user_id)
    return MessageSearchResponse(
        messages=[serialize_message(message) for message in messages],
        query=q.strip(),
    )


@router.get("/stats", response_model=ChatStatsEnvelope)
def chat_stats(
    db: Session = Depends(get_db),
    _moderator: User = Depends(require_moderator),
) -> ChatStatsEnvelope:
    return ChatStatsEnvelope(stats=MessageService(db).stats())


@router.get("/online", response_model=OnlineUsersResponse)
def online_users(
    _user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> OnlineUsersResponse:
    return OnlineUsersResponse(users=hub.online_users())
