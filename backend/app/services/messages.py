"""Message lifecycle operations shared by the REST mirror and the live channel.

Every mutating operation goes through :func:`can_mutate` so the owner-or-admin
rule is enforced the same way regardless of the entry point. Methods commit
their own unit of work and raise :mod:`app.core.errors` exceptions; callers
translate those into an HTTP response or an ``error`` frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.config import get_settings
from app.core.errors import NotFound, PermissionDenied, ValidationFailed
from app.models import (
    Message,
    MessageAttachment,
    MessageReaction,
    MessageType,
    User,
    UserRole,
)
from app.models.chat import as_utc, utcnow
from app.schemas import (
    AttachmentPayload,
    ChatStats,
    MessageAuthor,
    MessageRead,
    ReactionRead,
    ReplyPreview,
)
from app.search import MessageSearchFilters, MessageSearchService

logger = logging.getLogger(__name__)

settings = get_settings()

ROOM_MESSAGE_TYPES = frozenset(
    {MessageType.TEXT, MessageType.IMAGE, MessageType.FILE, MessageType.SYSTEM}
)


def can_mutate(message: Message, actor: User) -> bool:
    """Only the author or an administrator may edit or delete a message."""

    return message.user_id == actor.id or actor.role == UserRole.ADMIN


def _message_options():
    return (
        selectinload(Message.author),
        selectinload(Message.attachments),
        selectinload(Message.reactions),
        selectinload(Message.reply_to),
    )


def serialize_reactions(message: Message) -> list[ReactionRead]:
    return [
        ReactionRead(
            user_id=reaction.user_id, emoji=reaction.emoji, created_at=as_utc(reaction.created_at)
        )
        for reaction in message.reactions
    ]


def serialize_message(message: Message) -> MessageRead:
    """Hydrate a message with its denormalized author and reply preview."""

    author = message.author
    reply = message.reply_to
    return MessageRead(
        id=message.id,
        content=message.content,
        message_type=message.message_type,
        attachments=[
            AttachmentPayload(
                type=attachment.kind,
                url=attachment.url,
                filename=attachment.filename,
                size=attachment.size,
            )
            for attachment in message.attachments
        ],
        user=MessageAuthor(id=author.id, name=author.name, avatar=author.avatar),
        recipient_id=message.recipient_id,
        reply_to=(
            ReplyPreview(id=reply.id, content=reply.content, user_id=reply.user_id)
            if reply is not None
            else None
        ),
        mentions=list(message.mentions or []),
        reactions=serialize_reactions(message),
        is_edited=message.is_edited,
        edited_at=as_utc(message.edited_at),
        created_at=as_utc(message.created_at),
    )


@dataclass(frozen=True)
class MessagePage:
    """One page of room history, already in oldest-first order."""

    messages: list[Message]
    page: int
    limit: int
    has_more: bool


class MessageService:
    """Create, read, mutate and aggregate chat messages."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # Validation -----------------------------------------------------------

    @staticmethod
    def validate_content(content: str | None) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ValidationFailed("Message content is required")
        limit = settings.chat_message_max_length
        if len(content) > limit:
            raise ValidationFailed(f"Message content cannot exceed {limit} characters")
        return content.strip()

    @staticmethod
    def validate_emoji(emoji: str | None) -> str:
        normalized = emoji.strip() if isinstance(emoji, str) else ""
        if not normalized:
            raise ValidationFailed("Emoji is required")
        if len(normalized) > 32:
            raise ValidationFailed("Emoji cannot exceed 32 characters")
        return normalized

    # Lookups --------------------------------------------------------------

    def find(self, message_id: int) -> Message | None:
        """Return the message by id, soft-deleted ones included."""

        stmt = select(Message).where(Message.id == message_id).options(*_message_options())
        return self._db.execute(stmt).scalar_one_or_none()

    def get(self, message_id: int) -> Message:
        message = self.find(message_id)
        if message is None:
            raise NotFound("The specified message does not exist", error="Message not found")
        return message

    def _get_live(self, message_id: int) -> Message:
        """Like :meth:`get`, but soft-deleted messages are frozen and read as missing."""

        message = self.get(message_id)
        if message.is_deleted:
            raise NotFound("The specified message does not exist", error="Message not found")
        return message

    def _authorize(self, message: Message, actor: User, action: str) -> None:
        if not can_mutate(message, actor):
            logger.info(
                "User %s denied %s on message %s owned by %s",
                actor.id,
                action,
                message.id,
                message.user_id,
            )
            raise PermissionDenied(f"You can only {action} your own messages")

    def _refresh(self, message: Message) -> Message:
        self._db.expire(message)
        return self.get(message.id)

    # Lifecycle ------------------------------------------------------------

    def send(
        self,
        actor: User,
        content: str | None,
        *,
        message_type: MessageType = MessageType.TEXT,
        attachments: list[AttachmentPayload] | None = None,
        reply_to: int | None = None,
    ) -> Message:
        normalized = self.validate_content(content)
        if message_type not in ROOM_MESSAGE_TYPES:
            raise ValidationFailed(f"Message type '{message_type.value}' cannot be sent to the room")

        # A reply may point at a soft-deleted message; only existence is checked.
        if reply_to is not None and self.find(reply_to) is None:
            raise ValidationFailed("The message being replied to does not exist")

        message = Message(
            user_id=actor.id,
            message_type=message_type,
            reply_to_id=reply_to,
        )
        message.set_content(normalized)
        for position, attachment in enumerate(attachments or []):
            message.attachments.append(
                MessageAttachment(
                    position=position,
                    kind=attachment.type,
                    url=attachment.url,
                    filename=attachment.filename,
                    size=attachment.size,
                )
            )
        self._db.add(message)
        self._db.commit()
        logger.debug("User %s sent message %s", actor.id, message.id)
        return self._refresh(message)

    def send_private(self, actor: User, recipient_id: int, content: str | None) -> Message:
        normalized = self.validate_content(content)
        recipient = self._db.get(User, recipient_id)
        if recipient is None or not recipient.is_active:
            raise NotFound("The recipient does not exist", error="Recipient not found")

        message = Message(
            user_id=actor.id,
            recipient_id=recipient.id,
            message_type=MessageType.PRIVATE,
        )
        message.set_content(normalized)
        self._db.add(message)
        self._db.commit()
        return self._refresh(message)

    def edit(self, actor: User, message_id: int, content: str | None) -> Message:
        message = self._get_live(message_id)
        self._authorize(message, actor, "edit")
        normalized = self.validate_content(content)

        message.set_content(normalized)
        message.is_edited = True
        message.edited_at = utcnow()
        self._db.commit()
        return self._refresh(message)

    def soft_delete(self, actor: User, message_id: int) -> tuple[Message, bool]:
        """Flag the message as deleted.

        Returns the message and whether this call changed it; deleting an
        already deleted message keeps the original timestamp.
        """

        message = self.get(message_id)
        self._authorize(message, actor, "delete")
        if message.is_deleted:
            return message, False

        message.is_deleted = True
        message.deleted_at = utcnow()
        self._db.commit()
        return self._refresh(message), True

    def add_reaction(self, actor: User, message_id: int, emoji: str | None) -> Message:
        normalized = self.validate_emoji(emoji)
        message = self._get_live(message_id)

        existing = next((r for r in message.reactions if r.user_id == actor.id), None)
        if existing is not None:
            message.reactions.remove(existing)
            self._db.flush()
        message.reactions.append(MessageReaction(user_id=actor.id, emoji=normalized))
        self._db.commit()
        return self._refresh(message)

    def remove_reaction(self, actor: User, message_id: int) -> Message:
        message = self._get_live(message_id)
        message.reactions[:] = [r for r in message.reactions if r.user_id != actor.id]
        self._db.commit()
        return self._refresh(message)

    # Queries --------------------------------------------------------------

    def list_page(
        self, page: int = 1, limit: int | None = None, *, search: str | None = None
    ) -> MessagePage:
        """Fetch a page newest-first, then return it oldest-first.

        Page 1 holds the most recent messages; stitching pages back together
        means prepending later pages.
        """

        page = max(int(page or 1), 1)
        if not limit or limit < 1:
            limit = settings.chat_history_default_limit
        limit = min(limit, settings.chat_history_max_limit)

        stmt = (
            select(Message)
            .where(Message.is_deleted.is_(False), Message.message_type != MessageType.PRIVATE)
            .options(*_message_options())
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        if search and search.strip():
            stmt = stmt.where(Message.content.icontains(search.strip(), autoescape=True))
        messages = list(self._db.execute(stmt).scalars())
        has_more = len(messages) == limit
        messages.reverse()
        return MessagePage(messages=messages, page=page, limit=limit, has_more=has_more)

    def search(self, query: str, user_id: int | None = None) -> list[Message]:
        query = (query or "").strip()
        if not query:
            raise ValidationFailed("Search query is required")
        return MessageSearchService(self._db).search(
            query,
            limit=settings.chat_search_limit,
            filters=MessageSearchFilters(author_id=user_id),
            options=_message_options(),
        )

    def stats(self) -> ChatStats:
        per_message = (
            select(
                MessageReaction.message_id.label("message_id"),
                func.count(MessageReaction.id).label("reaction_total"),
            )
            .group_by(MessageReaction.message_id)
            .subquery()
        )
        stmt = (
            select(
                func.count(Message.id),
                func.coalesce(func.sum(per_message.c.reaction_total), 0),
                func.count(per_message.c.message_id),
            )
            .select_from(Message)
            .outerjoin(per_message, per_message.c.message_id == Message.id)
            .where(Message.is_deleted.is_(False))
        )
        total_messages, total_reactions, with_reactions = self._db.execute(stmt).one()
        total_messages = int(total_messages or 0)
        total_reactions = int(total_reactions or 0)
        average = total_reactions / total_messages if total_messages else 0.0
        return ChatStats(
            total_messages=total_messages,
            total_reactions=total_reactions,
            avg_reactions_per_message=round(average, 4),
            messages_with_reactions=int(with_reactions or 0),
        )
