"""Database-backed search helpers for room messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from app.models import Message, MessageType


@dataclass(frozen=True)
class MessageSearchFilters:
    """Optional filters that can be applied to message search queries."""

    author_id: int | None = None


class MessageSearchService:
    """Case-insensitive substring search over live room messages."""

    def __init__(self, session: Session):
        self._session = session

    def search(
        self,
        query: str,
        *,
        limit: int,
        filters: MessageSearchFilters | None = None,
        options: Sequence = (),
    ) -> list[Message]:
        """Return up to ``limit`` matches, newest first.

        Soft-deleted and private messages never match.
        """

        if filters is None:
            filters = MessageSearchFilters()

        conditions: list = [
            Message.is_deleted.is_(False),
            Message.message_type != MessageType.PRIVATE,
            self._build_matcher(query),
        ]
        if filters.author_id is not None:
            conditions.append(Message.user_id == filters.author_id)

        stmt = select(Message).where(and_(*conditions))
        if options:
            stmt = stmt.options(*options)
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        return list(self._session.execute(stmt).scalars())

    # Internal helpers -----------------------------------------------------

    def _build_matcher(self, query: str):
        # The query is literal text; LIKE wildcards in it are escaped.
        return Message.content.icontains(query, autoescape=True)
