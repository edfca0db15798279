"""Process-local mapping between authenticated users and live connections."""

from __future__ import annotations

import logging
from typing import Dict, Hashable

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Track which connection currently represents each online user.

    A user holds at most one entry: binding again replaces the previous
    connection. Unbinding a connection that was already replaced leaves the
    newer mapping in place, so an old tab closing never hides a user who is
    still connected elsewhere.

    All methods are synchronous and never await, so they run atomically on
    the event loop.
    """

    def __init__(self) -> None:
        self._by_user: Dict[int, Hashable] = {}
        self._by_connection: Dict[Hashable, int] = {}

    def bind(self, user_id: int, connection: Hashable) -> None:
        previous = self._by_user.get(user_id)
        if previous is not None and previous is not connection:
            logger.info("User %s opened a new connection, replacing the previous one", user_id)
        self._by_user[user_id] = connection
        self._by_connection[connection] = user_id

    def unbind(self, connection: Hashable) -> int | None:
        """Forget *connection*; returns the user it belonged to, if any."""

        user_id = self._by_connection.pop(connection, None)
        if user_id is not None and self._by_user.get(user_id) is connection:
            del self._by_user[user_id]
        return user_id

    def lookup(self, user_id: int) -> Hashable | None:
        return self._by_user.get(user_id)

    def list_active(self) -> set[int]:
        return set(self._by_user)

    def connections_for(self, user_id: int) -> list[Hashable]:
        """Every connection still bound to *user_id*, replaced ones included."""

        return [conn for conn, owner in self._by_connection.items() if owner == user_id]

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._by_user

    def __len__(self) -> int:
        return len(self._by_user)
