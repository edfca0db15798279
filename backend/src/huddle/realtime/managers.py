"""Room membership and fan-out for the live chat channel."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Set

from fastapi import status
from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.config import get_settings
from app.monitoring.metrics import realtime_connections, realtime_events_total

from .registry import SessionRegistry

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def event_payload(event: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build an outbound frame: the event name under ``type`` plus its fields."""

    return {"type": event, **(data or {})}


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RoomConnectionManager:
    """Track active WebSocket connections per named room."""

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            bucket = self._connections.setdefault(room, set())
            if websocket not in bucket:
                bucket.add(websocket)
                realtime_connections.labels("rooms").inc()

    async def disconnect(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            connections = self._connections.get(room)
            if connections and websocket in connections:
                connections.remove(websocket)
                realtime_connections.labels("rooms").dec()
                if not connections:
                    self._connections.pop(room, None)

    def members(self, room: str) -> set[WebSocket]:
        return set(self._connections.get(room, set()))

    def rooms(self) -> list[str]:
        return list(self._connections)

    async def broadcast(
        self,
        room: str,
        payload: dict[str, Any],
        *,
        exclude: Iterable[WebSocket] | None = None,
    ) -> int:
        connections = self.members(room)
        exclude_set = set(exclude or [])
        delivered = 0
        for connection in connections:
            if connection in exclude_set:
                continue
            if await safe_send_json(connection, payload):
                delivered += 1
        return delivered


class RealtimeHub:
    """Owns the Session Registry and the shared broadcast room.

    Created once per process and handed to the live-channel endpoint and to
    the REST mirror so both fan out through the same room.
    """

    def __init__(
        self,
        *,
        room_name: str,
        registry: SessionRegistry | None = None,
        rooms: RoomConnectionManager | None = None,
    ) -> None:
        self.room_name = room_name
        self.registry = registry or SessionRegistry()
        self.rooms = rooms or RoomConnectionManager()

    async def admit(self, user_id: int, websocket: WebSocket) -> None:
        """Record a gate-validated connection and join it to the room."""

        self.registry.bind(user_id, websocket)
        await self.rooms.connect(self.room_name, websocket)

    async def release(self, websocket: WebSocket) -> tuple[int | None, bool]:
        """Drop *websocket*; returns its user and whether that user went offline."""

        user_id = self.registry.unbind(websocket)
        await self.rooms.disconnect(self.room_name, websocket)
        went_offline = user_id is not None and user_id not in self.registry
        return user_id, went_offline

    def online_users(self) -> list[int]:
        return sorted(self.registry.list_active())

    async def publish(self, event: str, data: dict[str, Any]) -> int:
        """Room-wide fan-out, sender included."""

        realtime_events_total.labels("room", "out", event).inc()
        return await self.rooms.broadcast(self.room_name, event_payload(event, data))

    async def publish_from(self, websocket: WebSocket, event: str, data: dict[str, Any]) -> int:
        """Fan-out to every room member except *websocket*."""

        realtime_events_total.labels("room", "out", event).inc()
        return await self.rooms.broadcast(
            self.room_name, event_payload(event, data), exclude={websocket}
        )

    async def send(self, websocket: WebSocket, event: str, data: dict[str, Any]) -> bool:
        realtime_events_total.labels("direct", "out", event).inc()
        return await safe_send_json(websocket, event_payload(event, data))

    async def send_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Best-effort delivery to the user's current connection."""

        connection = self.registry.lookup(user_id)
        if connection is None:
            return False
        return await self.send(connection, event, data)  # type: ignore[arg-type]

    async def disconnect_user(
        self,
        user_id: int,
        *,
        code: int = status.WS_1008_POLICY_VIOLATION,
        reason: str = "",
    ) -> bool:
        """Close and release every connection of *user_id*.

        Returns whether the user was online before the call.
        """

        went_offline = False
        for websocket in self.registry.connections_for(user_id):
            if websocket.application_state == WebSocketState.CONNECTED:  # type: ignore[attr-defined]
                try:
                    await websocket.close(code=code, reason=reason)  # type: ignore[attr-defined]
                except RuntimeError as exc:
                    logger.debug("Connection of user %s already closing: %s", user_id, exc)
            _, offline = await self.release(websocket)  # type: ignore[arg-type]
            went_offline = went_offline or offline
        if went_offline:
            logger.info("Disconnected user %s (code %s)", user_id, code)
        return went_offline

    async def close_all(self) -> None:
        for room in self.rooms.rooms():
            for websocket in self.rooms.members(room):
                if websocket.application_state == WebSocketState.CONNECTED:
                    try:
                        await websocket.close(code=status.WS_1001_GOING_AWAY)
                    except RuntimeError:
                        continue
                await self.release(websocket)


_hub: RealtimeHub | None = None


def get_realtime_hub() -> RealtimeHub:
    global _hub
    if _hub is None:
        _hub = RealtimeHub(room_name=get_settings().chat_room_name)
    return _hub


async def startup_realtime() -> None:
    hub = get_realtime_hub()
    logger.info("Realtime hub ready, broadcasting to room '%s'", hub.room_name)


async def shutdown_realtime() -> None:
    global _hub
    if _hub is not None:
        await _hub.close_all()
    _hub = None


__all__ = [
    "RealtimeHub",
    "RoomConnectionManager",
    "event_payload",
    "get_realtime_hub",
    "safe_send_json",
    "shutdown_realtime",
    "startup_realtime",
    "timestamp",
]
