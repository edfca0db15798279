"""WebSocket endpoint for the shared chat room."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState
from pydantic import ValidationError

from app.config import get_settings
from app.core.errors import AuthenticationFailed, ChatError
from app.core.security import extract_bearer_token, resolve_user
from app.database import get_db_session
from app.models import User
from app.monitoring.metrics import (
    chat_messages_total,
    realtime_events_total,
    realtime_rejected_connections_total,
)
from app.schemas.events import (
    AddReactionEvent,
    DeleteMessageEvent,
    EditMessageEvent,
    PingEvent,
    PongEvent,
    PrivateMessageEvent,
    RemoveReactionEvent,
    SendMessageEvent,
    TypingStartEvent,
    TypingStopEvent,
    UpdateStatusEvent,
    client_event_adapter,
)
from app.services.messages import MessageService, serialize_message, serialize_reactions
from huddle.realtime import RealtimeHub, get_realtime_hub, safe_send_json, timestamp

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAILURE_MESSAGES = {
    "send_message": "Failed to send message",
    "edit_message": "Failed to edit message",
    "delete_message": "Failed to delete message",
    "add_reaction": "Failed to add reaction",
    "remove_reaction": "Failed to remove reaction",
    "private_message": "Failed to send private message",
    "update_status": "Failed to update status",
}
KNOWN_EVENTS = frozenset(FAILURE_MESSAGES) | {"typing_start", "typing_stop", "ping", "pong"}


@dataclass(frozen=True)
class ChatSession:
    """Identity of an admitted connection, detached from any DB session."""

    user_id: int
    name: str
    avatar: str | None


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"type": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def authenticate_connection(websocket: WebSocket) -> ChatSession | None:
    """Connection gate: resolve the user or close the socket before accepting it."""

    token = websocket.query_params.get("token") or extract_bearer_token(
        websocket.headers.get("Authorization")
    )
    if not token:
        realtime_rejected_connections_total.labels("missing_token").inc()
        await websocket.close(
            code=status.WS_1008_POLICY_VIOLATION, reason="Authentication token required"
        )
        return None

    try:
        with get_db_session() as db:
            user = resolve_user(token, db)
            session = ChatSession(user_id=user.id, name=user.name, avatar=user.avatar)
    except AuthenticationFailed as exc:
        logger.info("Rejected chat connection: %s", exc.error)
        realtime_rejected_connections_total.labels("authentication_failed").inc()
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication failed")
        return None
    return session


def _load_actor(db, session: ChatSession) -> User:
    user = db.get(User, session.user_id)
    if user is None or not user.is_active:
        raise AuthenticationFailed("Your account has been deactivated", error="Account deactivated")
    return user


async def _send_error(hub: RealtimeHub, websocket: WebSocket, error: str, message: str) -> None:
    await hub.send(websocket, "error", {"error": error, "message": message})


async def handle_event(
    hub: RealtimeHub,
    websocket: WebSocket,
    session: ChatSession,
    event: Any,
) -> None:
    """Run one validated client event; failures propagate to the caller."""

    if isinstance(event, PingEvent):
        await hub.send(websocket, "pong", {})
        return
    if isinstance(event, PongEvent):
        return

    with get_db_session() as db:
        actor = _load_actor(db, session)
        service = MessageService(db)

        if isinstance(event, TypingStartEvent):
            await hub.publish_from(
                websocket, "user_typing", {"user_id": session.user_id, "name": session.name}
            )

        elif isinstance(event, TypingStopEvent):
            await hub.publish_from(websocket, "user_stopped_typing", {"user_id": session.user_id})

        elif isinstance(event, UpdateStatusEvent):
            await hub.publish_from(
                websocket,
                "user_status_update",
                {"user_id": session.user_id, "status": event.status, "timestamp": timestamp()},
            )

        elif isinstance(event, SendMessageEvent):
            message = service.send(
                actor,
                event.content,
                message_type=event.message_type,
                attachments=event.attachments,
                reply_to=event.reply_to,
            )
            chat_messages_total.labels("send", "ws").inc()
            await hub.publish("new_message", serialize_message(message).model_dump(mode="json"))
            await hub.send(websocket, "message_sent", {"success": True, "message_id": message.id})

        elif isinstance(event, EditMessageEvent):
            message = service.edit(actor, event.message_id, event.content)
            chat_messages_total.labels("edit", "ws").inc()
            await hub.publish("message_edited", serialize_message(message).model_dump(mode="json"))

        elif isinstance(event, DeleteMessageEvent):
            message, changed = service.soft_delete(actor, event.message_id)
            if changed:
                chat_messages_total.labels("delete", "ws").inc()
                await hub.publish("message_deleted", {"message_id": message.id})
            else:
                await hub.send(websocket, "message_deleted", {"message_id": message.id})

        elif isinstance(event, (AddReactionEvent, RemoveReactionEvent)):
            if isinstance(event, AddReactionEvent):
                message = service.add_reaction(actor, event.message_id, event.emoji)
                operation, outbound = "react", "reaction_added"
            else:
                message = service.remove_reaction(actor, event.message_id)
                operation, outbound = "unreact", "reaction_removed"
            chat_messages_total.labels(operation, "ws").inc()
            reactions = [r.model_dump(mode="json") for r in serialize_reactions(message)]
            await hub.publish(outbound, {"message_id": message.id, "reactions": reactions})

        elif isinstance(event, PrivateMessageEvent):
            message = service.send_private(actor, event.recipient_id, event.content)
            chat_messages_total.labels("private", "ws").inc()
            payload = serialize_message(message).model_dump(mode="json")
            delivered = await hub.send_to_user(event.recipient_id, "private_message", payload)
            await hub.send(
                websocket,
                "private_message_sent",
                {"success": True, "message_id": message.id, "delivered": delivered, "message": payload},
            )


async def dispatch_frame(
    hub: RealtimeHub,
    websocket: WebSocket,
    session: ChatSession,
    raw_message: str,
) -> None:
    """Parse one inbound frame and run it, reporting failures to the sender only."""

    try:
        payload = json.loads(raw_message)
    except json.JSONDecodeError:
        await _send_error(hub, websocket, "Invalid payload", "Frames must be JSON objects")
        return

    event_type = payload.get("type") if isinstance(payload, dict) else None
    if not isinstance(event_type, str) or event_type not in KNOWN_EVENTS:
        await _send_error(hub, websocket, "Unsupported event", f"Unknown event type: {event_type!r}")
        return

    realtime_events_total.labels("chat", "in", event_type).inc()
    try:
        event = client_event_adapter.validate_python(payload)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "payload"
        detail = first.get("msg", "invalid value")
        await _send_error(hub, websocket, "Validation error", f"Invalid {field}: {detail}")
        return

    try:
        await handle_event(hub, websocket, session, event)
    except ChatError as exc:
        await _send_error(hub, websocket, exc.error, exc.message)
    except Exception:
        logger.exception("Unhandled error processing %s for user %s", event_type, session.user_id)
        await _send_error(
            hub,
            websocket,
            "Server error",
            FAILURE_MESSAGES.get(event_type, "Failed to process event"),
        )


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Join the shared room and relay chat events until the client leaves."""

    session = await authenticate_connection(websocket)
    if session is None:
        return

    hub = get_realtime_hub()
    await websocket.accept()
    await hub.admit(session.user_id, websocket)
    logger.info("User %s connected to room '%s'", session.user_id, hub.room_name)

    await hub.publish_from(
        websocket,
        "user_connected",
        {
            "user_id": session.user_id,
            "name": session.name,
            "avatar": session.avatar,
            "timestamp": timestamp(),
        },
    )
    await hub.send(websocket, "online_users", {"users": hub.online_users()})

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            await dispatch_frame(hub, websocket, session, raw_message)
    finally:
        user_id, went_offline = await hub.release(websocket)
        logger.info("User %s disconnected from room '%s'", session.user_id, hub.room_name)
        if went_offline:
            await hub.publish(
                "user_disconnected",
                {"user_id": user_id, "name": session.name, "timestamp": timestamp()},
            )
