"""Realtime helpers for the live chat channel."""

from .managers import (  # noqa: F401
    RealtimeHub,
    RoomConnectionManager,
    event_payload,
    get_realtime_hub,
    safe_send_json,
    shutdown_realtime,
    startup_realtime,
    timestamp,
)
from .registry import SessionRegistry  # noqa: F401

__all__ = [
    "RealtimeHub",
    "RoomConnectionManager",
    "SessionRegistry",
    "event_payload",
    "get_realtime_hub",
    "safe_send_json",
    "shutdown_realtime",
    "startup_realtime",
    "timestamp",
]
