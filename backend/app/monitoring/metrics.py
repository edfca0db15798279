"""Metric definitions for the chat service."""

from __future__ import annotations

from .registry import registry


realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of live-channel events processed, by topic, direction and action.",
    label_names=("topic", "direction", "action"),
)

realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of active websocket connections handled locally.",
    label_names=("scope",),
)

chat_messages_total = registry.counter(
    "chat_messages_total",
    "Message lifecycle operations completed, by operation and entry point.",
    label_names=("operation", "channel"),
)

realtime_rejected_connections_total = registry.counter(
    "realtime_rejected_connections_total",
    "Live-channel connections refused by the authentication gate.",
    label_names=("reason",),
)
