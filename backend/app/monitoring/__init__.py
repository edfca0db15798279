"""In-process metrics for the chat service."""

from .metrics import (
    chat_messages_total,
    realtime_connections,
    realtime_events_total,
    realtime_rejected_connections_total,
)
from .registry import MetricsRegistry, registry

__all__ = [
    "MetricsRegistry",
    "chat_messages_total",
    "realtime_connections",
    "realtime_events_total",
    "realtime_rejected_connections_total",
    "registry",
]
