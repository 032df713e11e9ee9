"""Event type constants for the wizlan-bridge event bus.

The engine publishes using these types; subscribers (the WebSocket stream,
bridging code) filter on them.
"""

from __future__ import annotations


class EventType:
    """Namespace for event type string constants."""

    # Device events
    DEVICE_DISCOVERED = "device.discovered"
    DEVICE_STATE_CHANGED = "device.state_changed"
