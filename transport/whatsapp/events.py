"""
In-memory bridge event channel.

Every best-effort path (resolution, webhook, reply, reconnect) records what
happened here in addition to logging, so tests and operators can observe
faults that are otherwise swallowed.
- Bounded size (FIFO eviction)
- Non-blocking
- No persistence
- Metadata only (no message bodies)
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Event kinds
CONNECTING = "connecting"
CONNECTED = "connected"
DISCONNECTED = "disconnected"
SESSION_REVOKED = "session_revoked"
RECONNECT_SCHEDULED = "reconnect_scheduled"
RECONNECT_FAILED = "reconnect_failed"
RESOLUTION_FAILED = "resolution_failed"
WEBHOOK_FAILED = "webhook_failed"
REPLY_FAILED = "reply_failed"
MESSAGE_FORWARDED = "message_forwarded"


@dataclass
class BridgeEvent:
    """One observable thing that happened inside the bridge."""
    kind: str
    detail: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


class EventChannel:
    """Bounded in-memory store of recent bridge events."""

    def __init__(self, max_events: int = 500):
        self.max_events = max_events
        self.events: deque = deque(maxlen=max_events)

    def emit(self, kind: str, detail: str = "", **data: Any) -> BridgeEvent:
        """Record an event. Never raises into the caller."""
        event = BridgeEvent(kind=kind, detail=detail, data=data)
        try:
            self.events.append(event)
        except Exception as e:
            logger.debug(f"Failed to record bridge event: {e}")
        return event

    def of_kind(self, kind: str) -> List[BridgeEvent]:
        return [e for e in self.events if e.kind == kind]

    def last(self, kind: Optional[str] = None) -> Optional[BridgeEvent]:
        """Most recent event, optionally filtered by kind."""
        for event in reversed(self.events):
            if kind is None or event.kind == kind:
                return event
        return None
