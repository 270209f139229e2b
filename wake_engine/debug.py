import json
import logging
from collections import deque
from datetime import datetime, timezone

from wake_engine.constants import DEBUG_EVENT_HISTORY


class WakeDebugLogger:
    """Recent connection lifecycle events, served by ``GET /debug/events``."""

    def __init__(self, max_events: int = DEBUG_EVENT_HISTORY):
        self.logger = logging.getLogger("wake_engine.debug")
        self.events = deque(maxlen=max_events)

    def log_ws_event(self, event_type: str, session_id: str, details: dict = None):
        """Log WebSocket events (connect, disconnect, wake_detected, decode_error)."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "session_id": session_id,
            "details": details or {},
        }
        self.events.append(entry)
        self.logger.debug("[WS] %s: %s", event_type, json.dumps(entry))

    def get_recent_events(self, limit: int = 100) -> list:
        """Return recent debug events, oldest first."""
        if limit <= 0:
            return []
        return list(self.events)[-limit:]


debug_logger = WakeDebugLogger()
