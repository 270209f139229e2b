"""Centralized ID generation utilities for the wake engine."""

import uuid


def generate_session_id() -> str:
    """Generate a unique per-connection session ID.

    Returns:
        ``session-`` followed by an 8-character hex string.
    """
    return f"session-{uuid.uuid4().hex[:8]}"
