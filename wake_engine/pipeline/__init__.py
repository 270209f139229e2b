"""Per-connection pipeline: sessions and the connection registry.

The registry owns the WebSocket receive loop; each ``Session`` owns one
recognizer handle and turns audio chunks into outbound events.
"""
