"""Streaming wake-phrase detection over WebSocket audio.

Each connection owns one recognizer session; every decoded partial or final
transcript is forwarded to the client and checked against the configured
wake phrase.
"""

__version__ = "0.1.0"
