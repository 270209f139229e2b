"""Speech decoder adapters."""
