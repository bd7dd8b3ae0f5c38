"""HTTP and WebSocket routes of the daemon."""
