"""HTTP and WebSocket surface of the confirmation channel."""
