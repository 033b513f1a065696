"""HTTP and WebSocket surface for the ride-pooling service."""
