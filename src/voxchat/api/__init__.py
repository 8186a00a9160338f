"""VoxChat HTTP and WebSocket API."""
