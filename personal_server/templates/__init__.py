"""Text templates rendered by personal-server."""
