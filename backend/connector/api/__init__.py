"""HTTP API for the shop connector."""
