"""HTTP API for triggering pipeline stages."""
