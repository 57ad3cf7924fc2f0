"""Adapters – HTTP client and FastAPI event-request endpoint."""
