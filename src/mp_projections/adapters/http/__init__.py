"""HTTP adapter – async HTTP client used for remote event requests."""
from mp_projections.adapters.http.client import HttpxHttpClient

__all__ = ["HttpxHttpClient"]
