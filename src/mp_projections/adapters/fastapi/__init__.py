"""FastAPI adapter – event-request router and exception mapper."""
from mp_projections.adapters.fastapi.exception_mapper import FastAPIExceptionMapper
from mp_projections.adapters.fastapi.routers import FastAPIEventRequestRouter

__all__ = ["FastAPIEventRequestRouter", "FastAPIExceptionMapper"]
