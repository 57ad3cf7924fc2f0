"""Application-layer errors – wiring and orchestration of projection work."""

from __future__ import annotations

from mp_projections.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    """A projection job was set up or orchestrated incorrectly."""

    default_code = "application_error"


__all__ = ["ApplicationError"]
