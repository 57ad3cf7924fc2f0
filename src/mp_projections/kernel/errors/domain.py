"""Domain errors – malformed events, commands and requesters."""

from __future__ import annotations

from typing import Any

from mp_projections.kernel.errors.base import BaseError


class DomainError(BaseError):
    """An event, command or projection rule was broken."""

    default_code = "domain_error"


class ValidationError(DomainError):
    """An event, command or requester was built from invalid input.

    ``errors`` optionally lists per-field problems as ``{"field": ..., "msg": ...}``.
    """

    default_code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors: list[dict[str, Any]] = list(errors or [])

    @classmethod
    def for_field(cls, field: str, msg: str) -> "ValidationError":
        return cls(msg, errors=[{"field": field, "msg": msg}])

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


__all__ = ["DomainError", "ValidationError"]
