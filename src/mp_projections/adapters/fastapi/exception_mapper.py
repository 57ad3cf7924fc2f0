"""FastAPI adapter – FastAPIExceptionMapper."""
from __future__ import annotations

from typing import Any, Callable

from mp_projections.adapters.fastapi.routers import _require_fastapi


class FastAPIExceptionMapper:
    """Register mp_projections error → HTTP status-code mappings on a FastAPI app.

    Error body schema::

        {"code": "validation_error", "message": "...", "detail": {}, "correlation_id": "..."}

    Mappings
    --------
    ``ValidationError``      → 400
    ``DomainError``          → 422
    ``ConfigError``          → 500
    ``TimeoutError``         → 504
    ``ExternalServiceError`` → 502
    ``InfrastructureError``  → 503
    """

    def __init__(self) -> None:
        _require_fastapi()
        from mp_projections.config.validation import ConfigError
        from mp_projections.kernel.errors import (
            DomainError,
            ExternalServiceError,
            InfrastructureError,
            InfrastructureTimeoutError,
            ValidationError,
        )

        # More specific subtypes first
        self._map: list[tuple[type[Exception], int]] = [
            (ValidationError, 400),
            (DomainError, 422),
            (ConfigError, 500),
            (InfrastructureTimeoutError, 504),
            (ExternalServiceError, 502),
            (InfrastructureError, 503),
        ]

    def status_for(self, exc: BaseException) -> int:
        for exc_type, status in self._map:
            if isinstance(exc, exc_type):
                return status
        return 500

    def register(self, app: Any) -> None:
        """Register all error handlers on a ``FastAPI`` or ``Starlette`` app."""
        from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

        from mp_projections.kernel.errors import BaseError
        from mp_projections.observability.correlation import CorrelationContext

        def make_handler(code: int) -> Callable[[Any, Any], Any]:
            def handler(request: Any, exc: Any) -> Any:  # noqa: ARG001
                ctx = CorrelationContext.get()
                body = exc.to_dict() if isinstance(exc, BaseError) else {"code": "error", "message": str(exc)}
                body["correlation_id"] = ctx.correlation_id if ctx is not None else None
                return JSONResponse(status_code=code, content=body)

            return handler

        for exc_type, status in self._map:
            app.add_exception_handler(exc_type, make_handler(status))


__all__ = ["FastAPIExceptionMapper"]
