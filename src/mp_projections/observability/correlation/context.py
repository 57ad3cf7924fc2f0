"""Observability – RequestContext, CorrelationContext."""
from __future__ import annotations

import dataclasses
from contextvars import ContextVar
from uuid import uuid4


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Ambient context of one initialization job or inbound event request."""
    correlation_id: str
    tenant_id: str | None = None
    user_id: str | None = None

    @classmethod
    def new(cls, tenant_id: str | None = None, user_id: str | None = None) -> "RequestContext":
        return cls(correlation_id=str(uuid4()), tenant_id=tenant_id, user_id=user_id)

    def to_headers(self) -> dict[str, str]:
        """Headers propagated on outbound event requests."""
        headers = {"X-Correlation-ID": self.correlation_id}
        if self.tenant_id is not None:
            headers["X-Tenant-ID"] = self.tenant_id
        if self.user_id is not None:
            headers["X-User-ID"] = self.user_id
        return headers


_CTX_VAR: ContextVar[RequestContext | None] = ContextVar("_mp_projections_request_ctx", default=None)


class CorrelationContext:
    """Ambient correlation context stored in a ``ContextVar``.

    Tasks spawned for concurrent remote requests copy the context, so every
    outbound call of one initialization pass carries the same correlation id.
    """

    @staticmethod
    def set(ctx: RequestContext) -> None:
        _CTX_VAR.set(ctx)

    @staticmethod
    def get() -> RequestContext | None:
        return _CTX_VAR.get()

    @staticmethod
    def get_or_new() -> RequestContext:
        ctx = _CTX_VAR.get()
        if ctx is None:
            ctx = RequestContext.new()
            _CTX_VAR.set(ctx)
        return ctx

    @staticmethod
    def clear() -> None:
        _CTX_VAR.set(None)

    @staticmethod
    def set_from_headers(headers: dict[str, str]) -> RequestContext:
        """Adopt the caller's correlation id (``X-Correlation-ID`` → ``X-Request-ID`` → new).

        Header names are matched case-insensitively.
        """
        norm = {k.lower(): v for k, v in headers.items()}
        ctx = RequestContext(
            correlation_id=norm.get("x-correlation-id") or norm.get("x-request-id") or str(uuid4()),
            tenant_id=norm.get("x-tenant-id"),
            user_id=norm.get("x-user-id"),
        )
        _CTX_VAR.set(ctx)
        return ctx


__all__ = ["CorrelationContext", "RequestContext"]
