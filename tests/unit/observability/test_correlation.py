"""Unit tests for CorrelationContext."""

from __future__ import annotations

import asyncio

from mp_projections.observability.correlation import CorrelationContext, RequestContext


class TestCorrelationContext:
    def setup_method(self) -> None:
        CorrelationContext.clear()

    def teardown_method(self) -> None:
        CorrelationContext.clear()

    def test_set_and_get(self) -> None:
        ctx = RequestContext.new()
        CorrelationContext.set(ctx)
        assert CorrelationContext.get() is ctx

    def test_get_returns_none_when_unset(self) -> None:
        assert CorrelationContext.get() is None

    def test_get_or_new_creates_once(self) -> None:
        ctx = CorrelationContext.get_or_new()
        assert CorrelationContext.get_or_new() is ctx

    def test_set_from_headers_case_insensitive(self) -> None:
        ctx = CorrelationContext.set_from_headers({"x-correlation-id": "cid", "X-Tenant-ID": "t1"})
        assert ctx.correlation_id == "cid"
        assert ctx.tenant_id == "t1"
        assert ctx.user_id is None
        assert CorrelationContext.get() is ctx

    def test_set_from_headers_falls_back_to_request_id(self) -> None:
        assert CorrelationContext.set_from_headers({"X-Request-ID": "req-1"}).correlation_id == "req-1"

    def test_set_from_headers_generates_id(self) -> None:
        assert CorrelationContext.set_from_headers({}).correlation_id

    def test_context_is_copied_into_tasks(self) -> None:
        CorrelationContext.set(RequestContext(correlation_id="outer"))

        async def read() -> str | None:
            ctx = CorrelationContext.get()
            return ctx.correlation_id if ctx else None

        async def run() -> list[str | None]:
            return list(await asyncio.gather(read(), read()))

        assert asyncio.run(run()) == ["outer", "outer"]


class TestRequestContext:
    def test_to_headers_minimal(self) -> None:
        assert RequestContext(correlation_id="c").to_headers() == {"X-Correlation-ID": "c"}

    def test_to_headers_full(self) -> None:
        headers = RequestContext(correlation_id="c", tenant_id="t", user_id="u").to_headers()
        assert headers == {"X-Correlation-ID": "c", "X-Tenant-ID": "t", "X-User-ID": "u"}

    def test_new_generates_unique_ids(self) -> None:
        assert RequestContext.new().correlation_id != RequestContext.new().correlation_id
