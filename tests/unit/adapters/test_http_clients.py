"""Unit tests – HTTP adapter."""
from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from mp_projections.adapters.http.client import HttpxHttpClient
from mp_projections.kernel.errors import ExternalServiceError, InfrastructureTimeoutError
from mp_projections.observability.correlation import CorrelationContext, RequestContext


# ---------------------------------------------------------------------------
# Correlation header injection
# ---------------------------------------------------------------------------

class TestCorrelationHeaderInjection:
    """HttpxHttpClient injects correlation headers from CorrelationContext."""

    def teardown_method(self) -> None:
        CorrelationContext.clear()

    @respx.mock
    def test_correlation_id_injected(self) -> None:
        CorrelationContext.set(RequestContext(correlation_id="abc-123"))
        route = respx.post("http://svc/EventRequest").mock(return_value=httpx.Response(200, json=[]))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.post("http://svc/EventRequest", json=[])

        asyncio.run(run())
        assert route.calls.last.request.headers.get("x-correlation-id") == "abc-123"

    @respx.mock
    def test_tenant_and_user_headers_injected(self) -> None:
        CorrelationContext.set(RequestContext(correlation_id="cid", tenant_id="tenant-1", user_id="user-42"))
        route = respx.get("http://svc/ok").mock(return_value=httpx.Response(200))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.get("http://svc/ok")

        asyncio.run(run())
        sent = route.calls.last.request
        assert sent.headers.get("x-tenant-id") == "tenant-1"
        assert sent.headers.get("x-user-id") == "user-42"

    @respx.mock
    def test_no_correlation_context_no_extra_headers(self) -> None:
        CorrelationContext.clear()
        route = respx.get("http://svc/ok").mock(return_value=httpx.Response(200))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.get("http://svc/ok")

        asyncio.run(run())
        assert "x-correlation-id" not in route.calls.last.request.headers

    @respx.mock
    def test_explicit_headers_override_correlation(self) -> None:
        CorrelationContext.set(RequestContext(correlation_id="from-context"))
        route = respx.get("http://svc/ok").mock(return_value=httpx.Response(200))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.get("http://svc/ok", headers={"x-correlation-id": "caller-override"})

        asyncio.run(run())
        assert route.calls.last.request.headers.get("x-correlation-id") == "caller-override"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestHttpxErrorMapping:
    """HttpxHttpClient maps httpx errors to infrastructure errors."""

    @respx.mock
    def test_non_2xx_names_method_url_and_status(self) -> None:
        respx.post("http://svc/EventRequest").mock(return_value=httpx.Response(404))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.post("http://svc/EventRequest", json=[])

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "HTTP 404 from POST http://svc/EventRequest"
        assert exc_info.value.to_dict()["code"] == "external_service_error"

    @respx.mock
    def test_timeout_maps_to_timeout_error(self) -> None:
        respx.get("http://svc/slow").mock(side_effect=httpx.ReadTimeout("slow"))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.get("http://svc/slow")

        with pytest.raises(InfrastructureTimeoutError):
            asyncio.run(run())

    @respx.mock
    def test_connect_error_maps_to_external_service_error(self) -> None:
        respx.get("http://svc/down").mock(side_effect=httpx.ConnectError("refused"))

        async def run() -> None:
            async with HttpxHttpClient() as client:
                await client.get("http://svc/down")

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code is None

    @respx.mock
    def test_200_returns_response(self) -> None:
        respx.get("http://svc/ok").mock(return_value=httpx.Response(200, json={"ok": True}))

        async def run() -> httpx.Response:
            async with HttpxHttpClient() as client:
                return await client.get("http://svc/ok")

        assert asyncio.run(run()).json() == {"ok": True}


class TestClientLifetime:
    @respx.mock
    def test_borrowed_client_is_not_closed(self) -> None:
        respx.get("http://svc/ok").mock(return_value=httpx.Response(200))

        async def run() -> bool:
            async with httpx.AsyncClient() as shared:
                async with HttpxHttpClient(client=shared) as client:
                    await client.get("http://svc/ok")
                return shared.is_closed

        assert asyncio.run(run()) is False

    @respx.mock
    def test_base_url(self) -> None:
        route = respx.get("http://svc/api/ok").mock(return_value=httpx.Response(200))

        async def run() -> None:
            async with HttpxHttpClient(base_url="http://svc/api") as client:
                await client.get("/ok")

        asyncio.run(run())
        assert route.called
