"""HTTP adapter – HttpxHttpClient."""
from __future__ import annotations

from typing import Any

import httpx

from mp_projections.kernel.errors import ExternalServiceError, InfrastructureTimeoutError
from mp_projections.observability.correlation import CorrelationContext


class HttpxHttpClient:
    """Thin async httpx wrapper with structured error mapping.

    Any non-2xx response raises :class:`ExternalServiceError` naming the
    method, URL and status code. Correlation headers from the active
    :class:`CorrelationContext` are added to every request unless the caller
    passes them explicitly.

    Pass *client* to reuse an existing ``httpx.AsyncClient`` (its lifetime
    then stays with the caller).
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout, **kwargs)

    async def __aenter__(self) -> "HttpxHttpClient":
        if self._owns_client:
            await self._client.__aenter__()
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._owns_client:
            await self._client.__aexit__(*args)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        kwargs["headers"] = self._with_correlation(kwargs.get("headers"))
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as exc:
            raise InfrastructureTimeoutError(f"HTTP request timed out: {method} {url}", cause=exc) from exc
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                service=url,
                message=f"HTTP {exc.response.status_code} from {method} {url}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(service=url, message=f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _with_correlation(headers: dict[str, str] | None) -> dict[str, str]:
        merged: dict[str, str] = {}
        ctx = CorrelationContext.get()
        if ctx is not None:
            merged.update(ctx.to_headers())
        if headers:
            explicit = {k.lower() for k in headers}
            merged = {k: v for k, v in merged.items() if k.lower() not in explicit}
            merged.update(headers)
        return merged


__all__ = ["HttpxHttpClient"]
