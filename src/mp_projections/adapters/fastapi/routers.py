"""FastAPI adapter – event-request router.

Serves the endpoint other services' :class:`EventRequester` instances call:
``POST {path}`` with a JSON array of aggregate root ids, optionally suffixed
with ``/{point_in_time}``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from mp_projections.application.projections.stores import EventSource
from mp_projections.kernel.events import events_to_json
from mp_projections.observability.logging import get_logger

_log = get_logger(__name__)


def _require_fastapi() -> None:
    try:
        import fastapi  # noqa: F401
    except ImportError as exc:
        raise ImportError(
            "Install 'mp-projections[fastapi]' to use the FastAPI adapter"
        ) from exc


def FastAPIEventRequestRouter(
    event_source: EventSource,
    path: str = "/EventRequest",
    tags: list[str] | None = None,
) -> Any:
    """Return a router answering event requests from *event_source*.

    Parameters
    ----------
    event_source:
        The service's local event log.
    path:
        Route for the current-state request; the as-of variant is
        ``{path}/{point_in_time}`` (ISO-8601).
    tags:
        OpenAPI tags for the generated routes.

    The response is a JSON array of event envelopes ordered by timestamp.
    The caller's ``X-Correlation-ID`` header is adopted for the duration of
    the request.
    """
    _require_fastapi()
    from fastapi import APIRouter, Body, Request, Response  # type: ignore[import-untyped]

    from mp_projections.observability.correlation import CorrelationContext

    router = APIRouter(tags=tags or ["events"])

    async def _answer(request: Request, ids: list[UUID], point_in_time: datetime | None) -> Response:
        ctx = CorrelationContext.set_from_headers(dict(request.headers))
        events = await event_source.query(list(dict.fromkeys(ids)), point_in_time)
        _log.info(
            "event_request.served",
            id_count=len(ids),
            event_count=len(events),
            point_in_time=point_in_time.isoformat() if point_in_time else None,
            correlation_id=ctx.correlation_id,
        )
        body = events_to_json(sorted(events, key=lambda e: e.timestamp))
        return Response(content=body, media_type="application/json")

    @router.post(path)
    async def request_events(request: Request, ids: list[UUID] = Body(...)) -> Response:
        """Return every event for the posted aggregate root ids."""
        return await _answer(request, ids, None)

    @router.post(f"{path}/{{point_in_time}}")
    async def request_events_as_of(
        request: Request,
        point_in_time: datetime,
        ids: list[UUID] = Body(...),
    ) -> Response:
        """Return the events for the posted ids with ``timestamp <= point_in_time``."""
        return await _answer(request, ids, point_in_time)

    return router


__all__ = ["FastAPIEventRequestRouter"]
