"""Application projections – ExternalDataEvent and the event correlators.

A correlator turns ``{projection × selector}`` into foreign ids, fetches the
events for those ids in one round trip, and groups them back onto the
projections that asked for them.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Any, Awaitable, Iterable, Sequence, TypeVar
from uuid import UUID

from mp_projections.adapters.http.client import HttpxHttpClient
from mp_projections.application.projections.requester import EventRequester
from mp_projections.application.projections.selectors import (
    IdSelector,
    ListIdSelector,
    expand_list_selectors,
    select_ids,
)
from mp_projections.application.projections.stores import EventSource
from mp_projections.config.validation import ConfigError, MissingCollaboratorError
from mp_projections.kernel.events import Event, events_from_json, format_timestamp
from mp_projections.observability.logging import get_logger

P = TypeVar("P")
T = TypeVar("T")

_log = get_logger(__name__)


@dataclasses.dataclass
class ExternalDataEvent:
    """Events (ordered by timestamp) to apply to the projection with ``aggregate_root_id``.

    An in-memory join result; never persisted.
    """

    aggregate_root_id: Any
    events: list[Event] = dataclasses.field(default_factory=list)


async def correlate(
    event_source: EventSource,
    projections: Sequence[P],
    *selectors: IdSelector[P],
    point_in_time: datetime | None = None,
    list_selectors: Iterable[ListIdSelector[P]] = (),
) -> list[ExternalDataEvent]:
    """Correlate local events with *projections* using one query.

    Pairs whose foreign id has no events are dropped, so the result may hold
    fewer entries than there are selectors. When no selector yields an id the
    source is not queried and ``[]`` is returned.
    """
    pairs = _pairs(projections, [*selectors, *expand_list_selectors(projections, *list_selectors)])
    if not pairs:
        return []
    events = await event_source.query(_distinct(fid for _, fid in pairs), point_in_time)
    return _group(pairs, events)


async def correlate_remote(
    http_client: HttpxHttpClient | None,
    url: str,
    projections: Sequence[P],
    *selectors: IdSelector[P],
    point_in_time: datetime | None = None,
    list_selectors: Iterable[ListIdSelector[P]] = (),
) -> list[ExternalDataEvent]:
    """Correlate events fetched from another service's event-request endpoint.

    POSTs the distinct foreign ids as a JSON array to *url* (suffixed with
    ``/<ISO timestamp>`` when *point_in_time* is given). A transport failure,
    non-2xx status or undecodable body raises; no events are synthesized.
    """
    if http_client is None:
        raise MissingCollaboratorError("HTTP client", "request events from an external service")
    if not url:
        raise ConfigError("URL of event request endpoint is required to request events from an external service")

    pairs = _pairs(projections, [*selectors, *expand_list_selectors(projections, *list_selectors)])
    if not pairs:
        return []

    ids = _distinct(fid for _, fid in pairs)
    request_url = f"{url}/{format_timestamp(point_in_time)}" if point_in_time is not None else url
    _log.debug("external_data.remote_request", url=request_url, id_count=len(ids))
    response = await http_client.post(request_url, json=[str(i) for i in ids])
    events = events_from_json(response.content)
    return _group(pairs, events)


async def correlate_multi_service(
    http_client: HttpxHttpClient | None,
    projections: Sequence[P],
    *requesters: EventRequester[P],
    point_in_time: datetime | None = None,
) -> list[ExternalDataEvent]:
    """Run :func:`correlate_remote` for every requester concurrently and concatenate the results."""
    if not requesters:
        return []
    if http_client is None:
        raise MissingCollaboratorError("HTTP client", "request events from external services")
    # Expand every requester before any request starts.
    plans = [(requester.url, requester.all_foreign_id_selectors(projections)) for requester in requesters]
    results = await join_all(
        correlate_remote(http_client, url, projections, *selectors, point_in_time=point_in_time)
        for url, selectors in plans
    )
    return [item for result in results for item in result]


async def join_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Run *aws* concurrently and wait for all of them.

    If one fails, or *aws* itself raises while being consumed, the tasks
    already started are cancelled and awaited before the error propagates,
    so no request outlives the call.
    """
    tasks: list[asyncio.Future[T]] = []
    try:
        for aw in aws:
            tasks.append(asyncio.ensure_future(aw))
        return list(await asyncio.gather(*tasks)) if tasks else []
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def group_by_root(events: Iterable[Event]) -> dict[UUID, list[Event]]:
    """Group *events* by aggregate root id, each group sorted by timestamp."""
    lookup: dict[UUID, list[Event]] = {}
    for event in events:
        lookup.setdefault(event.aggregate_root_id, []).append(event)
    for group in lookup.values():
        group.sort(key=lambda e: e.timestamp)
    return lookup


def _pairs(projections: Sequence[P], selectors: Sequence[IdSelector[P]]) -> list[tuple[P, UUID]]:
    return [
        (projection, foreign_id)
        for projection in projections
        for foreign_id in select_ids(projection, selectors)
    ]


def _group(pairs: list[tuple[Any, UUID]], events: Iterable[Event]) -> list[ExternalDataEvent]:
    lookup = group_by_root(events)
    return [
        ExternalDataEvent(projection.id, list(lookup[foreign_id]))
        for projection, foreign_id in pairs
        if lookup.get(foreign_id)
    ]


def _distinct(ids: Iterable[UUID]) -> list[UUID]:
    return list(dict.fromkeys(ids))


__all__ = [
    "ExternalDataEvent",
    "correlate",
    "correlate_multi_service",
    "correlate_remote",
    "group_by_root",
    "join_all",
]
