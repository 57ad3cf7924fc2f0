"""Application projections – ExternalDataEventFactory.

Resolves every event a batch of projections needs, in two phases:

1. **Independent** – the local event source is queried once with all
   primary same-service selectors while every remote
   :class:`EventRequester` is called concurrently.
2. **Dependent** – phase-1 events are replayed onto throwaway copies of the
   projections; dependent selectors then read those copies (e.g. a foreign id
   learned from a create event). Ids already returned in phase 1 are never
   requested again.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Iterable, Sequence, TypeVar
from uuid import UUID

from mp_projections.adapters.http.client import HttpxHttpClient
from mp_projections.application.projections.external_data_event import (
    ExternalDataEvent,
    correlate,
    correlate_multi_service,
    group_by_root,
    join_all,
)
from mp_projections.application.projections.projection import Projection, replay_onto_copy
from mp_projections.application.projections.requester import EventRequester
from mp_projections.application.projections.selectors import (
    IdSelector,
    ListIdSelector,
    safe_select_ids,
)
from mp_projections.application.projections.stores import EventSource
from mp_projections.config.validation import MissingCollaboratorError
from mp_projections.observability.logging import get_logger

P = TypeVar("P", bound=Projection)

_log = get_logger(__name__)


class ExternalDataEventFactory(Generic[P]):
    """Collect the same-service and external events needed to initialize projections.

    Example::

        factory = ExternalDataEventFactory(event_source, projections, http_client)
        (
            factory
            .with_same_service_id_selectors(lambda p: p.site_id)
            .with_same_service_dependent_id_selectors(lambda p: p.site_owner_id)
            .with_event_requester(USERS_URL, lambda p: p.reviewer_id)
        )
        external_data_events = await factory.get_events()

    The projections passed in are never mutated. The factory has no side
    effects beyond reading the event source and calling remote services, so
    :meth:`get_events` may be called repeatedly.
    """

    def __init__(
        self,
        event_source: EventSource,
        projections: Iterable[P],
        http_client: HttpxHttpClient | None = None,
        point_in_time: datetime | None = None,
    ) -> None:
        self._event_source = event_source
        self._projections: tuple[P, ...] = tuple(projections)
        self._http_client = http_client
        self._point_in_time = point_in_time
        self._id_selectors: list[IdSelector[P]] = []
        self._list_id_selectors: list[ListIdSelector[P]] = []
        self._dependent_id_selectors: list[IdSelector[P]] = []
        self._dependent_list_id_selectors: list[ListIdSelector[P]] = []
        self._requesters: list[EventRequester[P]] = []
        self._dependent_requesters: list[EventRequester[P]] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def projections(self) -> tuple[P, ...]:
        return self._projections

    @property
    def event_requesters(self) -> tuple[EventRequester[P], ...]:
        return tuple(self._requesters)

    @property
    def dependent_event_requesters(self) -> tuple[EventRequester[P], ...]:
        return tuple(self._dependent_requesters)

    def with_same_service_id_selectors(self, *selectors: IdSelector[P]) -> "ExternalDataEventFactory[P]":
        self._id_selectors.extend(selectors)
        return self

    def with_same_service_list_id_selectors(self, *selectors: ListIdSelector[P]) -> "ExternalDataEventFactory[P]":
        self._list_id_selectors.extend(selectors)
        return self

    def with_same_service_dependent_id_selectors(self, *selectors: IdSelector[P]) -> "ExternalDataEventFactory[P]":
        """Selectors evaluated after phase-1 events have been applied."""
        self._dependent_id_selectors.extend(selectors)
        return self

    def with_same_service_dependent_list_id_selectors(
        self, *selectors: ListIdSelector[P]
    ) -> "ExternalDataEventFactory[P]":
        self._dependent_list_id_selectors.extend(selectors)
        return self

    def add_event_requesters(self, *requesters: EventRequester[P]) -> "ExternalDataEventFactory[P]":
        self._require_http_client()
        self._requesters.extend(requesters)
        return self

    def with_event_requester(self, url: str, *selectors: IdSelector[P]) -> "ExternalDataEventFactory[P]":
        self._require_http_client()
        self._requesters.append(EventRequester(url, *selectors))
        return self

    def add_dependent_event_requesters(self, *requesters: EventRequester[P]) -> "ExternalDataEventFactory[P]":
        self._require_http_client()
        self._dependent_requesters.extend(requesters)
        return self

    def with_dependent_event_requester(self, url: str, *selectors: IdSelector[P]) -> "ExternalDataEventFactory[P]":
        self._require_http_client()
        self._dependent_requesters.append(EventRequester(url, *selectors))
        return self

    def _require_http_client(self) -> None:
        if self._http_client is None:
            raise MissingCollaboratorError("HTTP client", "add external event requesters")

    @property
    def has_dependent_selectors(self) -> bool:
        return bool(
            self._dependent_id_selectors
            or self._dependent_list_id_selectors
            or self._dependent_requesters
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def get_events(self) -> list[ExternalDataEvent]:
        """Return every :class:`ExternalDataEvent` for the configured projections.

        Any remote failure propagates; failing dependent selectors are skipped.
        """
        if not self._projections:
            return []

        phase_one = await self._resolve_independent()
        resolved = {event.aggregate_root_id for item in phase_one for event in item.events}
        phase_two = await self._resolve_dependent(phase_one, resolved) if self.has_dependent_selectors else []

        _log.info(
            "external_data.resolved",
            projections=len(self._projections),
            phase_one=len(phase_one),
            phase_two=len(phase_two),
            resolved_ids=len(resolved),
        )
        return [*phase_one, *phase_two]

    async def _resolve_independent(self) -> list[ExternalDataEvent]:
        jobs = []
        if self._id_selectors or self._list_id_selectors:
            jobs.append(
                correlate(
                    self._event_source,
                    self._projections,
                    *self._id_selectors,
                    point_in_time=self._point_in_time,
                    list_selectors=self._list_id_selectors,
                )
            )
        if self._requesters:
            jobs.append(
                correlate_multi_service(
                    self._http_client,
                    self._projections,
                    *self._requesters,
                    point_in_time=self._point_in_time,
                )
            )
        results = await join_all(jobs)
        return [item for result in results for item in result]

    async def _resolve_dependent(
        self,
        phase_one: list[ExternalDataEvent],
        resolved: set[UUID],
    ) -> list[ExternalDataEvent]:
        provisional = self.provision(phase_one)
        jobs = []
        if self._dependent_id_selectors or self._dependent_list_id_selectors:
            jobs.append(self._resolve_dependent_local(provisional, resolved))
        if self._dependent_requesters:
            jobs.append(self._resolve_dependent_remote(provisional, resolved))
        results = await join_all(jobs)
        return [item for result in results for item in result]

    def provision(self, phase_one: Sequence[ExternalDataEvent]) -> list[P]:
        """Throwaway copies of the projections with their phase-1 events applied.

        Returned in the same order as :attr:`projections`; the originals are untouched.
        """
        by_target: dict[Any, list[Any]] = {}
        for item in phase_one:
            by_target.setdefault(item.aggregate_root_id, []).extend(item.events)
        return [replay_onto_copy(p, by_target.get(p.id, ())) for p in self._projections]

    async def _resolve_dependent_local(
        self,
        provisional: list[P],
        resolved: set[UUID],
    ) -> list[ExternalDataEvent]:
        wanted: list[list[UUID]] = []
        for copy in provisional:
            ids = safe_select_ids(copy, self._dependent_id_selectors, self._dependent_list_id_selectors)
            wanted.append([fid for fid in dict.fromkeys(ids) if fid not in resolved])

        remaining = list(dict.fromkeys(fid for ids in wanted for fid in ids))
        if not remaining:
            return []

        lookup = group_by_root(await self._event_source.query(remaining, self._point_in_time))
        result: list[ExternalDataEvent] = []
        for original, ids in zip(self._projections, wanted):
            for fid in ids:
                events = lookup.get(fid)
                if events:
                    result.append(ExternalDataEvent(original.id, list(events)))
        return result

    async def _resolve_dependent_remote(
        self,
        provisional: list[P],
        resolved: set[UUID],
    ) -> list[ExternalDataEvent]:
        requesters = [
            EventRequester(
                requester.url,
                *(_DependentSelector(s, resolved, many=False) for s in requester.single_selectors),
                list_selectors=[_DependentSelector(s, resolved, many=True) for s in requester.list_selectors],
            )
            for requester in self._dependent_requesters
        ]
        # Throwaway ids equal the original ids, so results pass straight through.
        return await correlate_multi_service(
            self._http_client,
            provisional,
            *requesters,
            point_in_time=self._point_in_time,
        )


class _DependentSelector:
    """Wraps a dependent remote selector: isolates failures and skips resolved ids."""

    __slots__ = ("_selector", "_resolved", "_many")

    def __init__(self, selector: Any, resolved: set[UUID], *, many: bool) -> None:
        self._selector = selector
        self._resolved = resolved
        self._many = many

    def __call__(self, projection: Any) -> Any:
        if self._many:
            ids = safe_select_ids(projection, (), (self._selector,))
            return [fid for fid in ids if fid not in self._resolved]
        ids = safe_select_ids(projection, (self._selector,))
        return next((fid for fid in ids if fid not in self._resolved), None)


__all__ = ["ExternalDataEventFactory"]
