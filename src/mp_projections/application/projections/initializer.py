"""Application projections – ProjectionInitializer.

Materializes projections: builds the external-data factory for a batch,
applies the resulting events, flags the projections initialized and
bulk-persists them. Between rebuilds, incoming events are applied to the
stored projections they affect with :meth:`ProjectionInitializer.apply_and_persist`
and :meth:`ProjectionInitializer.multi_apply_and_persist`.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Any, Callable, Generic, Iterable, Sequence, TypeVar
from uuid import UUID

from mp_projections.adapters.http.client import HttpxHttpClient
from mp_projections.application.projections.external_data_event import ExternalDataEvent
from mp_projections.application.projections.factory import ExternalDataEventFactory
from mp_projections.application.projections.projection import Projection
from mp_projections.application.projections.stores import (
    CurrentStateStore,
    EventSource,
    ProjectionStore,
)
from mp_projections.config.settings import ProjectionSettings
from mp_projections.config.validation import MissingCollaboratorError
from mp_projections.kernel.events import Event
from mp_projections.kernel.messaging import UndeliverableSink
from mp_projections.observability.correlation import CorrelationContext
from mp_projections.observability.logging import get_logger

P = TypeVar("P", bound=Projection)

_log = get_logger(__name__)


@dataclasses.dataclass(frozen=True)
class ConvergenceReport:
    """Outcome of :meth:`ProjectionInitializer.converge_uninitialized`."""

    converged: bool
    attempts: int
    remaining: int = 0


class ProjectionInitializer(Generic[P]):
    """Initialize, rebuild and converge projections of one type.

    Example::

        initializer = ProjectionInitializer(
            SiteView,
            event_source,
            projection_store,
            current_state_store=site_store,
            http_client=HttpxHttpClient(timeout=settings.http_timeout_seconds),
        )
        views = await initializer.init_by_id(site_ids)
    """

    def __init__(
        self,
        projection_type: type[P],
        event_source: EventSource,
        projection_store: ProjectionStore[P],
        current_state_store: CurrentStateStore | None = None,
        http_client: HttpxHttpClient | None = None,
        undeliverable_sink: UndeliverableSink | None = None,
        settings: ProjectionSettings | None = None,
    ) -> None:
        self._projection_type = projection_type
        self._event_source = event_source
        self._projection_store = projection_store
        self._current_state_store = current_state_store
        self._http_client = http_client
        self._undeliverable_sink = undeliverable_sink
        self._settings = settings or ProjectionSettings()

    @property
    def settings(self) -> ProjectionSettings:
        return self._settings

    def build_factory(
        self,
        projections: Iterable[P],
        point_in_time: datetime | None = None,
    ) -> ExternalDataEventFactory[P]:
        """Return a factory for *projections* configured by the projection type."""
        factory: ExternalDataEventFactory[P] = ExternalDataEventFactory(
            self._event_source,
            projections,
            http_client=self._http_client,
            point_in_time=point_in_time,
        )
        self._projection_type.configure_external_data(factory)
        return factory

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def init_by_id(
        self,
        ids: UUID | Iterable[UUID],
        point_in_time: datetime | None = None,
    ) -> list[P]:
        """Load base records for *ids*, clone them into projections and :meth:`init_list` them.

        Ids without a base record are skipped.
        """
        if self._current_state_store is None:
            raise MissingCollaboratorError("Current state store", "initialize projections by id")
        wanted = [ids] if isinstance(ids, UUID) else list(ids)
        records = await self._current_state_store.get_many(wanted)
        projections = [self._projection_type.from_base(record) for record in records]
        _log.debug("projections.init_by_id", requested=len(wanted), found=len(projections))
        return await self.init_list(projections, point_in_time)

    async def init_list(
        self,
        projections: Sequence[P],
        point_in_time: datetime | None = None,
    ) -> list[P]:
        """Apply every external event to *projections*, mark them initialized and persist them.

        The given objects are mutated and returned. Remote failures propagate
        before anything is written.
        """
        batch = list(projections)
        if not batch:
            return []

        external = await self.build_factory(batch, point_in_time).get_events()
        combined = flatten(external)
        for projection in batch:
            projection.apply_events(combined.get(projection.id, ()))
            projection.initialized = True

        await self._projection_store.bulk_upsert(batch)
        _log.info(
            "projections.initialized",
            projection_type=self._projection_type.__name__,
            count=len(batch),
            external_events=sum(len(events) for events in combined.values()),
        )
        return batch

    async def rebuild_container(
        self,
        batch_size: int | None = None,
        point_in_time: datetime | None = None,
    ) -> int:
        """Delete every stored projection and rebuild from the non-deleted base records.

        Ids are processed *batch_size* at a time: fresh projections get this
        service's own events, then :meth:`init_list` adds the external data.
        Returns the number of projections rebuilt.
        """
        if self._current_state_store is None:
            raise MissingCollaboratorError("Current state store", "rebuild the projection container")
        size = batch_size or self._settings.batch_size
        if size < 1:
            raise ValueError(f"batch_size must be >= 1, got {size}")

        # One correlation id for every outbound request of the pass.
        CorrelationContext.get_or_new()
        deleted = await self._projection_store.delete_all()
        ids = await self._current_state_store.non_deleted_ids()
        _log.info(
            "projections.rebuild_started",
            projection_type=self._projection_type.__name__,
            deleted=deleted,
            total=len(ids),
            batch_size=size,
        )

        rebuilt = 0
        for start in range(0, len(ids), size):
            chunk = ids[start : start + size]
            own_events: dict[UUID, list[Event]] = {}
            for event in await self._event_source.query(chunk, point_in_time):
                own_events.setdefault(event.aggregate_root_id, []).append(event)

            projections = []
            for aggregate_id in chunk:
                projection = self._projection_type(id=aggregate_id)
                projection.apply_events(own_events.get(aggregate_id, ()))
                projections.append(projection)

            rebuilt += len(await self.init_list(projections, point_in_time))
            _log.debug("projections.rebuild_batch", offset=start, size=len(chunk))

        _log.info("projections.rebuild_finished", projection_type=self._projection_type.__name__, rebuilt=rebuilt)
        return rebuilt

    async def apply_and_persist(
        self,
        events: Event | Sequence[Event],
        projection_id: UUID | None = None,
    ) -> P | None:
        """Apply *events* to one stored projection and persist it.

        The target is *projection_id*, or the first event's aggregate root id
        when it is omitted. A create command (``command.is_new``) from the
        base aggregate itself starts a fresh projection instead of loading
        one. A target that is not stored (e.g. deleted) is skipped: nothing
        is written and ``None`` is returned.
        """
        batch = [events] if isinstance(events, Event) else list(events)
        if not batch:
            raise ValueError("apply_and_persist needs at least one event")

        first = batch[0]
        target = projection_id if projection_id is not None else first.aggregate_root_id
        if first.command.is_new and projection_id is None:
            projection = self._projection_type(id=target)
        else:
            found = await self._projection_store.get_many([target])
            if not found:
                _log.warning(
                    "projections.apply_target_missing",
                    projection_type=self._projection_type.__name__,
                    projection_id=str(target),
                    command=str(first.command),
                )
                return None
            projection = found[0]

        projection.apply_events(batch)
        await self._projection_store.upsert(projection)
        _log.debug("projections.applied", projection_id=str(target), events=len(batch))
        return projection

    async def multi_apply_and_persist(
        self,
        event: Event,
        targets: Callable[[P], bool] | Iterable[UUID | P],
        batch_size: int | None = None,
    ) -> list[P]:
        """Apply one *event* to every projection it affects, persisting in batches.

        *targets* is either a predicate selecting stored projections, or an
        iterable of projection ids and/or projections already loaded (those
        are mutated in place). Ids with no stored projection are skipped.
        Each batch of *batch_size* is written with one bulk upsert.
        """
        size = batch_size or self._settings.apply_batch_size
        if size < 1:
            raise ValueError(f"batch_size must be >= 1, got {size}")

        if callable(targets):
            pending: list[Any] = list(await self._projection_store.find(targets))
        else:
            pending = list(targets)

        updated: list[P] = []
        for start in range(0, len(pending), size):
            chunk = pending[start : start + size]
            projections = [t for t in chunk if not isinstance(t, UUID)]
            ids = [t for t in chunk if isinstance(t, UUID)]
            if ids:
                projections.extend(await self._projection_store.get_many(ids))
            if not projections:
                continue
            for projection in projections:
                projection.apply(event)
            await self._projection_store.bulk_upsert(projections)
            updated.extend(projections)

        _log.info(
            "projections.multi_applied",
            projection_type=self._projection_type.__name__,
            command=str(event.command),
            targets=len(pending),
            updated=len(updated),
        )
        return updated

    async def converge_uninitialized(self, max_iterations: int | None = None) -> ConvergenceReport:
        """Re-initialize stored projections until none is left uninitialized.

        Stops after *max_iterations* attempts; exhaustion is reported to the
        undeliverable sink rather than raised.
        """
        limit = max_iterations if max_iterations is not None else self._settings.max_convergence_iterations
        if limit < 1:
            raise ValueError(f"max_iterations must be >= 1, got {limit}")
        sink = self._undeliverable_sink
        if sink is None:
            raise MissingCollaboratorError("Undeliverable sink", "converge uninitialized projections")
        CorrelationContext.get_or_new()

        attempts = 0
        pending = await self._projection_store.query_uninitialized()
        while True:
            if not pending:
                # Catch projections created by writes still in flight.
                await asyncio.sleep(self._settings.convergence_delay_seconds)
                pending = await self._projection_store.query_uninitialized()
                if not pending:
                    _log.info("projections.converged", attempts=attempts)
                    return ConvergenceReport(converged=True, attempts=attempts)

            if attempts >= limit:
                await self._report_exhausted(sink, limit, len(pending))
                return ConvergenceReport(converged=False, attempts=attempts, remaining=len(pending))

            attempts += 1
            await self.init_list(pending)
            pending = await self._projection_store.query_uninitialized()

    @staticmethod
    async def _report_exhausted(sink: UndeliverableSink, limit: int, remaining: int) -> None:
        _log.warning("projections.convergence_exhausted", max_iterations=limit, remaining=remaining)
        await sink.report("converge_uninitialized", f"Exceeded max iterations of {limit}")


def flatten(external: Iterable[ExternalDataEvent]) -> dict[Any, list[Event]]:
    """Concatenate the event lists of entries naming the same projection id."""
    combined: dict[Any, list[Event]] = {}
    for item in external:
        combined.setdefault(item.aggregate_root_id, []).extend(item.events)
    return combined


__all__ = ["ConvergenceReport", "ProjectionInitializer", "flatten"]
