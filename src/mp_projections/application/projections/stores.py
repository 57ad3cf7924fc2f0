"""Application projections – store ports and in-memory adapters.

Three collaborators feed projection initialization:

- :class:`EventSource` – the service's own append-only event log.
- :class:`CurrentStateStore` – current-state records of the base aggregate.
- :class:`ProjectionStore` – where materialized projections are persisted.

Implement them with any persistence backend (Cosmos, PostgreSQL, Mongo, …).
The in-memory variants are for tests and local development.
"""

from __future__ import annotations

import abc
import asyncio
import copy
import dataclasses
from datetime import datetime
from typing import Any, Callable, Collection, Generic, Iterable, Mapping, TypeVar
from uuid import UUID

from mp_projections.kernel.errors import BulkWriteError
from mp_projections.kernel.events import Event, parse_timestamp

P = TypeVar("P")


class EventSource(abc.ABC):
    """Port – query the local event log by aggregate root id."""

    @abc.abstractmethod
    async def query(
        self,
        aggregate_root_ids: Collection[UUID],
        point_in_time: datetime | None = None,
    ) -> list[Event]:
        """Return every event whose ``aggregate_root_id`` is in *aggregate_root_ids*.

        When *point_in_time* is given only events with ``timestamp <=
        point_in_time`` are returned. Results are ordered by timestamp.
        """


class CurrentStateStore(abc.ABC):
    """Port – current-state records of the base aggregate a projection mirrors."""

    @abc.abstractmethod
    async def get_many(self, ids: Collection[UUID]) -> list[Mapping[str, Any]]:
        """Return the records whose ``id`` is in *ids* (missing ids are skipped)."""

    @abc.abstractmethod
    async def non_deleted_ids(self) -> list[UUID]:
        """Return the ids of every record not soft-deleted."""


class ProjectionStore(abc.ABC, Generic[P]):
    """Port – persistence for one projection type."""

    @abc.abstractmethod
    async def upsert(self, projection: P) -> None:
        """Insert or replace *projection*."""

    @abc.abstractmethod
    async def get_many(self, ids: Collection[Any]) -> list[P]:
        """Return the stored projections whose id is in *ids* (missing ids are skipped)."""

    @abc.abstractmethod
    async def find(self, predicate: Callable[[P], bool]) -> list[P]:
        """Return every stored projection for which *predicate* is true."""

    @abc.abstractmethod
    async def delete_all(self) -> int:
        """Remove every projection of this type; return how many were removed."""

    @abc.abstractmethod
    async def query_uninitialized(self) -> list[P]:
        """Return every projection with ``initialized == False``."""

    async def bulk_upsert(self, projections: Iterable[P]) -> None:
        """Fire every upsert, then wait for all of them.

        A failing write does not stop the others. Once all writes have
        completed, :class:`BulkWriteError` is raised if any of them failed.
        """
        batch = list(projections)
        results = await asyncio.gather(*(self.upsert(p) for p in batch), return_exceptions=True)
        failures = {
            getattr(p, "id", index): result
            for index, (p, result) in enumerate(zip(batch, results))
            if isinstance(result, BaseException)
        }
        if failures:
            raise BulkWriteError(failures, total=len(batch))


# ---------------------------------------------------------------------------
# In-memory adapters
# ---------------------------------------------------------------------------


class InMemoryEventSource(EventSource):
    """In-memory :class:`EventSource`.

    Every call to :meth:`query` is recorded in :attr:`queries` (as the set of
    ids asked for) so tests can assert how often the log was read.
    """

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._events: list[Event] = list(events)
        self.queries: list[frozenset[UUID]] = []

    def append(self, *events: Event) -> None:
        self._events.extend(events)

    async def query(
        self,
        aggregate_root_ids: Collection[UUID],
        point_in_time: datetime | None = None,
    ) -> list[Event]:
        wanted = frozenset(aggregate_root_ids)
        self.queries.append(wanted)
        ceiling = parse_timestamp(point_in_time) if point_in_time is not None else None
        matches = [
            e
            for e in self._events
            if e.aggregate_root_id in wanted and (ceiling is None or e.timestamp <= ceiling)
        ]
        return sorted(matches, key=lambda e: e.timestamp)

    def all_events(self) -> list[Event]:
        return list(self._events)


class InMemoryCurrentStateStore(CurrentStateStore):
    """In-memory :class:`CurrentStateStore` holding plain documents.

    Records may be mappings or dataclass instances; each needs an ``id`` and
    may carry ``is_deleted``.
    """

    def __init__(self, records: Iterable[Any] = ()) -> None:
        self._records: dict[UUID, dict[str, Any]] = {}
        self.add(*records)

    def add(self, *records: Any) -> None:
        for record in records:
            doc = dataclasses.asdict(record) if dataclasses.is_dataclass(record) else dict(record)
            self._records[UUID(str(doc["id"]))] = doc

    async def get_many(self, ids: Collection[UUID]) -> list[Mapping[str, Any]]:
        return [copy.deepcopy(self._records[i]) for i in ids if i in self._records]

    async def non_deleted_ids(self) -> list[UUID]:
        return [i for i, doc in self._records.items() if not doc.get("is_deleted", False)]


class InMemoryProjectionStore(ProjectionStore[P]):
    """In-memory :class:`ProjectionStore` keyed by projection id.

    Stores deep copies, so later mutation of a caller's object does not leak
    into the store.
    """

    def __init__(self) -> None:
        self._items: dict[Any, P] = {}
        self.bulk_calls: int = 0

    async def upsert(self, projection: P) -> None:
        self._items[getattr(projection, "id")] = copy.deepcopy(projection)

    async def bulk_upsert(self, projections: Iterable[P]) -> None:
        self.bulk_calls += 1
        await super().bulk_upsert(projections)

    async def get_many(self, ids: Collection[Any]) -> list[P]:
        return [copy.deepcopy(self._items[i]) for i in ids if i in self._items]

    async def find(self, predicate: Callable[[P], bool]) -> list[P]:
        return [copy.deepcopy(p) for p in self._items.values() if predicate(p)]

    async def delete_all(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    async def query_uninitialized(self) -> list[P]:
        return [copy.deepcopy(p) for p in self._items.values() if not getattr(p, "initialized", False)]

    def get(self, projection_id: Any) -> P | None:
        item = self._items.get(projection_id)
        return copy.deepcopy(item) if item is not None else None

    def all(self) -> list[P]:
        return [copy.deepcopy(p) for p in self._items.values()]


__all__ = [
    "CurrentStateStore",
    "EventSource",
    "InMemoryCurrentStateStore",
    "InMemoryEventSource",
    "InMemoryProjectionStore",
    "ProjectionStore",
]
