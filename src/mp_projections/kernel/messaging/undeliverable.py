"""Kernel messaging – undeliverable-work sink port."""
from __future__ import annotations

import abc
import dataclasses
from datetime import UTC, datetime
from uuid import UUID, uuid4

from mp_projections.kernel.events.event import Event


@dataclasses.dataclass
class UndeliverableEvent:
    """Work that could not be completed, e.g. a convergence loop that gave up.

    ``event`` is ``None`` when the failure is not tied to a single event.
    """

    function_name: str
    error_message: str
    event: Event | None = None
    id: UUID = dataclasses.field(default_factory=uuid4)
    failed_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))

    @property
    def aggregate_root_id(self) -> UUID | None:
        return self.event.aggregate_root_id if self.event is not None else None


class UndeliverableSink(abc.ABC):
    """Port: record work that failed so an operator (or a later job) can act on it."""

    @abc.abstractmethod
    async def handle(self, entry: UndeliverableEvent) -> None:
        """Persist *entry*."""

    async def report(self, function_name: str, error_message: str, event: Event | None = None) -> UndeliverableEvent:
        entry = UndeliverableEvent(function_name=function_name, error_message=error_message, event=event)
        await self.handle(entry)
        return entry


class InMemoryUndeliverableSink(UndeliverableSink):
    """In-memory :class:`UndeliverableSink` for tests and local development."""

    def __init__(self) -> None:
        self.entries: list[UndeliverableEvent] = []

    async def handle(self, entry: UndeliverableEvent) -> None:
        self.entries.append(entry)


__all__ = ["InMemoryUndeliverableSink", "UndeliverableEvent", "UndeliverableSink"]
