"""Application projections – Projection base class and the apply contract."""

from __future__ import annotations

import abc
import copy
import dataclasses
import functools
import types
import typing
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Mapping, TypeVar, Union
from uuid import UUID

from mp_projections.kernel.events import NIL_ID, Event, parse_timestamp

if TYPE_CHECKING:
    from mp_projections.application.projections.factory import ExternalDataEventFactory

P = TypeVar("P", bound="Projection")


@dataclasses.dataclass
class Projection(abc.ABC):
    """Mutable, denormalized read-model record.

    Subclasses are dataclasses adding their own (defaulted) fields and
    implement :meth:`apply`, the single mutation hook. A projection holds
    nothing that cannot be rebuilt by replaying its event sources.

    Example::

        @dataclasses.dataclass
        class SiteView(Projection):
            name: str = ""
            owner_id: UUID | None = None
            owner_name: str = ""

            def apply(self, event: Event) -> None:
                if event.command in (CREATE_SITE, UPDATE_SITE):
                    self.update_properties(event.payload)
                elif event.command == DELETE_SITE:
                    self.mark_deleted()
                elif event.command in (CREATE_USER, UPDATE_USER):
                    self.update_properties(event.payload, {"name": "owner_name"}, strict=True)

            @classmethod
            def configure_external_data(cls, factory):
                factory.with_event_requester(USERS_URL, lambda p: p.owner_id)
    """

    id: UUID = NIL_ID
    tenant_id: UUID = NIL_ID
    initialized: bool = False
    is_deleted: bool = False
    ttl: int = -1
    """Seconds until the store may expire the record; -1 means never."""

    @abc.abstractmethod
    def apply(self, event: Event) -> None:
        """Apply *event* to this projection.

        Events whose command the projection does not recognise are ignored.
        Must be a pure function of (current state, event).
        """

    # ------------------------------------------------------------------
    # Apply helpers
    # ------------------------------------------------------------------

    @classmethod
    def settable_fields(cls) -> frozenset[str]:
        """Names :meth:`update_properties` may write. Override to narrow."""
        return frozenset(f.name for f in dataclasses.fields(cls) if f.init)

    def update_properties(
        self,
        payload: Mapping[str, Any] | None,
        property_pairs: Mapping[str, str] | None = None,
        strict: bool = False,
    ) -> None:
        """Copy payload properties onto same-named fields.

        Names match case-sensitively; unmatched payload keys are ignored and
        unmatched fields are left untouched. *property_pairs* maps a payload
        key to a different field name. With ``strict=True`` only keys listed
        in *property_pairs* are copied.
        """
        if not payload:
            return
        pairs = property_pairs or {}
        settable = self.settable_fields()
        hints = _field_types(type(self))
        for key, value in payload.items():
            if strict and key not in pairs:
                continue
            target = pairs.get(key, key)
            if target in settable:
                setattr(self, target, _coerce(value, hints.get(target)))

    def mark_deleted(self, ttl: int | None = None) -> None:
        """Soft-delete; the record stays in the store (optionally expiring after *ttl* seconds)."""
        self.is_deleted = True
        if ttl is not None:
            self.ttl = ttl

    def apply_events(self, events: Iterable[Event]) -> None:
        """Apply *events* in ascending timestamp order."""
        for event in sorted(events, key=lambda e: e.timestamp):
            self.apply(event)

    # ------------------------------------------------------------------
    # Construction / persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_base(cls: type[P], record: Any) -> P:
        """Clone a base aggregate record field-for-field (shared names only)."""
        if dataclasses.is_dataclass(record) and not isinstance(record, type):
            doc: Mapping[str, Any] = dataclasses.asdict(record)
        elif isinstance(record, Mapping):
            doc = record
        else:
            doc = vars(record)
        projection = cls()
        projection.update_properties(doc)
        projection.initialized = False
        return projection

    def to_document(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def configure_external_data(cls, factory: "ExternalDataEventFactory[Any]") -> None:
        """Register the selectors and requesters this projection type depends on.

        Called once per initialization batch. The default registers nothing,
        so only the projection's own fields are materialized.
        """


def replay_onto_copy(projection: P, events: Iterable[Event]) -> P:
    """Return a deep copy of *projection* with *events* applied in timestamp order.

    *projection* itself is never mutated. Costs one copy plus one apply per
    event; used to evaluate dependent selectors against provisional state.
    """
    provisional = copy.deepcopy(projection)
    provisional.apply_events(events)
    return provisional


@functools.lru_cache(maxsize=None)
def _field_types(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        # Unresolvable forward references: copy values as-is.
        return {}


def _coerce(value: Any, hint: Any) -> Any:  # noqa: PLR0911
    if value is None or hint is None:
        return value
    origin = typing.get_origin(hint)
    if origin in (Union, types.UnionType):
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        return _coerce(value, args[0]) if len(args) == 1 else value
    if origin in (list, set, frozenset, tuple) and isinstance(value, (list, tuple, set, frozenset)):
        args = typing.get_args(hint)
        inner = args[0] if args else None
        return origin(_coerce(v, inner) for v in value)
    if hint is UUID and not isinstance(value, UUID):
        return UUID(str(value))
    if hint is datetime and isinstance(value, str):
        return parse_timestamp(value)
    return value


__all__ = ["Projection", "replay_onto_copy"]
