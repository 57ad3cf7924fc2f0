"""Kernel events – Event envelope and its JSON wire codec."""

from __future__ import annotations

import dataclasses
import json
from datetime import UTC, datetime
from typing import Any, Iterable, Mapping, TypeVar
from uuid import UUID, uuid4

from mp_projections.kernel.errors.domain import ValidationError
from mp_projections.kernel.errors.infrastructure import SerializationError
from mp_projections.kernel.events.command import Command

T = TypeVar("T")

NIL_ID = UUID(int=0)
"""The empty identifier; selectors returning it are treated as "no id"."""


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    ts = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    return parse_timestamp(value).isoformat()


@dataclasses.dataclass(frozen=True)
class Event:
    """An immutable fact about one aggregate.

    ``timestamp`` is the sole ordering key: events sharing an
    ``aggregate_root_id`` are applied in ascending timestamp order.
    ``payload`` is a loosely-typed property bag, ``None`` for delete-style
    commands.

    Use :meth:`create` when recording a new event (it enforces the command's
    null-payload rule); the plain constructor is for rehydration.
    """

    command: Command
    aggregate_root_id: UUID
    payload: dict[str, Any] | None = None
    id: UUID = dataclasses.field(default_factory=uuid4)
    timestamp: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))
    partition_key: UUID = NIL_ID
    user_id: UUID = NIL_ID

    @classmethod
    def create(
        cls,
        command: Command,
        aggregate_root_id: UUID | str,
        payload: Mapping[str, Any] | None,
        user_id: UUID | str = NIL_ID,
        partition_key: UUID | str = NIL_ID,
    ) -> "Event":
        """Record a new event for *aggregate_root_id*."""
        if payload is None and not command.allow_null_payload:
            raise ValidationError(f"Command '{command}' does not allow a null payload")
        return cls(
            command=command,
            aggregate_root_id=_as_uuid(aggregate_root_id, "aggregate root id"),
            payload=dict(payload) if payload is not None else None,
            user_id=_as_uuid(user_id, "user id"),
            partition_key=_as_uuid(partition_key, "partition key"),
        )

    @classmethod
    def from_payload(
        cls,
        command: Command,
        payload: Mapping[str, Any],
        user_id: UUID | str = NIL_ID,
        partition_key: UUID | str = NIL_ID,
    ) -> "Event":
        """Record a new event whose aggregate root id is ``payload["id"]``."""
        if not payload:
            raise ValidationError("Payload cannot be empty if you do not specify an aggregate root id")
        raw_id = payload.get("id")
        if raw_id is None:
            raise ValidationError("Aggregate root id does not exist in payload")
        return cls.create(command, _as_uuid(raw_id, "aggregate root id"), payload, user_id, partition_key)

    def payload_has_property(self, name: str) -> bool:
        return self.payload is not None and name in self.payload

    def get_payload(self, cls: type[T]) -> T:
        """Build *cls* from the payload keys it declares (dataclasses only)."""
        if self.payload is None:
            raise ValidationError(f"Payload is null for type {cls.__name__}")
        if dataclasses.is_dataclass(cls):
            names = {f.name for f in dataclasses.fields(cls) if f.init}
            return cls(**{k: v for k, v in self.payload.items() if k in names})  # type: ignore[return-value]
        return cls(**self.payload)  # type: ignore[call-arg]

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON wire envelope (camelCase keys, ISO-8601 UTC timestamp)."""
        return {
            "id": str(self.id),
            "aggregateRootId": str(self.aggregate_root_id),
            "command": {"name": self.command.name, "isNew": self.command.is_new},
            "payload": _jsonable(self.payload),
            "timestamp": format_timestamp(self.timestamp),
            "partitionKey": str(self.partition_key),
            "userId": str(self.user_id),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Parse a wire envelope; raises :class:`SerializationError` when malformed."""
        try:
            command_data = data["command"]
            payload = data.get("payload")
            return cls(
                command=Command(
                    command_data["name"],
                    is_new=bool(command_data.get("isNew", False)),
                    allow_null_payload=payload is None,
                ),
                aggregate_root_id=UUID(str(data["aggregateRootId"])),
                payload=dict(payload) if payload is not None else None,
                id=UUID(str(data["id"])) if data.get("id") else uuid4(),
                timestamp=parse_timestamp(data["timestamp"]),
                partition_key=UUID(str(data.get("partitionKey") or NIL_ID)),
                user_id=UUID(str(data.get("userId") or NIL_ID)),
            )
        except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as exc:
            raise SerializationError(
                f"Malformed event envelope: {exc}", payload_type="Event", cause=exc
            ) from exc


def events_from_json(raw: str | bytes) -> list[Event]:
    """Decode a JSON array of event envelopes."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise SerializationError("Event list is not valid JSON", payload_type="list[Event]", cause=exc) from exc
    if data is None:
        return []
    if not isinstance(data, list):
        raise SerializationError("Expected a JSON array of events", payload_type="list[Event]")
    return [Event.from_dict(item) for item in data]


def events_to_json(events: Iterable[Event]) -> str:
    return json.dumps([e.to_dict() for e in events])


def _as_uuid(value: UUID | str, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"{what.capitalize()} is not parsable to a UUID") from exc


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


__all__ = [
    "NIL_ID",
    "Event",
    "events_from_json",
    "events_to_json",
    "format_timestamp",
    "parse_timestamp",
]
