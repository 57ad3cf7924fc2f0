"""Kernel events – Command value object."""

from __future__ import annotations

import functools

from mp_projections.kernel.errors.domain import ValidationError


@functools.total_ordering
class Command:
    """Names the intent behind an :class:`Event`.

    Two commands are equal when their names are equal; the flags are
    descriptive only. Names must be unique per service and should follow the
    ``"<Action>_<Entity>"`` convention (e.g. ``"Create_Site"``).

    Example::

        CREATE_SITE = Command("Create_Site", is_new=True)
        DELETE_SITE = Command("Delete_Site", allow_null_payload=True)
    """

    __slots__ = ("_name", "_is_new", "_allow_null_payload")

    def __init__(self, name: str, is_new: bool = False, allow_null_payload: bool = False) -> None:
        if not name or not name.strip():
            raise ValidationError.for_field("name", "Command name cannot be null or empty")
        self._name = name
        self._is_new = is_new
        self._allow_null_payload = allow_null_payload

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_new(self) -> bool:
        """``True`` when the command creates a new aggregate."""
        return self._is_new

    @property
    def allow_null_payload(self) -> bool:
        return self._allow_null_payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Command):
            return NotImplemented
        return self._name == other._name

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Command):
            return NotImplemented
        return self._name < other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Command(name={self._name!r}, is_new={self._is_new!r})"


__all__ = ["Command"]
