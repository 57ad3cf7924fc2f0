"""Application projections – foreign-id selectors.

A selector maps a projection to the id of an aggregate whose events the
projection needs. Single-id selectors return one id (or ``None``); list
selectors return several. List selectors are expanded into single-id
selectors bound to one projection each, so both kinds flow through one code
path downstream.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence, TypeVar
from uuid import UUID

from mp_projections.kernel.events import NIL_ID
from mp_projections.observability.logging import get_logger

P = TypeVar("P")

_log = get_logger(__name__)


class _NotYetAvailable:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NOT_YET_AVAILABLE"

    def __bool__(self) -> bool:
        return False


NOT_YET_AVAILABLE: Any = _NotYetAvailable()
"""Returned by a selector whose source field has not been populated yet.

Lets dependent selectors signal expected absence instead of raising.
"""

IdSelector = Callable[[P], Any]
ListIdSelector = Callable[[P], Any]


def normalize_id(value: Any) -> UUID | None:
    """Return *value* as a UUID, or ``None`` for "no id" (None, nil, empty, not yet available)."""
    if value is None or value is NOT_YET_AVAILABLE:
        return None
    if not isinstance(value, UUID):
        if not str(value):
            return None
        value = UUID(str(value))
    return None if value == NIL_ID else value


class BoundIdSelector:
    """Single-id selector produced by expanding a list selector.

    Yields ``foreign_id`` for the projection it was expanded from and
    ``None`` for every other projection.
    """

    __slots__ = ("projection_id", "foreign_id")

    def __init__(self, projection_id: Any, foreign_id: UUID) -> None:
        self.projection_id = projection_id
        self.foreign_id = foreign_id

    def __call__(self, projection: Any) -> UUID | None:
        return self.foreign_id if projection.id == self.projection_id else None

    def __repr__(self) -> str:
        return f"BoundIdSelector({self.projection_id!s} -> {self.foreign_id!s})"


def expand_list_selectors(
    projections: Sequence[P],
    *list_selectors: ListIdSelector[P],
) -> list[IdSelector[P]]:
    """Eagerly evaluate *list_selectors* against every projection."""
    expanded: list[IdSelector[P]] = []
    for projection in projections:
        for selector in list_selectors:
            for raw in selector(projection) or ():
                foreign_id = normalize_id(raw)
                if foreign_id is not None:
                    expanded.append(BoundIdSelector(projection.id, foreign_id))  # type: ignore[attr-defined]
    return expanded


def select_ids(projection: P, selectors: Iterable[IdSelector[P]]) -> list[UUID]:
    """Evaluate *selectors* against *projection*, dropping empty results."""
    ids: list[UUID] = []
    for selector in selectors:
        foreign_id = normalize_id(selector(projection))
        if foreign_id is not None:
            ids.append(foreign_id)
    return ids


def safe_select_ids(
    projection: P,
    single_selectors: Iterable[IdSelector[P]],
    list_selectors: Iterable[ListIdSelector[P]] = (),
) -> list[UUID]:
    """Like :func:`select_ids`, but one failing selector never stops the others.

    Used for dependent selectors, which run against provisional state where a
    field may legitimately not be populated yet. Exceptions are logged and the
    selector contributes nothing for this projection.
    """
    ids: list[UUID] = []
    for selector in single_selectors:
        ids.extend(_guarded(projection, selector, many=False))
    for selector in list_selectors:
        ids.extend(_guarded(projection, selector, many=True))
    return ids


def _guarded(projection: Any, selector: Callable[[Any], Any], *, many: bool) -> list[UUID]:
    try:
        raw = selector(projection)
        values = (raw or ()) if many else (raw,)
        return [fid for fid in (normalize_id(v) for v in values) if fid is not None]
    except Exception as exc:  # noqa: BLE001
        _log.warning(
            "external_data.selector_failed",
            selector=getattr(selector, "__name__", repr(selector)),
            projection_id=str(getattr(projection, "id", "")),
            error=repr(exc),
        )
        return []


__all__ = [
    "NOT_YET_AVAILABLE",
    "BoundIdSelector",
    "IdSelector",
    "ListIdSelector",
    "expand_list_selectors",
    "normalize_id",
    "safe_select_ids",
    "select_ids",
]
