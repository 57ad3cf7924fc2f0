"""Application projections – EventRequester."""

from __future__ import annotations

from typing import Generic, Iterable, Sequence, TypeVar

from mp_projections.application.projections.selectors import (
    IdSelector,
    ListIdSelector,
    expand_list_selectors,
)
from mp_projections.kernel.errors import ValidationError

P = TypeVar("P")


class EventRequester(Generic[P]):
    """Where to ask for foreign events, and which foreign ids to ask about.

    *url* is the remote service's event-request endpoint. Selectors are
    evaluated against the projections being initialized.

    Example::

        EventRequester(
            "https://users.internal/api/EventRequest",
            lambda p: p.owner_id,
            list_selectors=[lambda p: p.reviewer_ids],
        )
    """

    __slots__ = ("_url", "_single_selectors", "_list_selectors")

    def __init__(
        self,
        url: str,
        *single_selectors: IdSelector[P],
        list_selectors: Iterable[ListIdSelector[P]] = (),
    ) -> None:
        if not url or not url.strip():
            raise ValidationError.for_field("url", "URL of event request endpoint is required")
        self._url = url
        self._single_selectors: tuple[IdSelector[P], ...] = tuple(single_selectors)
        self._list_selectors: tuple[ListIdSelector[P], ...] = tuple(list_selectors)

    @property
    def url(self) -> str:
        return self._url

    @property
    def single_selectors(self) -> tuple[IdSelector[P], ...]:
        return self._single_selectors

    @property
    def list_selectors(self) -> tuple[ListIdSelector[P], ...]:
        return self._list_selectors

    def all_foreign_id_selectors(self, projections: Sequence[P]) -> list[IdSelector[P]]:
        """Single selectors plus the list selectors expanded against *projections*."""
        return [*self._single_selectors, *expand_list_selectors(projections, *self._list_selectors)]

    def __repr__(self) -> str:
        return (
            f"EventRequester(url={self._url!r}, single={len(self._single_selectors)}, "
            f"list={len(self._list_selectors)})"
        )


__all__ = ["EventRequester"]
