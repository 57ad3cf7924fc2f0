"""Unit tests – ExternalDataEventFactory (independent and dependent phases)."""
from __future__ import annotations

import asyncio
import dataclasses
import json
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import httpx
import pytest
import respx

from mp_projections.adapters.http import HttpxHttpClient
from mp_projections.application.projections import (
    NOT_YET_AVAILABLE,
    EventRequester,
    ExternalDataEvent,
    ExternalDataEventFactory,
    InMemoryEventSource,
    Projection,
)
from mp_projections.config.validation import MissingCollaboratorError
from mp_projections.kernel.errors import ExternalServiceError
from mp_projections.kernel.events import Command, Event

T0 = datetime(2024, 1, 1, tzinfo=UTC)
CREATE = Command("Create", is_new=True)
RENAME = Command("Rename")
USERS_URL = "http://users.svc/api/EventRequest"


@dataclasses.dataclass
class LinkView(Projection):
    source_id: UUID | None = None
    linked_id: UUID | None = None
    member_ids: list[UUID] = dataclasses.field(default_factory=list)
    name: str = ""

    def apply(self, event: Event) -> None:
        if event.command == CREATE:
            self.update_properties(event.payload, {"linkedId": "linked_id", "memberIds": "member_ids"}, strict=True)
        elif event.command == RENAME:
            self.update_properties(event.payload, {"name": "name"}, strict=True)


def _event(command: Command, root: UUID, payload: dict[str, Any], minutes: int = 0) -> Event:
    return Event(command=command, aggregate_root_id=root, payload=payload, timestamp=T0 + timedelta(minutes=minutes))


def _ids(results: list[ExternalDataEvent]) -> list[tuple[UUID, list[UUID]]]:
    return [(r.aggregate_root_id, [e.aggregate_root_id for e in r.events]) for r in results]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_builders_chain(self) -> None:
        factory = ExternalDataEventFactory(InMemoryEventSource(), [], http_client=HttpxHttpClient())
        assert factory.with_same_service_id_selectors(lambda p: p.source_id) is factory
        assert factory.with_same_service_list_id_selectors(lambda p: p.member_ids) is factory
        assert factory.with_same_service_dependent_id_selectors(lambda p: p.linked_id) is factory
        assert factory.with_same_service_dependent_list_id_selectors(lambda p: p.member_ids) is factory
        assert factory.with_event_requester(USERS_URL, lambda p: p.source_id) is factory
        assert factory.with_dependent_event_requester(USERS_URL, lambda p: p.linked_id) is factory
        assert factory.add_event_requesters(EventRequester(USERS_URL)) is factory
        assert factory.add_dependent_event_requesters(EventRequester(USERS_URL)) is factory
        assert len(factory.event_requesters) == 2
        assert len(factory.dependent_event_requesters) == 2
        assert factory.has_dependent_selectors

    @pytest.mark.parametrize(
        "register",
        [
            lambda f: f.with_event_requester(USERS_URL, lambda p: p.source_id),
            lambda f: f.add_event_requesters(EventRequester(USERS_URL)),
            lambda f: f.with_dependent_event_requester(USERS_URL, lambda p: p.linked_id),
            lambda f: f.add_dependent_event_requesters(EventRequester(USERS_URL)),
        ],
    )
    def test_requester_needs_http_client(self, register: Any) -> None:
        factory = ExternalDataEventFactory(InMemoryEventSource(), [LinkView(id=uuid4())])
        with pytest.raises(MissingCollaboratorError):
            register(factory)

    def test_nothing_configured(self) -> None:
        source = InMemoryEventSource()
        factory = ExternalDataEventFactory(source, [LinkView(id=uuid4(), source_id=uuid4())])
        assert asyncio.run(factory.get_events()) == []
        assert source.queries == []


# ---------------------------------------------------------------------------
# Phase 1
# ---------------------------------------------------------------------------


class TestIndependentPhase:
    def test_single_and_list_selectors_share_one_query(self) -> None:
        src, m1 = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=src, member_ids=[m1])
        source = InMemoryEventSource([_event(RENAME, src, {"name": "a"}), _event(RENAME, m1, {"name": "b"})])
        factory = (
            ExternalDataEventFactory(source, [view])
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_list_id_selectors(lambda p: p.member_ids)
        )

        result = asyncio.run(factory.get_events())

        assert _ids(result) == [(view.id, [src]), (view.id, [m1])]
        assert source.queries == [frozenset({src, m1})]

    @respx.mock
    def test_local_and_remote_are_combined(self) -> None:
        src, owner = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=src, linked_id=owner)
        source = InMemoryEventSource([_event(RENAME, src, {"name": "a"})])
        remote = _event(RENAME, owner, {"name": "Alice"})
        respx.post(USERS_URL).mock(return_value=httpx.Response(200, json=[remote.to_dict()]))

        async def run() -> list[ExternalDataEvent]:
            async with HttpxHttpClient() as client:
                factory = (
                    ExternalDataEventFactory(source, [view], http_client=client)
                    .with_same_service_id_selectors(lambda p: p.source_id)
                    .with_event_requester(USERS_URL, lambda p: p.linked_id)
                )
                return await factory.get_events()

        result = asyncio.run(run())

        assert sorted(_ids(result), key=str) == sorted([(view.id, [src]), (view.id, [owner])], key=str)

    @respx.mock
    def test_remote_failure_propagates(self) -> None:
        respx.post(USERS_URL).mock(return_value=httpx.Response(503))
        view = LinkView(id=uuid4(), linked_id=uuid4())

        async def run() -> None:
            async with HttpxHttpClient() as client:
                factory = ExternalDataEventFactory(
                    InMemoryEventSource(), [view], http_client=client
                ).with_event_requester(USERS_URL, lambda p: p.linked_id)
                await factory.get_events()

        with pytest.raises(ExternalServiceError):
            asyncio.run(run())


# ---------------------------------------------------------------------------
# Phase 2
# ---------------------------------------------------------------------------


class TestDependentPhase:
    def test_dependent_ids_come_from_provisional_state(self) -> None:
        a, b = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource(
            [
                _event(CREATE, a, {"linkedId": str(b)}, 0),
                _event(RENAME, b, {"name": "X"}, 1),
            ]
        )
        factory = (
            ExternalDataEventFactory(source, [view])
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_id_selectors(lambda p: p.linked_id)
        )

        result = asyncio.run(factory.get_events())

        assert _ids(result) == [(view.id, [a]), (view.id, [b])]
        assert source.queries == [frozenset({a}), frozenset({b})]
        assert view.linked_id is None

    def test_already_resolved_id_is_not_queried_again(self) -> None:
        a = uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource([_event(CREATE, a, {"linkedId": str(a)})])
        factory = (
            ExternalDataEventFactory(source, [view])
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_id_selectors(lambda p: p.linked_id)
        )

        result = asyncio.run(factory.get_events())

        assert _ids(result) == [(view.id, [a])]
        assert source.queries == [frozenset({a})]

    def test_failing_selector_does_not_block_others(self) -> None:
        a, b = uuid4(), uuid4()
        views = [LinkView(id=uuid4(), source_id=a), LinkView(id=uuid4(), source_id=a)]
        source = InMemoryEventSource([_event(CREATE, a, {"linkedId": str(b)}), _event(RENAME, b, {"name": "X"}, 1)])

        def broken(p: LinkView) -> UUID:
            raise AttributeError("owner_id")

        factory = (
            ExternalDataEventFactory(source, views)
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_id_selectors(broken, lambda p: p.linked_id)
        )

        result = asyncio.run(factory.get_events())

        assert _ids(result)[2:] == [(views[0].id, [b]), (views[1].id, [b])]

    def test_not_yet_available_skips_query(self) -> None:
        a = uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource()
        factory = (
            ExternalDataEventFactory(source, [view])
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_id_selectors(lambda p: p.linked_id or NOT_YET_AVAILABLE)
        )

        assert asyncio.run(factory.get_events()) == []
        assert source.queries == [frozenset({a})]

    def test_dependent_list_selectors(self) -> None:
        a, m1, m2 = uuid4(), uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource(
            [
                _event(CREATE, a, {"memberIds": [str(m1), str(m2)]}),
                _event(RENAME, m1, {"name": "one"}, 1),
                _event(RENAME, m2, {"name": "two"}, 2),
            ]
        )
        factory = (
            ExternalDataEventFactory(source, [view])
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_list_id_selectors(lambda p: p.member_ids)
        )

        result = asyncio.run(factory.get_events())

        assert _ids(result) == [(view.id, [a]), (view.id, [m1]), (view.id, [m2])]
        assert source.queries[1] == frozenset({m1, m2})

    def test_point_in_time_applies_to_both_phases(self) -> None:
        a, b = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource(
            [
                _event(CREATE, a, {"linkedId": str(b)}, 0),
                _event(RENAME, b, {"name": "old"}, 1),
                _event(RENAME, b, {"name": "new"}, 30),
            ]
        )
        factory = (
            ExternalDataEventFactory(source, [view], point_in_time=T0 + timedelta(minutes=10))
            .with_same_service_id_selectors(lambda p: p.source_id)
            .with_same_service_dependent_id_selectors(lambda p: p.linked_id)
        )

        result = asyncio.run(factory.get_events())

        assert [e.payload for e in result[1].events] == [{"name": "old"}]

    @respx.mock
    def test_dependent_remote_requester(self) -> None:
        a, owner = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource([_event(CREATE, a, {"linkedId": str(owner)})])
        remote = _event(RENAME, owner, {"name": "Alice"}, 1)
        route = respx.post(USERS_URL).mock(return_value=httpx.Response(200, json=[remote.to_dict()]))

        async def run() -> list[ExternalDataEvent]:
            async with HttpxHttpClient() as client:
                factory = (
                    ExternalDataEventFactory(source, [view], http_client=client)
                    .with_same_service_id_selectors(lambda p: p.source_id)
                    .with_dependent_event_requester(USERS_URL, lambda p: p.linked_id)
                )
                return await factory.get_events()

        result = asyncio.run(run())

        assert json.loads(route.calls.last.request.content) == [str(owner)]
        assert _ids(result) == [(view.id, [a]), (view.id, [owner])]

    @respx.mock
    def test_dependent_remote_skips_resolved_ids(self) -> None:
        a = uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        source = InMemoryEventSource([_event(CREATE, a, {"linkedId": str(a)})])
        route = respx.post(USERS_URL).mock(return_value=httpx.Response(200, json=[]))

        async def run() -> list[ExternalDataEvent]:
            async with HttpxHttpClient() as client:
                factory = (
                    ExternalDataEventFactory(source, [view], http_client=client)
                    .with_same_service_id_selectors(lambda p: p.source_id)
                    .with_dependent_event_requester(USERS_URL, lambda p: p.linked_id)
                )
                return await factory.get_events()

        assert _ids(asyncio.run(run())) == [(view.id, [a])]
        assert not route.called

    @respx.mock
    def test_remote_phase_one_feeds_dependent_local(self) -> None:
        owner, b = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=owner)
        remote = _event(CREATE, owner, {"linkedId": str(b)})
        respx.post(USERS_URL).mock(return_value=httpx.Response(200, json=[remote.to_dict()]))
        source = InMemoryEventSource([_event(RENAME, b, {"name": "X"}, 1)])

        async def run() -> list[ExternalDataEvent]:
            async with HttpxHttpClient() as client:
                factory = (
                    ExternalDataEventFactory(source, [view], http_client=client)
                    .with_event_requester(USERS_URL, lambda p: p.source_id)
                    .with_same_service_dependent_id_selectors(lambda p: p.linked_id)
                )
                return await factory.get_events()

        result = asyncio.run(run())

        assert _ids(result) == [(view.id, [owner]), (view.id, [b])]
        assert source.queries == [frozenset({b})]

    def test_provision_leaves_originals_untouched(self) -> None:
        a, b = uuid4(), uuid4()
        view = LinkView(id=uuid4(), source_id=a)
        factory = ExternalDataEventFactory(InMemoryEventSource(), [view])

        (copy,) = factory.provision([ExternalDataEvent(view.id, [_event(CREATE, a, {"linkedId": str(b)})])])

        assert copy.linked_id == b
        assert copy.id == view.id
        assert view.linked_id is None
