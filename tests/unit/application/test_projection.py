"""Unit tests – Projection base class and the apply contract."""
from __future__ import annotations

import dataclasses
import itertools
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from mp_projections.application.projections import Projection, replay_onto_copy
from mp_projections.kernel.events import NIL_ID, Command, Event

CREATE_SITE = Command("Create_Site", is_new=True)
UPDATE_SITE = Command("Update_Site")
DELETE_SITE = Command("Delete_Site", allow_null_payload=True)
UPDATE_OWNER = Command("Update_User")

T0 = datetime(2024, 1, 1, tzinfo=UTC)


@dataclasses.dataclass
class SiteView(Projection):
    name: str = ""
    owner_id: UUID | None = None
    owner_name: str = ""
    tags: list[str] = dataclasses.field(default_factory=list)
    opened_at: datetime | None = None

    def apply(self, event: Event) -> None:
        if event.command in (CREATE_SITE, UPDATE_SITE):
            self.update_properties(event.payload)
        elif event.command == DELETE_SITE:
            self.mark_deleted()
        elif event.command == UPDATE_OWNER:
            self.update_properties(event.payload, {"name": "owner_name"}, strict=True)


@dataclasses.dataclass
class Site:
    id: UUID
    tenant_id: UUID
    name: str
    internal_note: str = ""


def _event(command: Command, root: UUID, payload: dict | None, minutes: int) -> Event:
    return Event(command=command, aggregate_root_id=root, payload=payload, timestamp=T0 + timedelta(minutes=minutes))


# ---------------------------------------------------------------------------
# update_properties
# ---------------------------------------------------------------------------


class TestUpdateProperties:
    def test_copies_matching_names_only(self) -> None:
        view = SiteView()
        view.update_properties({"name": "HQ", "unknown": 1})
        assert view.name == "HQ"
        assert not hasattr(view, "unknown")

    def test_names_are_case_sensitive(self) -> None:
        view = SiteView()
        view.update_properties({"Name": "HQ"})
        assert view.name == ""

    def test_property_pairs_rename(self) -> None:
        view = SiteView(name="HQ")
        view.update_properties({"name": "Alice"}, {"name": "owner_name"}, strict=True)
        assert view.owner_name == "Alice"
        assert view.name == "HQ"

    def test_non_strict_pairs_still_copy_other_keys(self) -> None:
        view = SiteView()
        view.update_properties({"name": "HQ", "ownerName": "Bob"}, {"ownerName": "owner_name"})
        assert view.name == "HQ"
        assert view.owner_name == "Bob"

    def test_coerces_uuid_datetime_and_lists(self) -> None:
        owner = uuid4()
        view = SiteView()
        view.update_properties(
            {"owner_id": str(owner), "opened_at": "2024-01-01T00:00:00", "tags": ("a", "b")}
        )
        assert view.owner_id == owner
        assert view.opened_at == T0
        assert view.tags == ["a", "b"]

    def test_none_payload_is_noop(self) -> None:
        view = SiteView(name="HQ")
        view.update_properties(None)
        assert view.name == "HQ"

    def test_settable_fields_include_base_fields(self) -> None:
        assert {"id", "tenant_id", "initialized", "name"} <= SiteView.settable_fields()


# ---------------------------------------------------------------------------
# apply
# ---------------------------------------------------------------------------


class TestApply:
    def test_unknown_command_is_ignored(self) -> None:
        view = SiteView(name="HQ")
        view.apply(_event(Command("Something_Else"), uuid4(), {"name": "x"}, 0))
        assert view.name == "HQ"

    def test_delete_is_soft(self) -> None:
        view = SiteView(id=uuid4(), name="HQ")
        view.apply(_event(DELETE_SITE, view.id, None, 0))
        assert view.is_deleted
        assert view.name == "HQ"

    def test_mark_deleted_with_ttl(self) -> None:
        view = SiteView()
        view.mark_deleted(ttl=60)
        assert view.is_deleted
        assert view.ttl == 60

    def test_apply_events_is_order_independent(self) -> None:
        root = uuid4()
        events = [
            _event(CREATE_SITE, root, {"name": "first", "tags": ["a"]}, 0),
            _event(UPDATE_SITE, root, {"name": "second"}, 1),
            _event(UPDATE_OWNER, uuid4(), {"name": "Alice"}, 2),
            _event(UPDATE_SITE, root, {"name": "third", "tags": ["b"]}, 3),
        ]
        expected = SiteView(id=root)
        expected.apply_events(events)

        for perm in itertools.permutations(events):
            view = SiteView(id=root)
            view.apply_events(perm)
            assert view == expected

        assert expected.name == "third"
        assert expected.tags == ["b"]
        assert expected.owner_name == "Alice"


# ---------------------------------------------------------------------------
# Construction / provisional copies
# ---------------------------------------------------------------------------


class TestFromBase:
    def test_from_dataclass_copies_shared_fields(self) -> None:
        site = Site(id=uuid4(), tenant_id=uuid4(), name="HQ", internal_note="secret")
        view = SiteView.from_base(site)
        assert view.id == site.id
        assert view.tenant_id == site.tenant_id
        assert view.name == "HQ"
        assert view.initialized is False

    def test_from_mapping_with_string_id(self) -> None:
        site_id = uuid4()
        view = SiteView.from_base({"id": str(site_id), "name": "HQ", "initialized": True})
        assert view.id == site_id
        assert view.initialized is False

    def test_defaults(self) -> None:
        view = SiteView()
        assert view.id == NIL_ID
        assert view.ttl == -1
        assert not view.is_deleted

    def test_to_document(self) -> None:
        doc = SiteView(name="HQ").to_document()
        assert doc["name"] == "HQ"
        assert doc["initialized"] is False


class TestReplayOntoCopy:
    def test_original_untouched(self) -> None:
        view = SiteView(id=uuid4(), name="HQ", tags=["a"])
        copy = replay_onto_copy(view, [_event(UPDATE_SITE, view.id, {"name": "New", "tags": ["b"]}, 0)])
        assert copy.name == "New"
        assert view.name == "HQ"
        assert view.tags == ["a"]
        assert copy.id == view.id

    def test_abstract_base_cannot_be_instantiated(self) -> None:
        with pytest.raises(TypeError):
            Projection()  # type: ignore[abstract]
