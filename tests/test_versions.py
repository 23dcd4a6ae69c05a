"""Tests for the version ledger."""

from datetime import timedelta

import pytest

from novel_ledger.models import EntityKind
from novel_ledger.workspace import Workspace

from conftest import SteppingClock


@pytest.fixture
def kaelin(workspace, book_id):
    """A character with a few fields set."""
    return workspace.gateway.create(
        "character",
        {"name": "Kaelin Dusk", "role": "scout", "traits": ["wary"], "age": 27},
    )


class TestCapture:
    """Tests for version capture and listing."""

    def test_n_updates_give_n_plus_one_versions(self, workspace, kaelin):
        for age in (28, 29, 30):
            workspace.gateway.update("character", kaelin, {"age": age})

        versions = workspace.versions.list_versions("character", kaelin)
        assert len(versions) == 4
        assert [v.snapshot.age for v in versions] == [30, 29, 28, 27]
        assert versions[0].created_at > versions[-1].created_at

    def test_equal_timestamps_newest_insertion_first(self, settings, tmp_path):
        frozen = SteppingClock(step=timedelta(0))
        ws = Workspace(settings=settings, clock=frozen, path=tmp_path / "s.json")
        ws.gateway.add_book("Book")
        entity_id = ws.gateway.create("note", {"title": "v1"})
        ws.gateway.update("note", entity_id, {"title": "v2"})
        ws.gateway.update("note", entity_id, {"title": "v3"})

        titles = [v.snapshot.title for v in ws.versions.list_versions("note", entity_id)]
        assert titles == ["v3", "v2", "v1"]
        assert ws.versions.latest("note", entity_id).snapshot.title == "v3"

    def test_snapshots_are_copies(self, workspace, kaelin):
        workspace.gateway.update("character", kaelin, {"traits": ["wary", "loyal"]})

        first = workspace.versions.list_versions("character", kaelin)[-1]
        assert first.snapshot.traits == ["wary"]

    def test_default_description(self, workspace, kaelin):
        workspace.gateway.update("character", kaelin, {"age": 28})
        newest = workspace.versions.latest("character", kaelin)
        assert newest.description == "character Kaelin Dusk updated"

    def test_versions_for_other_entities_are_excluded(self, workspace, kaelin):
        workspace.gateway.create("character", {"name": "Mira"})
        assert len(workspace.versions.list_versions("character", kaelin)) == 1
        assert workspace.versions.list_versions(EntityKind.PLACE, kaelin) == []


class TestRestore:
    """Tests for restoring an entity to a recorded version."""

    def test_round_trip(self, workspace, kaelin):
        original = workspace.store.find_entity(EntityKind.CHARACTER, kaelin)
        workspace.gateway.update("character", kaelin, {"role": "captain", "traits": []})
        workspace.gateway.update("character", kaelin, {"name": "Kaelin the Grey", "backstory": "Lost"})
        first = workspace.versions.list_versions("character", kaelin)[-1]

        assert workspace.versions.restore(first.id)

        restored = workspace.store.find_entity(EntityKind.CHARACTER, kaelin)
        assert restored.model_dump(exclude={"updated_at"}) == original.model_dump(exclude={"updated_at"})
        assert restored.updated_at > original.updated_at

    def test_restore_is_idempotent(self, workspace, kaelin):
        workspace.gateway.update("character", kaelin, {"age": 40})
        first = workspace.versions.list_versions("character", kaelin)[-1]

        workspace.versions.restore(first.id)
        once = workspace.store.find_entity(EntityKind.CHARACTER, kaelin)
        workspace.versions.restore(first.id)
        twice = workspace.store.find_entity(EntityKind.CHARACTER, kaelin)

        assert once.model_dump(exclude={"updated_at"}) == twice.model_dump(exclude={"updated_at"})

    def test_restore_keeps_history(self, workspace, kaelin):
        workspace.gateway.update("character", kaelin, {"age": 40})
        first = workspace.versions.list_versions("character", kaelin)[-1]

        workspace.versions.restore(first.id)

        assert len(workspace.versions.list_versions("character", kaelin)) == 2

    def test_restore_uses_the_versions_book(self, workspace, book_id, kaelin):
        workspace.gateway.update("character", kaelin, {"age": 40})
        first = workspace.versions.list_versions("character", kaelin)[-1]
        workspace.gateway.add_book("Another Book")

        assert workspace.versions.restore(first.id)

        live = workspace.store.find_entity(EntityKind.CHARACTER, kaelin, book_id=book_id)
        assert live.age == 27
        assert workspace.store.current_book.entity_count == 0

    def test_restore_unknown_version(self, workspace):
        assert workspace.versions.restore("missing") is False
        assert workspace.notifications.items[-1].message == "Version not found"

    def test_restore_deleted_entity(self, workspace, kaelin):
        version = workspace.versions.latest("character", kaelin)
        workspace.gateway.delete("character", kaelin)

        assert workspace.versions.restore(version.id) is False
        assert workspace.store.find_entity(EntityKind.CHARACTER, kaelin) is None

    def test_restore_notifies(self, workspace, kaelin):
        version = workspace.versions.latest("character", kaelin)
        workspace.versions.restore(version.id)
        assert workspace.notifications.items[-1].message == "Restored character Kaelin Dusk to previous version"


class TestMerge:
    """Tests for merging versions loaded elsewhere."""

    def test_merge_skips_known_ids(self, workspace, kaelin):
        existing = workspace.versions.versions
        assert workspace.versions.merge(existing) == 0
        assert len(workspace.versions) == 1
