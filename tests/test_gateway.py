"""Tests for the mutation gateway: entities, books and the conversation log."""

from datetime import timedelta

import pytest

from novel_ledger.errors import NoCurrentBookError, UnknownEntityKindError
from novel_ledger.models import EntityKind, MessageRole
from novel_ledger.notifications import NotificationLevel


class TestEntityCreation:
    """Tests for create()."""

    def test_create_without_book_raises(self, workspace):
        """Creating with no book selected is rejected and reported."""
        with pytest.raises(NoCurrentBookError):
            workspace.gateway.create("character", {"name": "Kaelin Dusk"})

        last = workspace.notifications.items[-1]
        assert last.level == NotificationLevel.ERROR
        assert "Select a book" in last.message

    def test_create_appends_to_current_book(self, workspace, book_id):
        entity_id = workspace.gateway.create("character", {"name": "Kaelin Dusk", "traits": ["stubborn"]})

        book = workspace.store.get_book(book_id)
        kaelin = book.find(EntityKind.CHARACTER, entity_id)
        assert kaelin is not None
        assert kaelin.traits == ["stubborn"]
        assert kaelin.created_at == kaelin.updated_at

    def test_create_ignores_protected_fields(self, workspace, book_id):
        entity_id = workspace.gateway.create("place", {"id": "mine", "kind": "note", "name": "Ashfall"})

        assert entity_id != "mine"
        place = workspace.store.find_entity(EntityKind.PLACE, entity_id)
        assert place.kind == "place"

    def test_create_captures_one_version(self, workspace, book_id):
        entity_id = workspace.gateway.create("scene", {"title": "The Ford"}, message_id="msg-1")

        versions = workspace.versions.list_versions("scene", entity_id)
        assert len(versions) == 1
        assert versions[0].snapshot == workspace.store.find_entity(EntityKind.SCENE, entity_id)
        assert versions[0].message_id == "msg-1"
        assert versions[0].book_id == book_id

    def test_create_notifies(self, workspace, book_id):
        workspace.gateway.create("event", {"name": "The Siege"})
        assert workspace.notifications.items[-1].message == "Event The Siege created"

    def test_unknown_kind(self, workspace, book_id):
        with pytest.raises(UnknownEntityKindError):
            workspace.gateway.create("dragon", {"name": "Smaug"})


class TestEntityUpdate:
    """Tests for update()."""

    def test_update_merges_fields(self, workspace, book_id):
        entity_id = workspace.gateway.create("character", {"name": "Mira", "role": "smith"})
        created = workspace.store.find_entity(EntityKind.CHARACTER, entity_id)

        assert workspace.gateway.update("character", entity_id, {"age": 31, "created_at": None})

        mira = workspace.store.find_entity(EntityKind.CHARACTER, entity_id)
        assert mira.role == "smith"
        assert mira.age == 31
        assert mira.created_at == created.created_at
        assert mira.updated_at > created.updated_at

    def test_update_keeps_collection_order(self, workspace, book_id):
        first = workspace.gateway.create("page", {"title": "One"})
        second = workspace.gateway.create("page", {"title": "Two"})

        workspace.gateway.update("page", first, {"content": "It began."})

        pages = workspace.store.get_book(book_id).pages
        assert [page.id for page in pages] == [first, second]

    def test_update_without_book_is_noop(self, workspace):
        assert workspace.gateway.update("character", "missing", {"name": "x"}) is False
        assert len(workspace.versions) == 0

    def test_update_missing_entity_is_noop(self, workspace, book_id):
        assert workspace.gateway.update("character", "missing", {"name": "x"}) is False
        assert len(workspace.versions) == 0

    def test_update_only_targets_current_book(self, workspace, book_id):
        entity_id = workspace.gateway.create("note", {"title": "Plot holes"})
        workspace.gateway.add_book("Second Book")

        assert workspace.gateway.update("note", entity_id, {"content": "none"}) is False


class TestEntityDelete:
    """Tests for delete()."""

    def test_delete_keeps_history(self, workspace, book_id):
        entity_id = workspace.gateway.create("character", {"name": "Orrin"})

        assert workspace.gateway.delete("character", entity_id)

        assert workspace.store.find_entity(EntityKind.CHARACTER, entity_id) is None
        assert len(workspace.versions.list_versions("character", entity_id)) == 1

    def test_delete_missing_is_noop(self, workspace, book_id):
        assert workspace.gateway.delete("character", "missing") is False


class TestBooks:
    """Tests for book operations."""

    def test_add_book_becomes_current(self, workspace):
        first = workspace.gateway.add_book("First")
        second = workspace.gateway.add_book("Second", author="A. Writer")

        assert workspace.store.current_book_id == second
        assert workspace.store.get_book(second).author == "A. Writer"
        assert workspace.gateway.switch_book(first)
        assert workspace.store.current_book_id == first

    def test_switch_to_unknown_book(self, workspace, book_id):
        assert workspace.gateway.switch_book("nope") is False
        assert workspace.store.current_book_id == book_id

    def test_soft_delete_and_restore(self, workspace, book_id):
        assert workspace.gateway.delete_book(book_id)

        book = workspace.store.get_book(book_id)
        assert book.is_deleted
        assert book.deleted_at is not None
        assert workspace.store.current_book_id is None
        assert book in workspace.store.deleted_books()
        assert book not in workspace.store.active_books()

        assert workspace.gateway.restore_book(book_id)
        assert not book.is_deleted
        assert book.deleted_at is None
        assert book in workspace.store.active_books()

    def test_cannot_switch_to_deleted_book(self, workspace, book_id):
        workspace.gateway.delete_book(book_id)
        assert workspace.gateway.switch_book(book_id) is False

    def test_trash_days_remaining(self, workspace, book_id):
        workspace.gateway.delete_book(book_id)
        book = workspace.store.get_book(book_id)

        assert workspace.gateway.trash_days_remaining(book, now=book.deleted_at + timedelta(days=10)) == 20
        assert workspace.gateway.trash_days_remaining(book, now=book.deleted_at + timedelta(days=45)) == 0

    def test_purge_expired_books(self, workspace, book_id):
        workspace.gateway.create("character", {"name": "Kaelin"})
        keep = workspace.gateway.add_book("Keeper")
        workspace.gateway.delete_book(book_id)
        deleted_at = workspace.store.get_book(book_id).deleted_at

        assert workspace.gateway.purge_expired_books(now=deleted_at + timedelta(days=29)) == []
        assert workspace.gateway.purge_expired_books(now=deleted_at + timedelta(days=30)) == [book_id]

        assert workspace.store.get_book(book_id) is None
        assert workspace.store.get_book(keep) is not None
        assert len(workspace.versions) == 0

    def test_update_book_fields(self, workspace, book_id):
        assert workspace.gateway.set_summary(book_id, "A long walk.")
        assert workspace.store.get_book(book_id).summary == "A long walk."

        with pytest.raises(ValueError):
            workspace.gateway.update_book(book_id, is_deleted=True)


class TestConversation:
    """Tests for the conversation log and chat context."""

    def test_messages_inherit_chat_context(self, workspace, book_id):
        entity_id = workspace.gateway.create("character", {"name": "Kaelin"})
        assert workspace.gateway.link_chat("character", entity_id)

        workspace.gateway.add_message(MessageRole.USER, "Tell me about her past")

        message = workspace.store.messages[-1]
        assert message.entity_kind == EntityKind.CHARACTER
        assert message.entity_id == entity_id
        assert workspace.store.messages_about(EntityKind.CHARACTER, entity_id) == [message]

    def test_link_unknown_entity(self, workspace, book_id):
        assert workspace.gateway.link_chat("character", "missing") is False
        assert workspace.store.chat_context is None

    def test_unlink_appends_system_message(self, workspace, book_id):
        entity_id = workspace.gateway.create("place", {"name": "Ashfall"})
        workspace.gateway.link_chat("place", entity_id)

        assert workspace.gateway.unlink_chat()

        assert workspace.store.chat_context is None
        last = workspace.store.messages[-1]
        assert last.role == MessageRole.SYSTEM
        assert last.content == "Chat unlinked from place"
        assert last.entity_kind is None

    def test_clear_chat(self, workspace):
        workspace.gateway.add_message("user", "hello")
        workspace.gateway.clear_chat()
        assert workspace.store.messages == ()

    def test_last_modified_item(self, workspace, book_id):
        first = workspace.gateway.create("character", {"name": "Kaelin"})
        workspace.gateway.create("place", {"name": "Ashfall"})
        workspace.gateway.update("character", first, {"role": "scout"})

        assert workspace.store.last_modified_item(book_id) == (EntityKind.CHARACTER, first)
