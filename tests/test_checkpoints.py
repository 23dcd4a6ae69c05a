"""Tests for chat checkpoints."""

from novel_ledger.models import EntityKind


def _say(workspace, count, prefix="message"):
    for index in range(count):
        workspace.gateway.add_message("user", f"{prefix} {index}")


class TestCheckpoints:
    """Tests for creating and restoring checkpoints."""

    def test_anchor_and_restore_boundary(self, workspace):
        _say(workspace, 5)
        checkpoint_id = workspace.checkpoints.create_checkpoint("x")
        assert workspace.checkpoints.get(checkpoint_id).message_index == 4

        _say(workspace, 3, prefix="later")
        assert len(workspace.store.messages) == 8

        assert workspace.checkpoints.restore_checkpoint(checkpoint_id)
        assert len(workspace.store.messages) == 5
        assert workspace.store.messages[-1].content == "message 4"
        assert workspace.notifications.items[-1].message == "Chat restored to checkpoint: x"

    def test_checkpoint_on_empty_log(self, workspace):
        checkpoint_id = workspace.checkpoints.create_checkpoint("start")
        _say(workspace, 2)

        workspace.checkpoints.restore_checkpoint(checkpoint_id)

        assert workspace.store.messages == ()

    def test_unknown_checkpoint(self, workspace):
        _say(workspace, 2)
        assert workspace.checkpoints.restore_checkpoint("missing") is False
        assert len(workspace.store.messages) == 2
        assert workspace.notifications.items[-1].message == "Checkpoint not found"

    def test_anchor_past_end_is_noop(self, workspace):
        _say(workspace, 4)
        checkpoint_id = workspace.checkpoints.create_checkpoint("late")
        workspace.gateway.clear_chat()
        _say(workspace, 2)

        assert workspace.checkpoints.restore_checkpoint(checkpoint_id)
        assert len(workspace.store.messages) == 2

    def test_restore_does_not_revert_entities(self, workspace, book_id):
        _say(workspace, 1)
        checkpoint_id = workspace.checkpoints.create_checkpoint("before scene")
        message_id = workspace.gateway.add_message("assistant", "I wrote the scene")
        scene_id = workspace.gateway.create("scene", {"title": "The Ford"}, message_id=message_id)

        workspace.checkpoints.restore_checkpoint(checkpoint_id)

        assert len(workspace.store.messages) == 1
        assert workspace.store.find_entity(EntityKind.SCENE, scene_id) is not None

    def test_checkpoints_in_creation_order(self, workspace):
        first = workspace.checkpoints.create_checkpoint("one")
        second = workspace.checkpoints.create_checkpoint("two")
        assert [c.id for c in workspace.checkpoints.checkpoints] == [first, second]
