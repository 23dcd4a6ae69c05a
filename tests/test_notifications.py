"""Tests for the notification center."""

from novel_ledger.notifications import NotificationCenter, NotificationLevel


class TestNotificationCenter:

    def test_repeats_coalesce(self):
        center = NotificationCenter()
        center.error("Failed to sync")
        center.error("Failed to sync")

        assert len(center.items) == 1
        assert center.items[0].count == 2

    def test_different_messages_stack(self):
        center = NotificationCenter()
        center.error("Failed to sync")
        center.success("Chat history cleared")
        center.error("Failed to sync")

        assert [n.count for n in center.items] == [1, 1, 1]
        assert center.items[1].level == NotificationLevel.SUCCESS

    def test_history_is_bounded(self):
        center = NotificationCenter(history=3)
        for index in range(5):
            center.notify(f"message {index}")
        assert [n.message for n in center.items] == ["message 2", "message 3", "message 4"]

    def test_listeners(self):
        center = NotificationCenter()
        seen = []
        center.subscribe(lambda n: seen.append(n.message))
        center.success("New book created")
        assert seen == ["New book created"]
