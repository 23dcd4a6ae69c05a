"""Checkpoint ledger: labelled restore points for the conversation log."""

import logging
import uuid
from typing import Iterable, Optional

from ..clock import Clock, utc_now
from ..models import ChatCheckpoint
from ..notifications import NotificationCenter
from .aggregate import AggregateStore

logger = logging.getLogger(__name__)


class CheckpointLedger:
    """Anchors into the conversation log, restored by prefix truncation.

    Restoring a checkpoint only rewinds the chat. Entity changes made by the
    discarded messages stay in place; use the version ledger to undo those.
    """

    def __init__(
        self,
        store: AggregateStore,
        notifications: NotificationCenter | None = None,
        clock: Clock = utc_now,
        checkpoints: Iterable[ChatCheckpoint] = (),
    ):
        self.store = store
        self.notifications = notifications or NotificationCenter()
        self.clock = clock
        self._checkpoints: list[ChatCheckpoint] = list(checkpoints)

    @property
    def checkpoints(self) -> list[ChatCheckpoint]:
        """Checkpoints in creation order."""
        return list(self._checkpoints)

    def get(self, checkpoint_id: str) -> Optional[ChatCheckpoint]:
        for checkpoint in self._checkpoints:
            if checkpoint.id == checkpoint_id:
                return checkpoint
        return None

    def create_checkpoint(self, label: str) -> str:
        """Anchor a checkpoint at the last message currently in the log."""
        checkpoint = ChatCheckpoint(
            id=str(uuid.uuid4()),
            label=label,
            created_at=self.clock(),
            message_index=len(self.store.messages) - 1,
        )
        self._checkpoints.append(checkpoint)
        logger.debug("Checkpoint %r anchored at message %d", label, checkpoint.message_index)
        self.notifications.success("Chat checkpoint created")
        return checkpoint.id

    def restore_checkpoint(self, checkpoint_id: str) -> bool:
        """Truncate the conversation log back to a checkpoint, inclusive.

        A checkpoint whose anchor lies at or past the end of the log is a
        valid no-op.
        """
        checkpoint = self.get(checkpoint_id)
        if checkpoint is None:
            self.notifications.error("Checkpoint not found")
            return False

        discarded = self.store._truncate_messages(checkpoint.message_index + 1)
        logger.info("Restored checkpoint %r, discarded %d messages", checkpoint.label, discarded)
        self.notifications.success(f"Chat restored to checkpoint: {checkpoint.label}")
        return True
