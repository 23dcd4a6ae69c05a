"""Version ledger: append-only entity snapshots with point-in-time restore."""

import logging
import uuid
from typing import Iterable, Optional

from ..clock import Clock, utc_now
from ..models import Entity, EntityKind, EntityVersion
from ..notifications import NotificationCenter
from ..sync.supervisor import SyncSupervisor
from .aggregate import AggregateStore

logger = logging.getLogger(__name__)


class VersionLedger:
    """History of entity snapshots, one entry per create or update.

    Entries are never removed in normal operation; restoring overwrites the
    live entity and leaves every later entry in place.
    """

    def __init__(
        self,
        store: AggregateStore,
        supervisor: SyncSupervisor | None = None,
        notifications: NotificationCenter | None = None,
        clock: Clock = utc_now,
        versions: Iterable[EntityVersion] = (),
    ):
        self.store = store
        self.notifications = notifications or NotificationCenter()
        self.supervisor = supervisor or SyncSupervisor(notifications=self.notifications)
        self.clock = clock
        self._versions: list[EntityVersion] = list(versions)

    @property
    def versions(self) -> list[EntityVersion]:
        """Every version in insertion order."""
        return list(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def capture(
        self,
        kind: EntityKind | str,
        entity_id: str,
        snapshot: Entity,
        book_id: str,
        message_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Append a snapshot of an entity.

        Args:
            kind: Entity kind
            entity_id: ID of the entity the snapshot belongs to
            snapshot: Full entity state at capture time (copied)
            book_id: Book that owns the entity
            message_id: Conversation message that produced this state
            description: Human description, defaults to "<kind> <name> updated"

        Returns:
            The new version ID
        """
        kind = EntityKind.parse(kind)
        version = EntityVersion(
            id=str(uuid.uuid4()),
            entity_kind=kind,
            entity_id=entity_id,
            book_id=book_id,
            snapshot=snapshot.model_copy(deep=True),
            created_at=self.clock(),
            message_id=message_id,
            description=description or f"{kind.value} {snapshot.display_name} updated",
        )
        self._versions.append(version)
        logger.debug("Captured version %s for %s %s", version.id, kind.value, entity_id)

        relay = self.supervisor.relay
        self.supervisor.submit(
            f"{kind.value} version",
            lambda: relay.persist_version(version, book_id),
        )
        return version.id

    def get(self, version_id: str) -> Optional[EntityVersion]:
        for version in self._versions:
            if version.id == version_id:
                return version
        return None

    def list_versions(self, kind: EntityKind | str, entity_id: str) -> list[EntityVersion]:
        """All versions of an entity, newest first.

        Equal timestamps keep insertion order, later insertions first, so the
        head of the list is always the most recent capture.
        """
        kind = EntityKind.parse(kind)
        indexed = [
            (position, version)
            for position, version in enumerate(self._versions)
            if version.entity_kind == kind and version.entity_id == entity_id
        ]
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [version for _, version in indexed]

    def latest(self, kind: EntityKind | str, entity_id: str) -> Optional[EntityVersion]:
        versions = self.list_versions(kind, entity_id)
        return versions[0] if versions else None

    def restore(self, version_id: str) -> bool:
        """Overwrite a live entity with a recorded snapshot.

        The target is resolved through the version's own book, not the
        current-book pointer. The entity keeps its ID and creation time and
        gets a fresh ``updated_at``. Restoring is not itself versioned.

        Returns:
            True on success, False if the version is unknown or the entity
            no longer exists in its book
        """
        version = self.get(version_id)
        if version is None:
            logger.debug("Restore requested for unknown version %s", version_id)
            self.notifications.error("Version not found")
            return False

        kind = version.entity_kind
        found = self.store.find_entity_with_book(kind, version.entity_id, book_id=version.book_id)
        if found is None:
            logger.info(
                "Cannot restore version %s: %s %s no longer exists",
                version_id, kind.value, version.entity_id,
            )
            self.notifications.error(f"Failed to restore {kind.value}: it no longer exists")
            return False

        book, live = found
        restored = version.snapshot.model_copy(
            update={"id": live.id, "created_at": live.created_at, "updated_at": self.clock()},
            deep=True,
        )
        self.store._replace_entity(book, restored)

        relay = self.supervisor.relay
        self.supervisor.submit(
            f"{kind.value} {restored.display_name}",
            lambda: relay.persist_entity(kind, restored, book.id),
        )

        name = restored.display_name or f"{kind.value} {version.entity_id[:8]}"
        self.notifications.success(f"Restored {kind.value} {name} to previous version")
        return True

    def merge(self, versions: Iterable[EntityVersion]) -> int:
        """Add versions loaded from elsewhere, skipping IDs already held."""
        known = {version.id for version in self._versions}
        added = 0
        for version in sorted(versions, key=lambda v: v.created_at):
            if version.id in known:
                continue
            self._versions.append(version)
            known.add(version.id)
            added += 1
        return added

    def forget_book(self, book_id: str) -> int:
        """Drop every version of a book that has been permanently removed."""
        before = len(self._versions)
        self._versions = [version for version in self._versions if version.book_id != book_id]
        return before - len(self._versions)
