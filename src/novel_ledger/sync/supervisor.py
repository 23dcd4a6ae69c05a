"""Background synchronization supervisor.

Local mutations never wait on the network. The gateway and ledgers hand the
supervisor a coroutine factory; the supervisor runs it as an independent
asyncio task when a loop is running, or queues it until ``drain()`` when the
caller is synchronous (the CLI). Results only ever feed logging and
notifications, never the local state.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..notifications import NotificationCenter
from .relay import NullSyncRelay, SyncRelay

if TYPE_CHECKING:
    from ..store.aggregate import AggregateStore
    from ..store.versions import VersionLedger

logger = logging.getLogger(__name__)

SyncJob = Callable[[], Awaitable[object]]


@dataclass
class SyncResult:
    """Outcome of one background sync job."""

    operation: str
    ok: bool
    error: Optional[Exception] = None


class SyncSupervisor:
    """Owns fire-and-forget relay writes and startup hydration."""

    def __init__(
        self,
        relay: SyncRelay | None = None,
        notifications: NotificationCenter | None = None,
        result_history: int = 100,
    ):
        self.relay = relay or NullSyncRelay()
        self.notifications = notifications or NotificationCenter()
        self.results: deque[SyncResult] = deque(maxlen=result_history)
        self._background_tasks: set[asyncio.Task] = set()
        self._queued: list[tuple[str, SyncJob]] = []
        self._listeners: list[Callable[[SyncResult], None]] = []

    @property
    def enabled(self) -> bool:
        return not isinstance(self.relay, NullSyncRelay)

    @property
    def pending(self) -> int:
        """Jobs queued or still running."""
        return len(self._queued) + len(self._background_tasks)

    @property
    def failures(self) -> list[SyncResult]:
        return [result for result in self.results if not result.ok]

    def on_result(self, listener: Callable[[SyncResult], None]) -> None:
        self._listeners.append(listener)

    def submit(self, operation: str, job: SyncJob) -> None:
        """Schedule a relay call without waiting for it.

        Args:
            operation: Short label used in logs and notifications ("character Kaelin")
            job: Zero-argument callable returning the relay coroutine
        """
        if not self.enabled:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._queued.append((operation, job))
            return
        self._spawn(operation, job)

    def _spawn(self, operation: str, job: SyncJob) -> asyncio.Task:
        task = asyncio.create_task(self._run(operation, job))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _run(self, operation: str, job: SyncJob) -> SyncResult:
        try:
            await job()
        except Exception as e:
            # Remote failures are non-fatal: local state stays authoritative
            logger.warning("Background sync of %s failed: %s", operation, e)
            result = SyncResult(operation=operation, ok=False, error=e)
            self.notifications.error(f"Failed to sync {operation} to the remote store")
        else:
            logger.debug("Synced %s", operation)
            result = SyncResult(operation=operation, ok=True)

        self.results.append(result)
        for listener in self._listeners:
            listener(result)
        return result

    async def drain(self) -> list[SyncResult]:
        """Start queued jobs and wait for every in-flight job to finish."""
        queued, self._queued = self._queued, []
        for operation, job in queued:
            self._spawn(operation, job)

        results: list[SyncResult] = []
        while self._background_tasks:
            tasks = list(self._background_tasks)
            results.extend(await asyncio.gather(*tasks))
            self._background_tasks.difference_update(tasks)
        return results

    async def hydrate(self, store: "AggregateStore", versions: "VersionLedger") -> bool:
        """Pull remote books and versions into the local store.

        Fail-soft: any failure leaves local collections as they were.

        Returns:
            True if remote state was merged, False on failure
        """
        if not self.enabled:
            return False

        try:
            books = await self.relay.load_books()
            remote_versions = []
            for book in books:
                remote_versions.extend(await self.relay.load_versions(book.id))
        except Exception as e:
            logger.warning("Hydration from remote store failed: %s", e)
            self.notifications.error("Failed to load books from the remote store")
            return False

        added = store.merge_remote_books(books)
        merged = versions.merge(remote_versions)
        logger.info("Hydrated %d books (%d new entities) and %d versions", len(books), added, merged)
        return True
