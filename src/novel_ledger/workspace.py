"""Workspace - wires the store, gateway, ledgers, resolver and sync together.

Each component receives the shared store and collaborators through its
constructor; the workspace is the only place that builds them.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from .clock import Clock, utc_now
from .config import Settings, get_settings
from .models import EntityKind, MessageRole
from .notifications import NotificationCenter
from .persistence import SessionState, load_session, save_session
from .search import Candidate, MentionResolver, MentionResult, process_mentions, suggest_for_text
from .store import AggregateStore, CheckpointLedger, MutationGateway, VersionLedger
from .sync import NullSyncRelay, RestSyncRelay, SyncRelay, SyncResult, SyncSupervisor

logger = logging.getLogger(__name__)


def relay_from_settings(settings: Settings) -> SyncRelay:
    """REST relay when a remote URL is configured, otherwise local-only."""
    if settings.remote_enabled:
        return RestSyncRelay.from_settings(settings)
    return NullSyncRelay()


class Workspace:
    """One writer's session over their books.

    Usage:
        ws = Workspace.open()
        ws.gateway.add_book("The Long Road")
        kaelin = ws.gateway.create("character", {"name": "Kaelin Dusk"})
        ws.resolver.search("kd", ["character"])
        ws.save()
    """

    def __init__(
        self,
        state: Optional[SessionState] = None,
        relay: Optional[SyncRelay] = None,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        path: Optional[Path] = None,
    ):
        state = state or SessionState()
        self.settings = settings or get_settings()
        self.path = path
        self.clock = clock

        self.notifications = NotificationCenter(history=self.settings.notification_history, clock=clock)
        self.supervisor = SyncSupervisor(relay or NullSyncRelay(), self.notifications)
        self.store = AggregateStore(
            books=state.books,
            current_book_id=state.current_book_id,
            messages=state.messages,
            chat_context=state.chat_context,
        )
        self.versions = VersionLedger(
            self.store, self.supervisor, self.notifications, clock=clock, versions=state.versions
        )
        self.checkpoints = CheckpointLedger(
            self.store, self.notifications, clock=clock, checkpoints=state.checkpoints
        )
        self.gateway = MutationGateway(
            self.store,
            self.versions,
            self.supervisor,
            self.notifications,
            clock=clock,
            trash_retention_days=self.settings.trash_retention_days,
        )
        self.resolver = MentionResolver(
            self.store,
            search_limit=self.settings.search_limit,
            suggestion_limit=self.settings.suggestion_limit,
            min_query_length=self.settings.min_query_length,
        )

    @classmethod
    def open(
        cls,
        path: Optional[Path] = None,
        settings: Optional[Settings] = None,
        relay: Optional[SyncRelay] = None,
        clock: Clock = utc_now,
    ) -> "Workspace":
        """Load a workspace from its session file (defaults from settings)."""
        settings = settings or get_settings()
        path = Path(path) if path is not None else settings.session_file
        state = load_session(path)
        return cls(
            state=state,
            relay=relay if relay is not None else relay_from_settings(settings),
            settings=settings,
            clock=clock,
            path=path,
        )

    def state(self) -> SessionState:
        return SessionState(
            books=self.store.books,
            current_book_id=self.store.current_book_id,
            messages=list(self.store.messages),
            chat_context=self.store.chat_context,
            versions=self.versions.versions,
            checkpoints=self.checkpoints.checkpoints,
        )

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path) if path is not None else (self.path or self.settings.session_file)
        save_session(self.state(), target)
        return target

    # ------------------------------------------------------------------
    # Reads for the chat layer
    # ------------------------------------------------------------------

    def get_entity_info(
        self,
        kind: EntityKind | str,
        entity_id: str,
        book_id: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Entity data for assistant context, falling back to other books."""
        found = self.store.find_entity_with_book(
            EntityKind.parse(kind), entity_id, book_id=book_id, fallback=True
        )
        if found is None:
            return None
        book, entity = found
        info = entity.model_dump(mode="json")
        info["book_id"] = book.id
        info["book_title"] = book.title
        return info

    def process_mentions(self, text: str) -> MentionResult:
        return process_mentions(text, self.resolver)

    def suggest(self, text: str) -> list[Candidate]:
        return suggest_for_text(text, self.resolver)

    def say(self, text: str, role: MessageRole | str = MessageRole.USER) -> str:
        """Append a message after resolving its mention tokens.

        Returns:
            The new message ID
        """
        result = self.process_mentions(text)
        return self.gateway.add_message(role, result.text, mentioned_entities=result.mentioned_entities)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def hydrate(self) -> bool:
        return await self.supervisor.hydrate(self.store, self.versions)

    async def drain(self) -> list[SyncResult]:
        return await self.supervisor.drain()
