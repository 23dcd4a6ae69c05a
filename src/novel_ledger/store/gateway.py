"""Mutation gateway: the single write path for books, entities and the conversation log.

Every create or update is applied to the aggregate store, captured in the
version ledger and then handed to the sync supervisor. The local write is
complete before any remote call starts, and remote failures never undo it.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional

from ..clock import Clock, utc_now
from ..errors import NoCurrentBookError
from ..models import (
    ENTITY_MODELS,
    Book,
    ChatContext,
    ConversationMessage,
    Entity,
    EntityAction,
    EntityChat,
    EntityKind,
    MentionedEntity,
    MessageRole,
)
from ..notifications import NotificationCenter
from ..sync.supervisor import SyncSupervisor
from .aggregate import AggregateStore
from .versions import VersionLedger

logger = logging.getLogger(__name__)

# Fields callers may not set through create/update
PROTECTED_FIELDS = frozenset({"id", "kind", "created_at", "updated_at"})

BOOK_FIELDS = frozenset({"title", "description", "genre", "author", "summary"})


def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}


class MutationGateway:
    """Creates, updates and deletes books, entities and messages."""

    def __init__(
        self,
        store: AggregateStore,
        versions: VersionLedger,
        supervisor: SyncSupervisor | None = None,
        notifications: NotificationCenter | None = None,
        clock: Clock = utc_now,
        trash_retention_days: int = 30,
    ):
        self.store = store
        self.versions = versions
        self.notifications = notifications or versions.notifications
        self.supervisor = supervisor or versions.supervisor
        self.clock = clock
        self.trash_retention = timedelta(days=trash_retention_days)

    # ========================================================================
    # Entities
    # ========================================================================

    def create(
        self,
        kind: EntityKind | str,
        data: Mapping[str, Any],
        message_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Create an entity in the current book.

        Args:
            kind: Entity kind
            data: Field values; ``id``, ``kind`` and timestamps are ignored
            message_id: Conversation message that asked for the entity
            description: Version description override

        Returns:
            The new entity ID

        Raises:
            NoCurrentBookError: If no book is selected
        """
        kind = EntityKind.parse(kind)
        book = self.store.current_book
        if book is None:
            self.notifications.error(f"Select a book before creating a {kind.value}")
            raise NoCurrentBookError()

        now = self.clock()
        entity = ENTITY_MODELS[kind].model_validate(
            {**_clean(data), "id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        self.store._append_entity(book, entity)
        logger.info("Created %s %s (%s) in book %s", kind.value, entity.display_name, entity.id, book.id)

        self.versions.capture(
            kind,
            entity.id,
            entity,
            book.id,
            message_id=message_id,
            description=description or f"{kind.value} {entity.display_name} created",
        )
        self._mirror_entity(kind, entity, book.id)
        self.notifications.success(f"{kind.value.capitalize()} {entity.display_name} created")
        return entity.id

    def update(
        self,
        kind: EntityKind | str,
        entity_id: str,
        partial: Mapping[str, Any],
        message_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> bool:
        """Shallow-merge fields into an entity of the current book.

        A missing book or entity is an expected race, not an error: the call
        does nothing and returns False.
        """
        kind = EntityKind.parse(kind)
        book = self.store.current_book
        if book is None:
            logger.debug("Update of %s %s ignored: no current book", kind.value, entity_id)
            return False
        existing = book.find(kind, entity_id)
        if existing is None:
            logger.debug("Update of %s %s ignored: not in book %s", kind.value, entity_id, book.id)
            return False

        merged = {**existing.model_dump(), **_clean(partial), "updated_at": self.clock()}
        entity = ENTITY_MODELS[kind].model_validate(merged)
        self.store._replace_entity(book, entity)
        logger.info("Updated %s %s (%s)", kind.value, entity.display_name, entity.id)

        self.versions.capture(kind, entity.id, entity, book.id, message_id=message_id, description=description)
        self._mirror_entity(kind, entity, book.id)
        self.notifications.success(f"{kind.value.capitalize()} {entity.display_name} updated")
        return True

    def delete(self, kind: EntityKind | str, entity_id: str) -> bool:
        """Remove an entity from the current book.

        No version is captured; earlier versions stay queryable. References
        to the entity elsewhere are left as they are.
        """
        kind = EntityKind.parse(kind)
        book = self.store.current_book
        if book is None:
            return False
        removed = self.store._remove_entity(book, kind, entity_id)
        if removed is None:
            return False
        logger.info("Deleted %s %s (%s)", kind.value, removed.display_name, entity_id)
        self.notifications.success(f"{kind.value.capitalize()} {removed.display_name} deleted")
        return True

    def _mirror_entity(self, kind: EntityKind, entity: Entity, book_id: str) -> None:
        relay = self.supervisor.relay
        self.supervisor.submit(
            f"{kind.value} {entity.display_name}",
            lambda: relay.persist_entity(kind, entity, book_id),
        )

    # ========================================================================
    # Books
    # ========================================================================

    def add_book(
        self,
        title: str,
        description: str = "",
        genre: str = "Fiction",
        author: Optional[str] = None,
    ) -> str:
        """Create a book and make it current."""
        now = self.clock()
        book = Book(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            genre=genre or "Fiction",
            author=author,
            created_at=now,
            updated_at=now,
        )
        self.store._insert_book(book)
        self.store._set_current(book.id)
        logger.info("Created book %r (%s)", title, book.id)

        self._mirror_book(book)
        self.notifications.success("New book created")
        return book.id

    def update_book(self, book_id: str, **fields: Any) -> bool:
        """Update a book's own fields (title, description, genre, author, summary)."""
        book = self.store.get_book(book_id)
        if book is None:
            return False
        unknown = set(fields) - BOOK_FIELDS
        if unknown:
            raise ValueError(f"Cannot update book fields: {', '.join(sorted(unknown))}")

        for name, value in fields.items():
            setattr(book, name, value)
        book.updated_at = self.clock()

        self._mirror_book(book)
        self.notifications.success(f"Book {book.title} updated")
        return True

    def set_summary(self, book_id: str, summary: str) -> bool:
        return self.update_book(book_id, summary=summary)

    def switch_book(self, book_id: str) -> bool:
        """Point the session at another active book."""
        if not self.store._set_current(book_id):
            self.notifications.error("Book not found")
            return False
        self.notifications.success("Switched to different book")
        return True

    def delete_book(self, book_id: str) -> bool:
        """Soft-delete a book: it moves to the trash until the retention window ends."""
        book = self.store.get_book(book_id)
        if book is None or book.is_deleted:
            return False

        book.is_deleted = True
        book.deleted_at = self.clock()
        if self.store.current_book_id == book_id:
            self.store._set_current(None)
        logger.info("Moved book %r (%s) to trash", book.title, book_id)

        self._mirror_book(book)
        self.notifications.success("Book moved to trash")
        return True

    def restore_book(self, book_id: str) -> bool:
        """Bring a book back from the trash."""
        book = self.store.get_book(book_id)
        if book is None or not book.is_deleted:
            return False

        book.is_deleted = False
        book.deleted_at = None
        book.updated_at = self.clock()

        self._mirror_book(book)
        self.notifications.success(f"Book {book.title} restored")
        return True

    def trash_days_remaining(self, book: Book, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days left before a trashed book is purged (None if not trashed)."""
        if not book.is_deleted or book.deleted_at is None:
            return None
        now = now or self.clock()
        remaining = book.deleted_at + self.trash_retention - now
        return max(remaining.days, 0)

    def purge_expired_books(self, now: Optional[datetime] = None) -> list[str]:
        """Permanently remove trashed books past the retention window.

        Their versions are forgotten along with them.

        Returns:
            IDs of purged books
        """
        now = now or self.clock()
        purged = []
        for book in self.store.deleted_books():
            if book.deleted_at is not None and now - book.deleted_at >= self.trash_retention:
                self.store._remove_book(book.id)
                dropped = self.versions.forget_book(book.id)
                logger.info("Purged book %r (%s) and %d versions", book.title, book.id, dropped)
                purged.append(book.id)

        if purged:
            self.notifications.success(f"Permanently deleted {len(purged)} book(s) from trash")
        return purged

    def _mirror_book(self, book: Book) -> None:
        snapshot = book.model_copy()
        relay = self.supervisor.relay
        self.supervisor.submit(f"book {book.title}", lambda: relay.persist_book(snapshot))

    # ========================================================================
    # Conversation
    # ========================================================================

    def add_message(
        self,
        role: MessageRole | str,
        content: str,
        entity_kind: EntityKind | str | None = None,
        entity_id: Optional[str] = None,
        mentioned_entities: Iterable[MentionedEntity] = (),
        entity_action: EntityAction | str | None = None,
        entity_version_id: Optional[str] = None,
    ) -> str:
        """Append a message to the conversation log.

        Messages without an explicit entity link inherit the chat context.

        Returns:
            The new message ID
        """
        context = self.store.chat_context
        if entity_kind is None and context is not None:
            entity_kind, entity_id = context.entity_kind, context.entity_id

        message = ConversationMessage(
            id=str(uuid.uuid4()),
            role=MessageRole(role),
            content=content,
            timestamp=self.clock(),
            entity_kind=EntityKind.parse(entity_kind) if entity_kind else None,
            entity_id=entity_id if entity_kind else None,
            mentioned_entities=list(mentioned_entities),
            entity_action=EntityAction(entity_action) if entity_action else None,
            entity_version_id=entity_version_id,
        )
        self.store._append_message(message)

        if message.entity_kind is not None and message.entity_id is not None:
            self._mirror_entity_chat(message.entity_kind, message.entity_id)
        return message.id

    def clear_chat(self) -> None:
        self.store._clear_messages()
        self.notifications.success("Chat history cleared")

    def link_chat(self, kind: EntityKind | str, entity_id: str) -> bool:
        """Make subsequent messages default to being about an entity."""
        kind = EntityKind.parse(kind)
        if self.store.find_entity(kind, entity_id, fallback=True) is None:
            return False
        self.store._set_chat_context(ChatContext(entity_kind=kind, entity_id=entity_id))
        self.notifications.success(f"Chat is now linked to this {kind.value}")
        return True

    def unlink_chat(self) -> bool:
        context = self.store.chat_context
        if context is None:
            return False
        self.store._set_chat_context(None)
        self.add_message(MessageRole.SYSTEM, f"Chat unlinked from {context.entity_kind.value}")
        return True

    def _mirror_entity_chat(self, kind: EntityKind, entity_id: str) -> None:
        found = self.store.find_entity_with_book(kind, entity_id, fallback=True)
        if found is None:
            return
        book, _ = found
        chat = EntityChat(
            entity_kind=kind,
            entity_id=entity_id,
            book_id=book.id,
            chat_history=self.store.messages_about(kind, entity_id),
            updated_at=self.clock(),
        )
        relay = self.supervisor.relay
        self.supervisor.submit(f"{kind.value} chat", lambda: relay.save_entity_chat(chat))
