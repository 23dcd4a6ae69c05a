"""In-memory aggregate store: every book, the current-book pointer and the conversation log.

The store is the single source of truth for reads. Its underscore methods
are the write surface, reserved for the mutation gateway and the ledgers'
restore operations; nothing else writes to books, entities or the log.
"""

import logging
from typing import Iterable, Optional

from ..models import Book, ChatContext, ConversationMessage, Entity, EntityKind

logger = logging.getLogger(__name__)


class AggregateStore:
    """Books with their entity collections, plus the flat conversation log."""

    def __init__(
        self,
        books: Iterable[Book] = (),
        current_book_id: Optional[str] = None,
        messages: Iterable[ConversationMessage] = (),
        chat_context: Optional[ChatContext] = None,
    ):
        self._books: list[Book] = list(books)
        self._messages: list[ConversationMessage] = list(messages)
        self._current_book_id: Optional[str] = None
        self._chat_context = chat_context
        if current_book_id is not None:
            self._set_current(current_book_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def books(self) -> list[Book]:
        """Every book, including soft-deleted ones."""
        return list(self._books)

    @property
    def current_book_id(self) -> Optional[str]:
        return self._current_book_id

    @property
    def current_book(self) -> Optional[Book]:
        """The book matching the current pointer, or None."""
        if self._current_book_id is None:
            return None
        return self.get_book(self._current_book_id)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def chat_context(self) -> Optional[ChatContext]:
        return self._chat_context

    def messages_about(self, kind: EntityKind, entity_id: str) -> list[ConversationMessage]:
        """Messages linked to one entity, in log order."""
        return [message for message in self._messages if message.is_about(kind, entity_id)]

    def get_book(self, book_id: str) -> Optional[Book]:
        for book in self._books:
            if book.id == book_id:
                return book
        return None

    def active_books(self) -> list[Book]:
        return [book for book in self._books if not book.is_deleted]

    def deleted_books(self) -> list[Book]:
        return [book for book in self._books if book.is_deleted]

    def find_book_by_title(self, title: str) -> Optional[Book]:
        """Case-insensitive title lookup among active books."""
        wanted = title.strip().lower()
        for book in self.active_books():
            if book.title.lower() == wanted:
                return book
        return None

    def find_entity_with_book(
        self,
        kind: EntityKind,
        entity_id: str,
        book_id: Optional[str] = None,
        fallback: bool = False,
    ) -> Optional[tuple[Book, Entity]]:
        """Locate an entity and the book that owns it.

        Args:
            kind: Entity kind to look in
            entity_id: Entity ID
            book_id: Restrict the lookup to this book
            fallback: When no book is given and the current book misses,
                scan every other book (read/search paths only)

        Returns:
            (book, entity) or None
        """
        if book_id is not None:
            book = self.get_book(book_id)
            entity = book.find(kind, entity_id) if book else None
            return (book, entity) if entity else None

        current = self.current_book
        if current is not None:
            entity = current.find(kind, entity_id)
            if entity is not None:
                return current, entity

        if not fallback:
            return None

        for book in self._books:
            if book is current:
                continue
            entity = book.find(kind, entity_id)
            if entity is not None:
                return book, entity
        return None

    def find_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        book_id: Optional[str] = None,
        fallback: bool = False,
    ) -> Optional[Entity]:
        found = self.find_entity_with_book(kind, entity_id, book_id=book_id, fallback=fallback)
        return found[1] if found else None

    def last_modified_item(self, book_id: str) -> Optional[tuple[EntityKind, str]]:
        """Return (kind, id) of the most recently updated entity in a book."""
        book = self.get_book(book_id)
        if book is None:
            return None
        latest = max(book.iter_entities(), key=lambda entity: entity.updated_at, default=None)
        if latest is None:
            return None
        return latest.entity_kind, latest.id

    # ------------------------------------------------------------------
    # Writes (gateway and ledgers only)
    # ------------------------------------------------------------------

    def _insert_book(self, book: Book) -> None:
        self._books.append(book)

    def _remove_book(self, book_id: str) -> Optional[Book]:
        for index, book in enumerate(self._books):
            if book.id == book_id:
                if self._current_book_id == book_id:
                    self._current_book_id = None
                return self._books.pop(index)
        return None

    def _set_current(self, book_id: Optional[str]) -> bool:
        if book_id is None:
            self._current_book_id = None
            return True
        book = self.get_book(book_id)
        if book is None or book.is_deleted:
            return False
        self._current_book_id = book_id
        return True

    def _append_entity(self, book: Book, entity: Entity) -> None:
        book.collection(entity.entity_kind).append(entity)

    def _replace_entity(self, book: Book, entity: Entity) -> bool:
        """Swap in a new state for an existing entity, keeping its position."""
        collection = book.collection(entity.entity_kind)
        for index, existing in enumerate(collection):
            if existing.id == entity.id:
                collection[index] = entity
                return True
        return False

    def _remove_entity(self, book: Book, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        collection = book.collection(kind)
        for index, existing in enumerate(collection):
            if existing.id == entity_id:
                return collection.pop(index)
        return None

    def _append_message(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    def _truncate_messages(self, length: int) -> int:
        """Keep the first ``length`` messages; return how many were discarded."""
        length = max(length, 0)
        discarded = max(len(self._messages) - length, 0)
        del self._messages[length:]
        return discarded

    def _clear_messages(self) -> None:
        self._messages.clear()

    def _set_chat_context(self, context: Optional[ChatContext]) -> None:
        self._chat_context = context

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def merge_remote_books(self, remote_books: Iterable[Book]) -> int:
        """Merge books loaded from the remote store.

        Books not held locally are taken whole. For books already held,
        only book metadata comes from the remote copy; the local entity
        collections stay as they are, so entities deleted locally are not
        brought back by rows the remote still holds. A current pointer to a
        book that is now deleted is cleared.

        Returns:
            Number of entities added
        """
        added = 0
        for remote in remote_books:
            local = self.get_book(remote.id)
            if local is None:
                self._books.append(remote)
                added += remote.entity_count
                continue

            for field_name in ("title", "description", "genre", "author", "summary",
                               "is_deleted", "deleted_at", "created_at", "updated_at"):
                setattr(local, field_name, getattr(remote, field_name))

        current = self.current_book
        if current is not None and current.is_deleted:
            logger.info("Current book %s was deleted remotely; clearing selection", current.id)
            self._current_book_id = None
        return added
