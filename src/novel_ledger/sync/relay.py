"""Sync relay boundary: the interface to the remote durable store.

The core never talks to the network directly. It hands finished local state
to a ``SyncRelay`` through the ``SyncSupervisor`` and, on startup, asks the
relay for remote state to merge in.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import TypeAdapter

from ..models import (
    ENTITY_MODELS,
    Book,
    Entity,
    EntityChat,
    EntityKind,
    EntitySnapshot,
    EntityVersion,
)

# Remote tables, one per concept
BOOKS_TABLE = "books"
VERSIONS_TABLE = "entity_versions"
ENTITY_CHATS_TABLE = "entity_chats"

ENTITY_TABLES: dict[EntityKind, str] = {kind: kind.collection for kind in EntityKind}

# Local field name -> remote column name, where they differ
_COLUMN_RENAMES = {"character_ids": "characters"}
_FIELD_RENAMES = {column: name for name, column in _COLUMN_RENAMES.items()}

_BOOK_COLUMNS = {
    "id", "title", "description", "genre", "author", "summary",
    "is_deleted", "deleted_at", "created_at", "updated_at",
}

_BOOK_DEFAULTED = {"description", "genre", "is_deleted", "created_at", "updated_at"}

_snapshot_adapter = TypeAdapter(EntitySnapshot)


class SyncRelay(ABC):
    """Asynchronous mirror of local mutations to a remote store."""

    @abstractmethod
    async def persist_entity(self, kind: EntityKind, entity: Entity, book_id: str) -> None:
        """Upsert one entity row."""

    @abstractmethod
    async def persist_version(self, version: EntityVersion, book_id: str) -> None:
        """Upsert one version row."""

    @abstractmethod
    async def persist_book(self, book: Book) -> None:
        """Upsert a book's own columns (not its entities)."""

    @abstractmethod
    async def save_entity_chat(self, chat: EntityChat) -> None:
        """Upsert the chat history linked to one entity."""

    @abstractmethod
    async def load_books(self) -> list[Book]:
        """Load every book, with whatever entities the remote has."""

    @abstractmethod
    async def load_versions(self, book_id: str) -> list[EntityVersion]:
        """Load the version history recorded for a book."""


class NullSyncRelay(SyncRelay):
    """Relay for local-only sessions: writes vanish, loads are empty."""

    async def persist_entity(self, kind: EntityKind, entity: Entity, book_id: str) -> None:
        return None

    async def persist_version(self, version: EntityVersion, book_id: str) -> None:
        return None

    async def persist_book(self, book: Book) -> None:
        return None

    async def save_entity_chat(self, chat: EntityChat) -> None:
        return None

    async def load_books(self) -> list[Book]:
        return []

    async def load_versions(self, book_id: str) -> list[EntityVersion]:
        return []


# ============================================================================
# Row mapping
# ============================================================================


def entity_to_row(entity: Entity, book_id: str) -> dict[str, Any]:
    """Convert an entity to a remote row."""
    row = entity.model_dump(mode="json", exclude={"kind"})
    for name, column in _COLUMN_RENAMES.items():
        if name in row:
            row[column] = row.pop(name)
    row["book_id"] = book_id
    return row


def row_to_entity(kind: EntityKind, row: dict[str, Any]) -> Entity:
    """Convert a remote row back into an entity of ``kind``."""
    data = {
        _FIELD_RENAMES.get(key, key): value
        for key, value in row.items()
        if key != "book_id" and value is not None
    }
    data["kind"] = kind.value
    return ENTITY_MODELS[kind].model_validate(data)


def book_to_row(book: Book) -> dict[str, Any]:
    return book.model_dump(mode="json", include=_BOOK_COLUMNS)


def row_to_book(row: dict[str, Any], entities: dict[EntityKind, list[Entity]] | None = None) -> Book:
    # Remote rows may carry nulls where the local model has defaults
    data = {
        key: value
        for key, value in row.items()
        if key in _BOOK_COLUMNS and not (value is None and key in _BOOK_DEFAULTED)
    }
    for kind, items in (entities or {}).items():
        data[kind.collection] = items
    return Book.model_validate(data)


def version_to_row(version: EntityVersion, book_id: str) -> dict[str, Any]:
    return {
        "id": version.id,
        "entity_id": version.entity_id,
        "entity_type": version.entity_kind.value,
        "version_data": version.snapshot.model_dump(mode="json"),
        "book_id": book_id,
        "message_id": version.message_id,
        "description": version.description,
        "created_at": version.created_at.isoformat(),
    }


def row_to_version(row: dict[str, Any]) -> EntityVersion:
    kind = EntityKind.parse(row["entity_type"])
    version_data = dict(row.get("version_data") or {})
    # Older rows stored the snapshot without its kind tag
    version_data.setdefault("kind", kind.value)
    version_data.setdefault("id", row["entity_id"])
    return EntityVersion(
        id=row["id"],
        entity_kind=kind,
        entity_id=row["entity_id"],
        book_id=row["book_id"],
        snapshot=_snapshot_adapter.validate_python(version_data),
        created_at=row["created_at"],
        message_id=row.get("message_id"),
        description=row.get("description"),
    )


def entity_chat_to_row(chat: EntityChat) -> dict[str, Any]:
    return {
        "entity_type": chat.entity_kind.value,
        "entity_id": chat.entity_id,
        "book_id": chat.book_id,
        "chat_history": [message.model_dump(mode="json") for message in chat.chat_history],
        "updated_at": chat.updated_at.isoformat(),
    }
