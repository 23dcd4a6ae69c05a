"""Data models for books, entities and their history."""

from novel_ledger.models.entities import (
    ENTITY_MODELS,
    Book,
    Character,
    Entity,
    EntityBase,
    EntityKind,
    EntitySnapshot,
    Event,
    Note,
    Page,
    Place,
    Scene,
)
from novel_ledger.models.history import (
    ChatCheckpoint,
    ChatContext,
    ConversationMessage,
    EntityAction,
    EntityChat,
    EntityVersion,
    MentionedEntity,
    MessageRole,
)

__all__ = [
    "ENTITY_MODELS",
    "Book",
    "Character",
    "Entity",
    "EntityBase",
    "EntityKind",
    "EntitySnapshot",
    "Event",
    "Note",
    "Page",
    "Place",
    "Scene",
    "ChatCheckpoint",
    "ChatContext",
    "ConversationMessage",
    "EntityAction",
    "EntityChat",
    "EntityVersion",
    "MentionedEntity",
    "MessageRole",
]
