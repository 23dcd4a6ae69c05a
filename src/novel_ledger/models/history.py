"""Version, checkpoint and conversation models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..clock import utc_now
from .entities import EntityKind, EntitySnapshot


class EntityVersion(BaseModel):
    """Immutable snapshot of one entity at capture time."""

    model_config = ConfigDict(frozen=True)

    id: str
    entity_kind: EntityKind
    entity_id: str
    book_id: str
    snapshot: EntitySnapshot
    created_at: datetime = Field(default_factory=utc_now)
    message_id: str | None = None
    description: str | None = None


class ChatCheckpoint(BaseModel):
    """A labelled anchor into the conversation log (an index, not a copy)."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    created_at: datetime = Field(default_factory=utc_now)
    message_index: int  # index of the last message at capture time, -1 for an empty log


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class EntityAction(str, Enum):
    """What a message did to an entity, for audit display."""

    CREATE = "create"
    UPDATE = "update"
    RESTORE = "restore"


class MentionedEntity(BaseModel):
    """An entity referenced from message text."""

    kind: EntityKind
    id: str
    name: str
    book_id: str | None = None
    book_title: str | None = None


class ConversationMessage(BaseModel):
    """One turn of the conversation log."""

    id: str
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    entity_kind: EntityKind | None = None
    entity_id: str | None = None
    mentioned_entities: list[MentionedEntity] = Field(default_factory=list)
    entity_action: EntityAction | None = None
    entity_version_id: str | None = None

    def is_about(self, kind: EntityKind, entity_id: str) -> bool:
        return self.entity_kind == kind and self.entity_id == entity_id


class ChatContext(BaseModel):
    """The entity the conversation is currently linked to."""

    entity_kind: EntityKind
    entity_id: str


class EntityChat(BaseModel):
    """Messages linked to a single entity, as mirrored to the remote store."""

    entity_kind: EntityKind
    entity_id: str
    book_id: str
    chat_history: list[ConversationMessage] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)
