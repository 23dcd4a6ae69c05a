"""Entity models for books and the things they own."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from ..clock import utc_now
from ..errors import UnknownEntityKindError


class EntityKind(str, Enum):
    """Kinds of entity a book can own."""

    CHARACTER = "character"
    SCENE = "scene"
    EVENT = "event"
    PLACE = "place"
    PAGE = "page"
    NOTE = "note"

    @classmethod
    def parse(cls, value: "str | EntityKind") -> "EntityKind":
        """Coerce a kind string, raising UnknownEntityKindError for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownEntityKindError(str(value)) from None

    @property
    def collection(self) -> str:
        """Name of the Book attribute holding this kind."""
        return f"{self.value}s"


SUMMARY_EXCERPT_LENGTH = 100


class EntityBase(BaseModel):
    """Base class for all book-owned entities."""

    id: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def entity_kind(self) -> EntityKind:
        return EntityKind(getattr(self, "kind"))

    @property
    def display_name(self) -> str:
        """Human-readable primary name (``name`` or ``title`` depending on kind)."""
        return getattr(self, "name", None) or getattr(self, "title", None) or ""

    @property
    def summary_text(self) -> str | None:
        """Short description used by search results and context."""
        description = getattr(self, "description", None)
        if description:
            return description
        content = getattr(self, "content", None)
        if content:
            excerpt = content[:SUMMARY_EXCERPT_LENGTH]
            return excerpt + ("..." if len(content) > SUMMARY_EXCERPT_LENGTH else "")
        return None


class Character(EntityBase):
    """A person or sentient being in the story."""

    kind: Literal["character"] = "character"
    name: str
    description: str | None = None
    traits: list[str] = Field(default_factory=list)
    role: str | None = None
    age: int | None = None
    backstory: str | None = None
    image_url: str | None = None
    secrets: list[str] = Field(default_factory=list)
    relationships: list[dict[str, Any]] = Field(default_factory=list)


class Scene(EntityBase):
    """A scene; references characters by ID only."""

    kind: Literal["scene"] = "scene"
    title: str
    content: str | None = None
    description: str | None = None
    location: str | None = None
    character_ids: list[str] = Field(default_factory=list)
    notes: str | None = None
    tone: str | None = None
    event_ids: list[str] = Field(default_factory=list)


class Event(EntityBase):
    """A significant occurrence in the story's timeline."""

    kind: Literal["event"] = "event"
    name: str
    description: str | None = None
    date: str | None = None  # free text, e.g. "Year 3 of the siege"
    character_ids: list[str] = Field(default_factory=list)
    consequences: list[str] = Field(default_factory=list)
    impact: str | None = None
    notes: str | None = None


class Place(EntityBase):
    """A location in the world."""

    kind: Literal["place"] = "place"
    name: str
    description: str | None = None
    geography: str | None = None
    cultural_notes: str | None = None


class Page(EntityBase):
    """A page of manuscript; collection order is display order."""

    kind: Literal["page"] = "page"
    title: str
    content: str = ""
    order: int | None = None


class Note(EntityBase):
    """A free-form note."""

    kind: Literal["note"] = "note"
    title: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)


Entity = Union[Character, Scene, Event, Place, Page, Note]

# Tagged union of every entity variant, keyed on ``kind``.
EntitySnapshot = Annotated[Entity, Field(discriminator="kind")]

ENTITY_MODELS: dict[EntityKind, type[EntityBase]] = {
    EntityKind.CHARACTER: Character,
    EntityKind.SCENE: Scene,
    EntityKind.EVENT: Event,
    EntityKind.PLACE: Place,
    EntityKind.PAGE: Page,
    EntityKind.NOTE: Note,
}


class Book(BaseModel):
    """Aggregate root owning every entity collection.

    Collections are always present; records that predate a collection
    (e.g. ``places``) validate to an empty list.
    """

    id: str
    title: str
    description: str = ""
    genre: str = "Fiction"
    author: str | None = None
    summary: str | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    characters: list[Character] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    places: list[Place] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)

    def collection(self, kind: EntityKind) -> list[Entity]:
        """Return the live list holding entities of ``kind``."""
        return getattr(self, kind.collection)

    def find(self, kind: EntityKind, entity_id: str) -> Entity | None:
        """Find an entity of ``kind`` by ID."""
        for entity in self.collection(kind):
            if entity.id == entity_id:
                return entity
        return None

    def iter_entities(self):
        """Yield every entity in the book, kind by kind."""
        for kind in EntityKind:
            yield from self.collection(kind)

    @property
    def entity_count(self) -> int:
        return sum(len(self.collection(kind)) for kind in EntityKind)
