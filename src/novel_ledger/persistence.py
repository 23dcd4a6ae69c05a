"""Local session persistence.

The whole session (books, current pointer, conversation, versions and
checkpoints) lives in one JSON file. Loading never aborts startup: an
unreadable file yields an empty session, and records that fail validation
are skipped one by one with a warning.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import PersistenceError
from .models import Book, ChatCheckpoint, ChatContext, ConversationMessage, EntityVersion

logger = logging.getLogger(__name__)

SESSION_FORMAT_VERSION = 1


class SessionState(BaseModel):
    """Everything needed to rebuild a workspace."""

    format_version: int = SESSION_FORMAT_VERSION
    books: list[Book] = Field(default_factory=list)
    current_book_id: Optional[str] = None
    messages: list[ConversationMessage] = Field(default_factory=list)
    chat_context: Optional[ChatContext] = None
    versions: list[EntityVersion] = Field(default_factory=list)
    checkpoints: list[ChatCheckpoint] = Field(default_factory=list)


_ITEM_ADAPTERS: dict[str, TypeAdapter] = {
    "books": TypeAdapter(Book),
    "messages": TypeAdapter(ConversationMessage),
    "versions": TypeAdapter(EntityVersion),
    "checkpoints": TypeAdapter(ChatCheckpoint),
}


def _load_items(name: str, raw: Any) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Session field %r is not a list; using an empty collection", name)
        return []

    adapter = _ITEM_ADAPTERS[name]
    items = []
    for index, item in enumerate(raw):
        try:
            items.append(adapter.validate_python(item))
        except ValidationError as e:
            logger.warning("Skipping corrupt %s entry %d: %s", name, index, e.error_count())
    return items


def parse_session(data: Any) -> SessionState:
    """Build a session from decoded JSON, substituting defaults for corrupt parts."""
    if not isinstance(data, dict):
        logger.warning("Session data is not an object; starting empty")
        return SessionState()

    fields = {name: _load_items(name, data.get(name)) for name in _ITEM_ADAPTERS}

    current_book_id = data.get("current_book_id")
    if not isinstance(current_book_id, str):
        current_book_id = None

    chat_context = None
    if data.get("chat_context") is not None:
        try:
            chat_context = ChatContext.model_validate(data["chat_context"])
        except ValidationError:
            logger.warning("Ignoring corrupt chat context")

    return SessionState(current_book_id=current_book_id, chat_context=chat_context, **fields)


def load_session(path: Path) -> SessionState:
    """Load a session file; a missing or unreadable file yields an empty session."""
    path = Path(path)
    if not path.exists():
        return SessionState()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read session file %s: %s", path, e)
        return SessionState()

    return parse_session(data)


def save_session(state: SessionState, path: Path) -> None:
    """Write a session file atomically.

    Raises:
        PersistenceError: If the file cannot be written
    """
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(state.model_dump_json(indent=2))
        os.replace(tmp_path, path)
    except OSError as e:
        raise PersistenceError(f"Could not save session to {path}: {e}") from e
    logger.debug("Saved session to %s", path)
