"""Parsing and resolution of ``@[book/]kind/name`` mention tokens."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..errors import UnknownEntityKindError
from ..models import EntityKind, MentionedEntity
from .resolver import Candidate, MentionResolver

logger = logging.getLogger(__name__)

# @character/Kaelin or @The Long Road/character/Kaelin; the name runs to whitespace or the next @
MENTION_PATTERN = re.compile(
    r"@(?:(?P<book>[^/@\n]+)/)?(?P<kind>[A-Za-z]+)/(?P<name>[^@\s]+)"
)

# Trailing @partial or @kind/partial at the end of text being typed
TRAILING_MENTION_PATTERN = re.compile(r"@(?P<head>[^\s/@]+)(?:/(?P<tail>[^\s@]*))?$")

# Sentence punctuation that follows a mention but is not part of the name
_TRAILING_PUNCTUATION = ".,;:!?)\"'"


@dataclass
class ResolvedMention:
    """A mention token and the entity it resolved to."""

    token: str
    candidate: Candidate

    def to_mentioned_entity(self) -> MentionedEntity:
        return self.candidate.to_mention()


@dataclass
class MentionResult:
    """Text with resolved tokens replaced by entity names."""

    text: str
    mentions: list[ResolvedMention] = field(default_factory=list)

    @property
    def mentioned_entities(self) -> list[MentionedEntity]:
        return [mention.to_mentioned_entity() for mention in self.mentions]


@dataclass(frozen=True)
class MentionQuery:
    """A mention being typed: what to search for and where the token starts."""

    partial: str
    kind: Optional[EntityKind]
    start: int


def _parse_kind(value: str) -> Optional[EntityKind]:
    try:
        return EntityKind.parse(value)
    except UnknownEntityKindError:
        return None


def resolve_token(
    resolver: MentionResolver,
    kind_text: str,
    name: str,
    book_title: Optional[str] = None,
) -> Optional[Candidate]:
    """Resolve one token's parts to the best candidate.

    With a book segment the search spans every book, filtered to the book
    whose title matches case-insensitively; an unknown book falls back to
    an unscoped search across all kinds and books.
    """
    kind = _parse_kind(kind_text)
    if kind is None:
        return None

    if book_title is None:
        return resolver.best_match(name, [kind])

    book = resolver.store.find_book_by_title(book_title)
    if book is not None:
        return resolver.best_match(name, [kind], include_all_books=True, book_id=book.id)

    logger.debug("No book titled %r; searching every book", book_title)
    return resolver.best_match(name, None, include_all_books=True)


def _name_tail(text: str, position: int, typed: str, full_name: str) -> int:
    """Length of the rest of a multi-word name that follows a token in ``text``.

    ``@character/Kaelin Dusk`` stops the token at ``Kaelin``; when the entity
    is "Kaelin Dusk" and " Dusk" follows, those characters belong to the
    mention too.
    """
    if not full_name.lower().startswith(typed.lower()):
        return 0
    remainder = full_name[len(typed):]
    if not remainder.strip():
        return 0
    end = position + len(remainder)
    if text[position:end].lower() != remainder.lower():
        return 0
    if end < len(text) and text[end].isalnum():
        return 0
    return len(remainder)


def process_mentions(text: str, resolver: MentionResolver) -> MentionResult:
    """Replace every resolvable mention token with the entity's name.

    Tokens with an unknown kind or no matching entity are left verbatim so
    the author's text is never silently altered. When the words after a
    token complete the entity's multi-word name, they are replaced along
    with it.
    """
    mentions: list[ResolvedMention] = []
    parts: list[str] = []
    position = 0

    while True:
        match = MENTION_PATTERN.search(text, position)
        if match is None:
            break
        parts.append(text[position:match.start()])
        position = match.end()

        token = match.group(0)
        raw_name = match.group("name")
        name = raw_name.rstrip(_TRAILING_PUNCTUATION)
        candidate = None
        if name:
            candidate = resolve_token(resolver, match.group("kind"), name, match.group("book"))
        if candidate is None:
            parts.append(token)
            continue

        suffix = raw_name[len(name):]
        token = token[: len(token) - len(suffix)]
        if not suffix:
            tail = _name_tail(text, position, name, candidate.name)
            token += text[position:position + tail]
            position += tail

        mentions.append(ResolvedMention(token=token, candidate=candidate))
        parts.append(candidate.name + suffix)

    parts.append(text[position:])
    return MentionResult(text="".join(parts), mentions=mentions)


def detect_trailing_mention(text: str) -> Optional[MentionQuery]:
    """Detect a mention being typed at the end of ``text``.

    ``@kael`` searches every kind; ``@character/kael`` only characters. An
    unknown kind yields None.
    """
    match = TRAILING_MENTION_PATTERN.search(text)
    if match is None:
        return None

    head, tail = match.group("head"), match.group("tail")
    if tail is None:
        return MentionQuery(partial=head, kind=None, start=match.start())

    kind = _parse_kind(head)
    if kind is None:
        return None
    return MentionQuery(partial=tail, kind=kind, start=match.start())


def suggest_for_text(text: str, resolver: MentionResolver) -> list[Candidate]:
    """Type-ahead suggestions for the mention at the end of ``text``."""
    query = detect_trailing_mention(text)
    if query is None or not query.partial:
        return []
    kinds = [query.kind] if query.kind is not None else None
    return resolver.suggest(query.partial, kinds)


def insert_mention(text: str, candidate: Candidate) -> str:
    """Replace the mention at the last ``@`` with a complete token for ``candidate``.

    Text after the partial token (from the first whitespace on) is kept.
    """
    start = text.rfind("@")
    if start < 0:
        return text
    token = f"@{candidate.kind.value}/{candidate.name} "
    gap = re.search(r"\s", text[start:])
    rest = text[start + gap.end():] if gap else ""
    return f"{text[:start]}{token}{rest}"
