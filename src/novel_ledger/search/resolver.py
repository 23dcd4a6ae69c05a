"""Mention resolution - ranked fuzzy lookup of entities by partial name.

Matching is lexical: a candidate matches when its name contains the query,
or when every query character appears in the name in order (the classic
fuzzy-finder scan, no backtracking, no edit distance).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..config import get_settings
from ..models import Book, Entity, EntityKind, MentionedEntity
from ..store.aggregate import AggregateStore


@dataclass(frozen=True)
class Candidate:
    """An entity matching a partial name."""

    kind: EntityKind
    id: str
    name: str
    book_id: str
    book_title: str
    description: Optional[str] = None

    def to_mention(self) -> MentionedEntity:
        return MentionedEntity(
            kind=self.kind,
            id=self.id,
            name=self.name,
            book_id=self.book_id,
            book_title=self.book_title,
        )


def is_subsequence(needle: str, haystack: str) -> bool:
    """True if every character of ``needle`` occurs in ``haystack`` in order."""
    position = 0
    for char in needle:
        position = haystack.find(char, position)
        if position < 0:
            return False
        position += 1
    return True


def fuzzy_match(partial: str, name: str) -> bool:
    """Case-insensitive substring or ordered-subsequence match."""
    needle = partial.lower()
    haystack = name.lower()
    return needle in haystack or is_subsequence(needle, haystack)


def rank_key(partial: str, candidate: Candidate) -> tuple:
    """Sort key: exact match, then prefix match, then alphabetical.

    Trailing fields only make equal names order deterministically.
    """
    needle = partial.lower()
    name = candidate.name.lower()
    return (
        name != needle,
        not name.startswith(needle),
        name,
        candidate.name,
        candidate.kind.value,
        candidate.book_title.lower(),
        candidate.id,
    )


class MentionResolver:
    """Searches entity names in the current book or across every book.

    Usage:
        resolver = MentionResolver(store)
        resolver.search("kd", [EntityKind.CHARACTER])
        resolver.search("kael", ["character"], include_all_books=True)

    The result cap bounds response size; callers must not treat a capped
    list as complete.
    """

    def __init__(
        self,
        store: AggregateStore,
        search_limit: Optional[int] = None,
        suggestion_limit: Optional[int] = None,
        min_query_length: Optional[int] = None,
    ):
        settings = get_settings()
        self.store = store
        self.search_limit = search_limit if search_limit is not None else settings.search_limit
        self.suggestion_limit = suggestion_limit if suggestion_limit is not None else settings.suggestion_limit
        self.min_query_length = min_query_length if min_query_length is not None else settings.min_query_length

    def _books_in_scope(self, include_all_books: bool, book_id: Optional[str]) -> list[Book]:
        if book_id is not None:
            book = self.store.get_book(book_id)
            return [book] if book is not None and not book.is_deleted else []
        if include_all_books:
            return self.store.active_books()
        current = self.store.current_book
        return [current] if current is not None else []

    @staticmethod
    def _candidate(book: Book, entity: Entity) -> Candidate:
        return Candidate(
            kind=entity.entity_kind,
            id=entity.id,
            name=entity.display_name,
            book_id=book.id,
            book_title=book.title,
            description=entity.summary_text,
        )

    def search(
        self,
        partial: str,
        kinds: Optional[Iterable[EntityKind | str]] = None,
        include_all_books: bool = False,
        limit: Optional[int] = None,
        book_id: Optional[str] = None,
    ) -> list[Candidate]:
        """Find entities whose names fuzzily match ``partial``.

        Args:
            partial: Partial name typed by the user
            kinds: Kinds to search (all kinds when None)
            include_all_books: Search every active book instead of the current one
            limit: Result cap (defaults to the configured search limit)
            book_id: Restrict the search to one book

        Returns:
            Candidates ranked exact match first, then prefix matches, then
            alphabetically
        """
        partial = partial.strip()
        if len(partial) < self.min_query_length or not partial:
            return []

        wanted = list(EntityKind) if kinds is None else [EntityKind.parse(kind) for kind in kinds]
        matches = [
            self._candidate(book, entity)
            for book in self._books_in_scope(include_all_books, book_id)
            for kind in wanted
            for entity in book.collection(kind)
            if fuzzy_match(partial, entity.display_name)
        ]
        matches.sort(key=lambda candidate: rank_key(partial, candidate))

        cap = self.search_limit if limit is None else limit
        return matches[:cap]

    def suggest(
        self,
        partial: str,
        kinds: Optional[Iterable[EntityKind | str]] = None,
        include_all_books: bool = False,
    ) -> list[Candidate]:
        """Type-ahead variant of ``search`` with the smaller suggestion cap."""
        return self.search(partial, kinds, include_all_books=include_all_books, limit=self.suggestion_limit)

    def best_match(
        self,
        partial: str,
        kinds: Optional[Iterable[EntityKind | str]] = None,
        include_all_books: bool = False,
        book_id: Optional[str] = None,
    ) -> Optional[Candidate]:
        results = self.search(partial, kinds, include_all_books=include_all_books, limit=1, book_id=book_id)
        return results[0] if results else None
