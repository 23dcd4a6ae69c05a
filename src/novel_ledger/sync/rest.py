"""PostgREST-backed sync relay.

Speaks the REST dialect exposed by PostgREST (and Supabase's ``/rest/v1``):
upserts are POSTs with ``on_conflict`` and a merge-duplicates preference,
reads are GETs with ``column=op.value`` filters.
"""

import logging
from collections import defaultdict
from typing import Any, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import SyncError
from ..models import Book, Entity, EntityChat, EntityKind, EntityVersion
from .relay import (
    BOOKS_TABLE,
    ENTITY_CHATS_TABLE,
    ENTITY_TABLES,
    VERSIONS_TABLE,
    SyncRelay,
    book_to_row,
    entity_chat_to_row,
    entity_to_row,
    row_to_book,
    row_to_entity,
    row_to_version,
    version_to_row,
)

logger = logging.getLogger(__name__)


class RestSyncRelay(SyncRelay):
    """Sync relay over HTTP.

    Usage:
        relay = RestSyncRelay.from_settings()
        await relay.persist_book(book)
        books = await relay.load_books()

    Each call opens a short-lived ``httpx.AsyncClient`` so the relay can be
    shared across event loops (the CLI runs one loop per command).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the relay.

        Args:
            base_url: PostgREST root, e.g. ``https://xyz.supabase.co/rest/v1``
            api_key: Sent as ``apikey`` and as a bearer token when set
            timeout: Request timeout in seconds
            transport: Optional transport override (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RestSyncRelay":
        settings = settings or get_settings()
        return cls(
            base_url=settings.remote_url,
            api_key=settings.remote_api_key,
            timeout=settings.remote_timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = self._headers()
        if prefer:
            headers["Prefer"] = prefer

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, f"/{table}", params=params, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SyncError(f"{method} {table}", f"HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise SyncError(f"{method} {table}", str(e) or type(e).__name__) from e

        logger.debug("%s /%s -> %s", method, table, response.status_code)
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _upsert(self, table: str, row: dict[str, Any], on_conflict: str = "id") -> None:
        await self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            payload=row,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def persist_entity(self, kind: EntityKind, entity: Entity, book_id: str) -> None:
        await self._upsert(ENTITY_TABLES[kind], entity_to_row(entity, book_id))

    async def persist_version(self, version: EntityVersion, book_id: str) -> None:
        await self._upsert(VERSIONS_TABLE, version_to_row(version, book_id))

    async def persist_book(self, book: Book) -> None:
        await self._upsert(BOOKS_TABLE, book_to_row(book))

    async def save_entity_chat(self, chat: EntityChat) -> None:
        await self._upsert(ENTITY_CHATS_TABLE, entity_chat_to_row(chat), on_conflict="entity_type,entity_id")

    async def load_books(self) -> list[Book]:
        book_rows = await self._request("GET", BOOKS_TABLE, params={"select": "*", "order": "created_at.desc"})
        if not book_rows:
            return []

        book_ids = ",".join(str(row["id"]) for row in book_rows)
        by_book: dict[str, dict[EntityKind, list[Entity]]] = defaultdict(lambda: defaultdict(list))
        for kind, table in ENTITY_TABLES.items():
            rows = await self._request(
                "GET",
                table,
                params={"select": "*", "book_id": f"in.({book_ids})", "order": "created_at.asc"},
            )
            for row in rows:
                by_book[row["book_id"]][kind].append(row_to_entity(kind, row))

        return [row_to_book(row, by_book.get(row["id"])) for row in book_rows]

    async def load_versions(self, book_id: str) -> list[EntityVersion]:
        rows = await self._request(
            "GET",
            VERSIONS_TABLE,
            params={"select": "*", "book_id": f"eq.{book_id}", "order": "created_at.desc"},
        )
        return [row_to_version(row) for row in rows]
