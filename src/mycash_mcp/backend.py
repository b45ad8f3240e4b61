"""Persistence backends for the finance store.

Every backend offers the same four async operations per entity kind:
``list`` (active rows), ``insert``, ``update`` and ``soft_delete``. Rows are
plain dicts in the column layout described in ``mapping.py``. Failures raise
``BackendError``; the store decides what to do with them.
"""

import logging
from typing import Any, Protocol

import httpx

from .database import Database
from .mapping import ENTITY_TABLES


logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1/"


class BackendError(Exception):
    """Error while reading or writing the persistence backend."""

    pass


class Backend(Protocol):
    """CRUD contract the finance store depends on."""

    async def list(self, kind: str) -> list[dict[str, Any]]: ...

    async def insert(self, kind: str, row: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, kind: str, row_id: str, row: dict[str, Any]) -> None: ...

    async def soft_delete(self, kind: str, row_id: str) -> None: ...


def _table(kind: str) -> str:
    try:
        return ENTITY_TABLES[kind]
    except KeyError:
        raise BackendError(f"Unknown entity kind: {kind}") from None


class SqliteBackend:
    """Backend over a local SQLite ``Database``."""

    def __init__(self, db: Database, user_id: str | None = None):
        """Initialize backend.

        Args:
            db: Database with schema already initialised.
            user_id: Owner id stamped on inserted rows.
        """
        self.db = db
        self.user_id = user_id

    async def list(self, kind: str) -> list[dict[str, Any]]:
        table = _table(kind)
        try:
            return self.db.fetch_active(table)
        except Exception as e:
            raise BackendError(f"Listing {kind} failed: {e}") from e

    async def insert(self, kind: str, row: dict[str, Any]) -> dict[str, Any]:
        values = dict(row)
        if self.user_id is not None:
            values.setdefault("user_id", self.user_id)
        try:
            return self.db.insert_row(_table(kind), values)
        except Exception as e:
            raise BackendError(f"Insert into {kind} failed: {e}") from e

    async def update(self, kind: str, row_id: str, row: dict[str, Any]) -> None:
        try:
            changed = self.db.update_row(_table(kind), row_id, row)
        except Exception as e:
            raise BackendError(f"Update of {kind}/{row_id} failed: {e}") from e
        if changed == 0:
            raise BackendError(f"No row {kind}/{row_id} to update")

    async def soft_delete(self, kind: str, row_id: str) -> None:
        await self.update(kind, row_id, {"is_active": False})


class RestBackend:
    """Backend over a PostgREST-style HTTP data API.

    ``GET /rest/v1/{table}?is_active=eq.true`` lists rows, ``POST`` inserts and
    returns the stored representation, ``PATCH ?id=eq.{id}`` updates.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize REST backend.

        Args:
            base_url: Base URL of the data API, without the /rest/v1 suffix.
            api_key: API key sent as ``apikey`` header and bearer token.
            user_id: Owner id stamped on inserted rows.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.user_id = user_id
        self.timeout = timeout

    def _url(self, kind: str) -> str:
        return f"{self.base_url}{REST_PATH}{_table(kind)}"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        kind: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.request(
                    method,
                    self._url(kind),
                    params=params,
                    json=json,
                    headers=headers or self._headers(),
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise BackendError(f"HTTP error on {method} {kind}: {e}") from e

        if response.status_code not in (200, 201, 204):
            raise BackendError(
                f"{method} {kind} returned status {response.status_code}: {response.text}"
            )
        return response

    async def list(self, kind: str) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", kind, params={"select": "*", "is_active": "eq.true"}
        )
        try:
            rows = response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON listing {kind}: {e}") from e
        logger.debug("Listed %d rows from %s", len(rows), kind)
        return rows

    async def insert(self, kind: str, row: dict[str, Any]) -> dict[str, Any]:
        values = dict(row)
        if self.user_id is not None:
            values.setdefault("user_id", self.user_id)
        response = await self._request(
            "POST",
            kind,
            json=values,
            headers=self._headers(Prefer="return=representation"),
        )
        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON inserting into {kind}: {e}") from e
        if isinstance(data, list):
            if not data:
                raise BackendError(f"Insert into {kind} returned no row")
            data = data[0]
        return data

    async def update(self, kind: str, row_id: str, row: dict[str, Any]) -> None:
        await self._request("PATCH", kind, params={"id": f"eq.{row_id}"}, json=row)

    async def soft_delete(self, kind: str, row_id: str) -> None:
        await self.update(kind, row_id, {"is_active": False})
