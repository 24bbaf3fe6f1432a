"""Async client for the managed datastore's REST and RPC surface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from shopfront_lite.exceptions import CatalogUnavailableError, RemoteSearchError

if TYPE_CHECKING:
    from shopfront_lite.config import Config

logger = logging.getLogger(__name__)


class DatastoreClient:
    """Thin PostgREST-style client: table reads and stored-function calls."""

    def __init__(self, config: Config, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        key = config.datastore_key or ""
        self.client = client or httpx.AsyncClient(
            base_url=config.datastore_url or "",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=config.http_timeout_s,
        )

    async def select(self, table: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """Read rows from a table. Raises CatalogUnavailableError on any failure."""
        query = {"select": "*", **(params or {})}
        try:
            response = await self.client.get(f"/rest/v1/{table}", params=query)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Datastore select failed on {table}: {e}"
            raise CatalogUnavailableError(msg) from e
        if not isinstance(data, list):
            msg = f"Datastore select on {table} returned {type(data).__name__}, expected list"
            raise CatalogUnavailableError(msg)
        return data

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a stored function. Raises RemoteSearchError on any failure."""
        try:
            response = await self.client.post(f"/rest/v1/rpc/{function}", json=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Datastore RPC {function} failed: {e}"
            raise RemoteSearchError(msg) from e

    async def close(self) -> None:
        await self.client.aclose()
