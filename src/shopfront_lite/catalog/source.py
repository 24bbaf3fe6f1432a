"""Catalog loading: datastore bulk read, local snapshot, then the seed catalog."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import ValidationError

from shopfront_lite.catalog.defaults import DEFAULT_CATALOG
from shopfront_lite.exceptions import CatalogUnavailableError
from shopfront_lite.storage.models import Product

if TYPE_CHECKING:
    from shopfront_lite.storage.datastore import DatastoreClient
    from shopfront_lite.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


def parse_products(rows: Sequence[dict]) -> list[Product]:
    """Validate datastore rows, skipping malformed ones and duplicate ids."""
    products: list[Product] = []
    seen: set[str] = set()
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            product = Product.model_validate(row)
        except ValidationError:
            logger.warning("Skipping malformed catalog row id=%r", row.get("id"), exc_info=True)
            continue
        if product.id in seen:
            continue
        seen.add(product.id)
        products.append(product)
    return products


class CatalogSource:
    """Loads the working product set for a session.

    Order of preference: a fresh datastore read (snapshotted locally on
    success), the last local snapshot, the seed catalog. Failures only move
    down the list, they never raise.
    """

    def __init__(
        self,
        datastore: DatastoreClient | None = None,
        store: SQLiteStore | None = None,
        seed: Sequence[Product] = DEFAULT_CATALOG,
        table: str = "products",
    ) -> None:
        self.datastore = datastore
        self.store = store
        self.seed = tuple(seed)
        self.table = table

    async def load(self) -> tuple[list[Product], str]:
        """Return (products, origin) where origin is "datastore", "snapshot" or "seed"."""
        if self.datastore is not None:
            try:
                rows = await self.datastore.select(self.table)
            except CatalogUnavailableError:
                logger.warning("Catalog read failed, falling back", exc_info=True)
            else:
                products = parse_products(rows)
                if products:
                    if self.store is not None:
                        try:
                            await asyncio.to_thread(self.store.replace_catalog, products)
                        except sqlite3.Error:
                            logger.warning("Failed to snapshot catalog", exc_info=True)
                    return products, "datastore"

        if self.store is not None:
            try:
                cached = await asyncio.to_thread(self.store.load_catalog)
            except (sqlite3.Error, ValueError, TypeError):
                logger.warning("Catalog snapshot unreadable, using seed catalog", exc_info=True)
            else:
                if cached:
                    return cached, "snapshot"

        return list(self.seed), "seed"
