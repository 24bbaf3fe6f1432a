"""Local product-vector cache, held in memory and persisted to LanceDB."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import pyarrow as pa

from shopfront_lite.exceptions import EmbeddingUnavailableError

if TYPE_CHECKING:
    from shopfront_lite.config import Config
    from shopfront_lite.search.embedder import Embedder
    from shopfront_lite.storage.models import Product

logger = logging.getLogger(__name__)

TABLE_NAME = "product_vectors"


def _product_vector_schema(dim: int) -> pa.Schema:
    return pa.schema(
        [
            pa.field("product_id", pa.string()),
            pa.field("text_hash", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), dim)),
        ]
    )


def text_hash(product: Product) -> str:
    """Fingerprint of the text a product vector was computed from."""
    return hashlib.md5(product.searchable_text.encode("utf-8")).hexdigest()


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class VectorCache:
    """Product id -> embedding, built opportunistically as products are seen.

    Works purely in memory until ``connect()`` is called; after that every
    addition is also written to the LanceDB table so the cache survives restarts.
    """

    def __init__(self, config: Config, embedder: Embedder) -> None:
        self.config = config
        self.embedder = embedder
        self._vectors: dict[str, list[float]] = {}
        self._hashes: dict[str, str] = {}
        self._db: Any = None
        self._table: Any = None

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._vectors

    @property
    def vectors(self) -> Mapping[str, list[float]]:
        return self._vectors

    def connect(self) -> None:
        """Open (or create) the LanceDB table and load persisted vectors."""
        import lancedb

        self._db = lancedb.connect(str(self.config.lance_path))
        if TABLE_NAME not in set(self._db.table_names()):
            self._db.create_table(TABLE_NAME, schema=_product_vector_schema(self.config.embedding_dim))
        self._table = self._db.open_table(TABLE_NAME)

        for row in self._table.to_arrow().to_pylist():
            vector = row["vector"]
            if vector is None or len(vector) != self.config.embedding_dim:
                continue
            self._vectors[row["product_id"]] = list(vector)
            self._hashes[row["product_id"]] = row["text_hash"]
        logger.info("Loaded %d cached product vectors", len(self._vectors))

    def is_fresh(self, product: Product) -> bool:
        """Cached and computed from the product's current text."""
        return self._hashes.get(product.id) == text_hash(product)

    def put(self, product: Product, vector: list[float]) -> None:
        self.put_many([(product, vector)])

    def put_many(self, items: Iterable[tuple[Product, list[float]]]) -> None:
        rows = []
        for product, vector in items:
            self._vectors[product.id] = list(vector)
            self._hashes[product.id] = text_hash(product)
            rows.append(
                {"product_id": product.id, "text_hash": self._hashes[product.id], "vector": vector}
            )
        if rows and self._table is not None:
            self._persist(rows)

    def _persist(self, rows: list[dict]) -> None:
        ids = ", ".join(_quote(r["product_id"]) for r in rows)
        try:
            self._table.delete(f"product_id IN ({ids})")
            self._table.add(rows)
        except Exception:
            logger.warning("Failed to persist %d product vectors", len(rows), exc_info=True)

    async def warm(self, products: Iterable[Product]) -> int:
        """Embed every product that is missing or stale. Returns how many were added.

        Products carrying a precomputed embedding of the right size are cached
        without model work. A product whose text fails to embed is skipped.
        """
        pending: list[Product] = []
        ready: list[tuple[Product, list[float]]] = []
        for product in products:
            if self.is_fresh(product):
                continue
            if product.embedding is not None and len(product.embedding) == self.config.embedding_dim:
                ready.append((product, list(product.embedding)))
            else:
                pending.append(product)

        for product in pending:
            try:
                vector = await self.embedder.embed(product.searchable_text)
            except EmbeddingUnavailableError:
                if not self.embedder.available:
                    logger.warning("Embedding model unavailable, warm-up stopped", exc_info=True)
                    break
                logger.warning("Skipping vector for product %s", product.id, exc_info=True)
                continue
            ready.append((product, vector))

        if ready:
            await asyncio.to_thread(self.put_many, ready)
        return len(ready)
