"""Remote vector, local vector and keyword matchers behind one ``match`` interface."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from shopfront_lite.exceptions import EmbeddingUnavailableError, RemoteSearchError
from shopfront_lite.search.query_parser import tokenize
from shopfront_lite.search.similarity import rank_by_similarity
from shopfront_lite.storage.models import Product, ScoredMatch, SearchFilters

if TYPE_CHECKING:
    from shopfront_lite.search.embedder import Embedder
    from shopfront_lite.search.vector_cache import VectorCache
    from shopfront_lite.storage.datastore import DatastoreClient

logger = logging.getLogger(__name__)


class Matcher(Protocol):
    """One strategy in the search cascade. An empty list means "try the next one"."""

    async def match(
        self,
        query: str,
        products: Sequence[Product],
        filters: SearchFilters,
        limit: int,
    ) -> list[ScoredMatch]: ...


class RemoteVectorMatcher:
    """Embeds the query and asks the datastore's similarity function for ranked rows.

    Transport and endpoint errors come back as an empty list.
    """

    def __init__(
        self,
        embedder: Embedder,
        datastore: DatastoreClient | None,
        threshold: float,
        function: str = "match_products",
    ) -> None:
        self.embedder = embedder
        self.datastore = datastore
        self.threshold = threshold
        self.function = function

    async def match(
        self,
        query: str,
        products: Sequence[Product],
        filters: SearchFilters,
        limit: int,
    ) -> list[ScoredMatch]:
        if self.datastore is None or not query.strip():
            return []
        try:
            vector = await self.embedder.embed(query)
            rows = await self.datastore.rpc(
                self.function,
                {
                    "query_embedding": vector,
                    "match_threshold": self.threshold,
                    "match_count": limit,
                },
            )
        except (EmbeddingUnavailableError, RemoteSearchError):
            logger.warning("Remote vector search failed for query=%r", query, exc_info=True)
            return []
        if not isinstance(rows, list):
            logger.warning("Remote vector search returned %s, expected list", type(rows).__name__)
            return []

        by_id = {p.id: p for p in products}
        matches: list[ScoredMatch] = []
        for row in rows:
            if not isinstance(row, dict) or row.get("id") is None:
                continue
            product = by_id.get(str(row["id"]))
            if product is None or not filters.matches(product):
                continue
            try:
                score = float(row.get("similarity") or 0.0)
            except (TypeError, ValueError):
                logger.debug("Skipping remote row id=%r with similarity=%r", row["id"], row.get("similarity"))
                continue
            matches.append(ScoredMatch(product_id=product.id, score=score))
        if rows and not matches:
            logger.info("Remote vector search returned %d rows, none usable against the catalog", len(rows))
        return matches


class LocalVectorMatcher:
    """Scores the query against every vector in the local cache."""

    def __init__(self, embedder: Embedder, cache: VectorCache, threshold: float) -> None:
        self.embedder = embedder
        self.cache = cache
        self.threshold = threshold

    async def match(
        self,
        query: str,
        products: Sequence[Product],
        filters: SearchFilters,
        limit: int,
    ) -> list[ScoredMatch]:
        if len(self.cache) == 0 or not query.strip():
            return []
        try:
            vector = await self.embedder.embed(query)
        except EmbeddingUnavailableError:
            logger.warning("Local vector search could not embed query=%r", query, exc_info=True)
            return []

        ranked = rank_by_similarity(vector, self.cache.vectors, self.threshold, limit)
        by_id = {p.id: p for p in products}
        return [
            ScoredMatch(product_id=product_id, score=score)
            for product_id, score in ranked
            if product_id in by_id and filters.matches(by_id[product_id])
        ]


class KeywordMatcher:
    """Lexical fallback of last resort.

    A product matches when its searchable text contains any query token. If
    nothing survives tokenising and filtering, every candidate is returned.
    Results are unscored and keep catalog order.
    """

    async def match(
        self,
        query: str,
        products: Sequence[Product],
        filters: SearchFilters,
        limit: int,
    ) -> list[ScoredMatch]:
        tokens = tokenize(query)
        if tokens:
            candidates = [
                p for p in products if any(t in p.searchable_text.lower() for t in tokens)
            ]
        else:
            candidates = list(products)

        hits = [p for p in candidates if filters.matches(p)]
        if not hits:
            hits = list(products)
        return [ScoredMatch(product_id=p.id) for p in hits]
