"""Hybrid search orchestration with graceful degradation."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shopfront_lite.search.matchers import KeywordMatcher, LocalVectorMatcher, RemoteVectorMatcher
from shopfront_lite.search.query_parser import resolve_filters
from shopfront_lite.storage.models import Product, SearchFilters, SearchResult, SearchSource

if TYPE_CHECKING:
    from shopfront_lite.config import Config
    from shopfront_lite.logging.logger import AuditLogger
    from shopfront_lite.search.embedder import Embedder
    from shopfront_lite.search.matchers import Matcher
    from shopfront_lite.search.vector_cache import VectorCache
    from shopfront_lite.storage.datastore import DatastoreClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchStage:
    source: SearchSource
    matcher: Matcher


class HybridSearcher:
    """Tries each stage once, in order, until one returns a non-empty list.

    A stage that raises is logged and treated as empty, so ``search`` never
    raises. The result is empty only when every stage came back empty, which
    with a keyword stage at the end means the catalog itself is empty.
    """

    def __init__(
        self,
        stages: Sequence[SearchStage],
        *,
        audit: AuditLogger | None = None,
        default_limit: int = 5,
        max_limit: int = 20,
    ) -> None:
        self.stages = list(stages)
        self.audit = audit
        self.default_limit = default_limit
        self.max_limit = max_limit

    @classmethod
    def default(
        cls,
        config: Config,
        embedder: Embedder,
        cache: VectorCache,
        datastore: DatastoreClient | None = None,
        audit: AuditLogger | None = None,
    ) -> HybridSearcher:
        """Remote vector -> local vector -> keyword cascade."""
        return cls(
            [
                SearchStage(
                    SearchSource.REMOTE,
                    RemoteVectorMatcher(
                        embedder,
                        datastore,
                        config.remote_match_threshold,
                        function=config.match_function,
                    ),
                ),
                SearchStage(
                    SearchSource.LOCAL,
                    LocalVectorMatcher(embedder, cache, config.local_match_threshold),
                ),
                SearchStage(SearchSource.KEYWORD, KeywordMatcher()),
            ],
            audit=audit,
            default_limit=config.search_limit_default,
            max_limit=config.search_limit_max,
        )

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        return max(1, min(limit, self.max_limit))

    async def search(
        self,
        query: str,
        products: Sequence[Product],
        filters: SearchFilters | None = None,
        limit: int | None = None,
        *,
        extract_filters: bool = True,
    ) -> SearchResult:
        """Search with the best available strategy.

        Price and category phrases in the query are turned into filters unless
        ``extract_filters`` is False; explicit ``filters`` always win.
        """
        limit = self._clamp_limit(limit)
        if extract_filters:
            categories = sorted({p.category for p in products if p.category})
            filters = resolve_filters(query, filters, categories)
        else:
            filters = filters or SearchFilters()

        start = time.monotonic()
        result = SearchResult(
            query=query,
            source=self.stages[-1].source if self.stages else SearchSource.KEYWORD,
        )
        for stage in self.stages:
            try:
                matches = await stage.matcher.match(query, products, filters, limit)
            except Exception:
                logger.warning("Search stage %s failed for query=%r", stage.source, query, exc_info=True)
                continue
            if matches:
                result = SearchResult(query=query, source=stage.source, matches=matches)
                break
            logger.debug("Search stage %s returned nothing for query=%r", stage.source, query)

        if self.audit is not None:
            self.audit.log(
                "search.completed",
                {
                    "query": query,
                    "source": str(result.source),
                    "count": len(result.matches),
                    "filters": filters.model_dump(exclude_none=True),
                },
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        return result
