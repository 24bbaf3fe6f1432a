"""Session-scoped store engine: owns the state, dispatches transitions, runs searches."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from shopfront_lite.catalog.defaults import DEFAULT_CATALOG
from shopfront_lite.search.debounce import RequestSequencer
from shopfront_lite.storage.models import CartLine, Product, SearchFilters
from shopfront_lite.store import pricing
from shopfront_lite.store.state import (
    Action,
    AddToCart,
    ApplyDiscount,
    ApplySearchResult,
    ClearCart,
    ClearLastAdded,
    FilterByCategory,
    OpenCart,
    RemoveFromCart,
    RestoreCart,
    SearchProducts,
    SetCatalog,
    SetSortOrder,
    StoreState,
    ToggleCart,
    ToggleSearch,
    UpdateQuantity,
    reduce,
)

if TYPE_CHECKING:
    from shopfront_lite.catalog.source import CatalogSource
    from shopfront_lite.config import Config
    from shopfront_lite.logging.logger import AuditLogger
    from shopfront_lite.search.hybrid import HybridSearcher
    from shopfront_lite.search.vector_cache import VectorCache
    from shopfront_lite.storage.cart_repo import CartRepository
    from shopfront_lite.storage.models import SearchResult

logger = logging.getLogger(__name__)

Listener = Callable[[StoreState, Action], None]


class StoreEngine:
    """One shopper's catalog view, cart and discount.

    Created at session start, ``start()``-ed once, and ``close()``-d at session
    end. Transitions are applied strictly in dispatch order; each one replaces
    the state value atomically before listeners are notified.

    Carts are persisted only for sessions with a ``user_id``; guest sessions
    work the same way but keep everything in memory.
    """

    def __init__(
        self,
        config: Config,
        *,
        searcher: HybridSearcher | None = None,
        catalog: Sequence[Product] = DEFAULT_CATALOG,
        catalog_source: CatalogSource | None = None,
        vector_cache: VectorCache | None = None,
        cart_repo: CartRepository | None = None,
        audit: AuditLogger | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self.config = config
        self.searcher = searcher
        self.catalog_source = catalog_source
        self.vector_cache = vector_cache
        self.cart_repo = cart_repo
        self.audit = audit
        self.user_id = user_id
        self.session_id = session_id
        self.catalog_origin = "seed"

        self.state = reduce(StoreState(), SetCatalog(tuple(catalog)))
        self._sequencer = RequestSequencer(config.search_debounce_s)
        self._listeners: list[Listener] = []
        self._warm_task: asyncio.Task | None = None
        self._closed = False

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    async def start(self, *, warm_index: bool = True) -> None:
        """Load the catalog, restore a saved cart and begin warming the vector cache."""
        if self.catalog_source is not None:
            products, origin = await self.catalog_source.load()
            self.catalog_origin = origin
            self.dispatch(SetCatalog(tuple(products)))
            self._audit("catalog.loaded", {"origin": origin, "count": len(products)})

        await self._restore_cart()

        if warm_index and self.vector_cache is not None:
            self._warm_task = asyncio.create_task(self.warm_search_index())

    async def close(self) -> None:
        if self._warm_task is not None:
            self._warm_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._warm_task
            self._warm_task = None
        self._listeners.clear()
        self._closed = True

    async def __aenter__(self) -> StoreEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state, action)`` after every transition. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> StoreState:
        if self._closed:
            msg = "StoreEngine is closed"
            raise RuntimeError(msg)
        self.state = reduce(self.state, action)
        for listener in list(self._listeners):
            listener(self.state, action)
        return self.state

    # -----------------------------------------------------------------------
    # Derived values
    # -----------------------------------------------------------------------
    @property
    def pricing(self) -> pricing.PricingSummary:
        return pricing.summarize(
            self.state.cart,
            self.state.discount,
            self.config.bundle_discount,
            self.config.bundle_min_lines,
        )

    @property
    def subtotal(self) -> float:
        return pricing.subtotal(self.state.cart)

    @property
    def bundle_discount(self) -> float:
        return pricing.bundle_discount(
            self.state.cart, self.config.bundle_discount, self.config.bundle_min_lines
        )

    @property
    def total(self) -> int:
        return self.pricing.total

    # -----------------------------------------------------------------------
    # Catalog view
    # -----------------------------------------------------------------------
    def set_catalog(self, products: Sequence[Product]) -> StoreState:
        return self.dispatch(SetCatalog(tuple(products)))

    def filter_by_category(self, category: str) -> StoreState:
        return self.dispatch(FilterByCategory(category))

    def search_products(self, query: str) -> StoreState:
        return self.dispatch(SearchProducts(query))

    def set_sort_order(self, order: str) -> StoreState:
        return self.dispatch(SetSortOrder(order))

    def clear_last_added(self) -> StoreState:
        return self.dispatch(ClearLastAdded())

    def toggle_cart(self) -> StoreState:
        return self.dispatch(ToggleCart())

    def open_cart(self) -> StoreState:
        return self.dispatch(OpenCart())

    def toggle_search(self) -> StoreState:
        return self.dispatch(ToggleSearch())

    # -----------------------------------------------------------------------
    # Cart + discount
    # -----------------------------------------------------------------------
    async def add_to_cart(self, product: Product, quantity: int = 1) -> StoreState:
        state = self.dispatch(AddToCart(product, quantity))
        self._audit("cart.add", {"product_id": product.id, "quantity": quantity})
        await self._persist_cart(state)
        return state

    async def add_to_cart_by_id(self, product_id: str, quantity: int = 1) -> bool:
        """Add a catalog product by id. Unknown ids change nothing and return False."""
        product = self.state.find_product(product_id)
        if product is None:
            return False
        await self.add_to_cart(product, quantity)
        return True

    async def update_quantity(self, product_id: str, quantity: int) -> StoreState:
        state = self.dispatch(UpdateQuantity(product_id, quantity))
        self._audit("cart.update", {"product_id": product_id, "quantity": quantity})
        await self._persist_cart(state)
        return state

    async def remove_from_cart(self, product_id: str) -> StoreState:
        state = self.dispatch(RemoveFromCart(product_id))
        self._audit("cart.remove", {"product_id": product_id})
        await self._persist_cart(state)
        return state

    async def apply_discount(self, coupon_code: str | None, percent: float) -> StoreState:
        state = self.dispatch(ApplyDiscount(coupon_code, percent))
        self._audit(
            "discount.applied",
            {"coupon_code": coupon_code, "percent": state.discount.percent, "total": self.total},
        )
        await self._persist_cart(state)
        return state

    async def clear_cart(self) -> StoreState:
        state = self.dispatch(ClearCart())
        self._audit("cart.clear", {})
        await self._persist_cart(state)
        return state

    # -----------------------------------------------------------------------
    # Search
    # -----------------------------------------------------------------------
    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        *,
        debounce: bool = False,
    ) -> SearchResult | None:
        """Run the hybrid search and narrow the view to its results.

        With ``debounce`` the search waits out the quiet period and is skipped
        (returning None) if another search was requested meanwhile. A result
        that arrives after a newer request is returned but not applied.
        """
        if self.searcher is None:
            self.dispatch(ApplySearchResult(query=query))
            return None

        seq = self._sequencer.next()
        if debounce and not await self._sequencer.wait_quiet(seq):
            return None

        result = await self.searcher.search(query, self.state.all_products, filters, limit)
        if self._sequencer.is_current(seq) and not self._closed:
            self.dispatch(ApplySearchResult(product_ids=tuple(result.product_ids), query=query))
        else:
            logger.debug("Discarding superseded search #%d for query=%r", seq, query)
        return result

    async def warm_search_index(self) -> int:
        """Embed catalog products missing from the local vector cache."""
        if self.vector_cache is None:
            return 0
        added = await self.vector_cache.warm(self.state.all_products)
        if added:
            logger.info("Cached %d product vectors", added)
        return added

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    def _audit(self, event_type: str, data: dict) -> None:
        if self.audit is None:
            return
        data = {**data, "user_id": self.user_id}
        self.audit.log(event_type, data, session_id=self.session_id)

    async def _restore_cart(self) -> None:
        if self.user_id is None or self.cart_repo is None:
            return
        try:
            saved = await self.cart_repo.load_cart(self.user_id)
        except (sqlite3.Error, ValueError, KeyError, TypeError):
            logger.warning("Failed to restore cart for user %s", self.user_id, exc_info=True)
            return
        if saved is None:
            return

        pairs, discount = saved
        lines = []
        for product_id, quantity in pairs:
            product = self.state.find_product(product_id)
            if product is None or quantity < 1:
                logger.debug("Dropping saved cart line %s x%d", product_id, quantity)
                continue
            lines.append(CartLine(product=product, quantity=quantity))
        self.dispatch(RestoreCart(tuple(lines), discount))

    async def _persist_cart(self, state: StoreState) -> None:
        if self.user_id is None or self.cart_repo is None:
            return
        try:
            await self.cart_repo.save_cart(self.user_id, list(state.cart), state.discount)
        except (sqlite3.Error, ValueError):
            logger.warning("Failed to persist cart for user %s", self.user_id, exc_info=True)
