"""FastAPI service with lifespan, endpoints, and uvicorn runner."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query

from shopfront_lite.catalog.source import CatalogSource
from shopfront_lite.checkout.payment import CheckoutService, PaymentSessionClient
from shopfront_lite.exceptions import CheckoutError, CheckoutStateError
from shopfront_lite.logging.logger import AuditLogger
from shopfront_lite.search.embedder import get_embedder
from shopfront_lite.search.hybrid import HybridSearcher
from shopfront_lite.search.vector_cache import VectorCache
from shopfront_lite.storage.cart_repo import CartRepository, open_db
from shopfront_lite.storage.datastore import DatastoreClient
from shopfront_lite.storage.models import (
    AddToCartRequest,
    CartResponse,
    CategoryRequest,
    CheckoutRequest,
    DiscountRequest,
    HealthResponse,
    Product,
    QuantityRequest,
    RemoveRequest,
    SearchFilters,
    SortRequest,
)
from shopfront_lite.storage.sqlite_store import SQLiteStore
from shopfront_lite.store.engine import StoreEngine
from shopfront_lite.worker.sessions import SessionRegistry

if TYPE_CHECKING:
    from fastapi.datastructures import State

    from shopfront_lite.config import Config

logger = logging.getLogger(__name__)

_start_time: float = 0.0


def make_engine_factory(state: State):
    """Engines share the service's catalog, searcher, repository and audit log."""

    async def factory(session_id: str, user_id: str | None) -> StoreEngine:
        engine = StoreEngine(
            state.config,
            searcher=state.searcher,
            catalog=state.catalog,
            cart_repo=state.cart_repo,
            audit=state.audit,
            user_id=user_id,
            session_id=session_id,
        )
        await engine.start(warm_index=False)
        return engine

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of service components."""
    global _start_time  # noqa: PLW0603
    _start_time = time.monotonic()

    config = app.state.config
    config.ensure_dirs()

    store = SQLiteStore(config.db_path)
    audit = AuditLogger(config.log_dir, store)
    db = await open_db(config.db_path)

    embedder = get_embedder(config)
    cache = VectorCache(config, embedder)
    try:
        await asyncio.to_thread(cache.connect)
    except Exception:
        logger.warning("Vector cache not persisted, continuing in memory", exc_info=True)

    datastore = DatastoreClient(config) if config.remote_enabled else None
    catalog, origin = await CatalogSource(datastore, store).load()
    audit.log("catalog.loaded", {"origin": origin, "count": len(catalog)})

    app.state.store = store
    app.state.audit = audit
    app.state.db = db
    app.state.cart_repo = CartRepository(db)
    app.state.embedder = embedder
    app.state.vector_cache = cache
    app.state.datastore = datastore
    app.state.catalog = tuple(catalog)
    app.state.catalog_origin = origin
    app.state.searcher = HybridSearcher.default(config, embedder, cache, datastore, audit)
    app.state.payments = PaymentSessionClient(config)
    app.state.sessions = SessionRegistry(make_engine_factory(app.state))

    # Model load + vector warm-up run behind the first requests.
    warm_task = asyncio.create_task(cache.warm(catalog))

    yield

    warm_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await warm_task
    await app.state.sessions.close_all()
    await app.state.payments.close()
    if datastore is not None:
        await datastore.close()
    await db.close()
    store.close()


app = FastAPI(lifespan=lifespan)


async def get_engine(
    x_session_id: Annotated[str, Header()] = "default",
    x_user_id: Annotated[str | None, Header()] = None,
) -> StoreEngine:
    return await app.state.sessions.get(x_session_id, x_user_id or None)


EngineDep = Annotated[StoreEngine, Depends(get_engine)]


def _cart_response(engine: StoreEngine) -> CartResponse:
    summary = engine.pricing
    return CartResponse(
        lines=list(engine.state.cart),
        subtotal=summary.subtotal,
        bundle_discount=summary.bundle_discount,
        total=summary.total,
        discount=engine.state.discount,
    )


def _view_response(engine: StoreEngine) -> dict:
    state = engine.state
    return {
        "products": [p.model_dump(exclude={"embedding"}) for p in state.products],
        "category": state.current_category,
        "sort": str(state.sort_order),
        "count": len(state.products),
    }


# ---------------------------------------------------------------------------
# Health + search
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health() -> HealthResponse:
    """Liveness + basic stats."""
    return HealthResponse(
        status="ok",
        uptime_s=int(time.monotonic() - _start_time),
        catalog_size=len(app.state.catalog),
        embedder_ready=app.state.embedder.available,
        sessions=len(app.state.sessions),
    )


@app.get("/api/search")
async def search(
    engine: EngineDep,
    q: str = "",
    category: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    limit: int = Query(default=5, ge=1, le=20),
) -> dict:
    """Hybrid search; also narrows the session's catalog view to the results."""
    filters = None
    if category is not None or min_price is not None or max_price is not None:
        filters = SearchFilters(category=category, min_price=min_price, max_price=max_price)

    result = await engine.search(q, filters, limit)
    by_id: dict[str, Product] = {p.id: p for p in engine.state.all_products}
    results = [
        {**by_id[m.product_id].model_dump(exclude={"embedding"}), "score": m.score}
        for m in result.matches
        if m.product_id in by_id
    ]
    return {
        "query": q,
        "source": str(result.source),
        "count": len(results),
        "results": results,
    }


# ---------------------------------------------------------------------------
# Catalog view
# ---------------------------------------------------------------------------


@app.get("/api/catalog")
async def catalog(engine: EngineDep) -> dict:
    return _view_response(engine)


@app.post("/api/catalog/category")
async def filter_category(body: CategoryRequest, engine: EngineDep) -> dict:
    engine.filter_by_category(body.category)
    return _view_response(engine)


@app.post("/api/catalog/sort")
async def sort_catalog(body: SortRequest, engine: EngineDep) -> dict:
    engine.set_sort_order(body.order)
    return _view_response(engine)


# ---------------------------------------------------------------------------
# Cart + discount
# ---------------------------------------------------------------------------


@app.get("/api/cart")
async def get_cart(engine: EngineDep) -> CartResponse:
    return _cart_response(engine)


@app.post("/api/cart/add")
async def add_to_cart(body: AddToCartRequest, engine: EngineDep) -> CartResponse:
    if not await engine.add_to_cart_by_id(body.product_id, body.quantity):
        raise HTTPException(status_code=404, detail="Product not found")
    return _cart_response(engine)


@app.post("/api/cart/quantity")
async def update_quantity(body: QuantityRequest, engine: EngineDep) -> CartResponse:
    await engine.update_quantity(body.product_id, body.quantity)
    return _cart_response(engine)


@app.post("/api/cart/remove")
async def remove_from_cart(body: RemoveRequest, engine: EngineDep) -> CartResponse:
    await engine.remove_from_cart(body.product_id)
    return _cart_response(engine)


@app.post("/api/cart/clear")
async def clear_cart(engine: EngineDep) -> CartResponse:
    await engine.clear_cart()
    return _cart_response(engine)


@app.post("/api/discount")
async def apply_discount(body: DiscountRequest, engine: EngineDep) -> CartResponse:
    await engine.apply_discount(body.coupon_code, body.percent)
    return _cart_response(engine)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


def _checkout_service(engine: StoreEngine) -> CheckoutService:
    return CheckoutService(engine, app.state.payments, app.state.cart_repo, app.state.audit)


@app.post("/api/checkout")
async def create_checkout(body: CheckoutRequest, engine: EngineDep) -> dict:
    try:
        record, session = await _checkout_service(engine).create_checkout(
            body.success_url, body.cancel_url, body.email
        )
    except CheckoutError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return {"order": record.model_dump(mode="json"), "url": session.url, "session_id": session.session_id}


@app.post("/api/checkout/{checkout_id}/complete")
async def complete_checkout(checkout_id: str, engine: EngineDep) -> dict:
    try:
        record = await _checkout_service(engine).complete_checkout(checkout_id)
    except CheckoutStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except CheckoutError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"order": record.model_dump(mode="json")}


@app.get("/api/orders")
async def list_orders(engine: EngineDep) -> dict:
    if engine.user_id is None:
        return {"orders": []}
    orders = await _checkout_service(engine).list_orders(engine.user_id)
    return {"orders": [o.model_dump(mode="json") for o in orders]}


@app.delete("/api/session")
async def end_session(x_session_id: Annotated[str, Header()] = "default") -> dict:
    """Tear down the session's store. Signed-in carts are already persisted."""
    closed = await app.state.sessions.close(x_session_id)
    return {"session_id": x_session_id, "closed": closed}


def run_worker(config: Config) -> None:
    """Run the service as a uvicorn server on UDS."""
    app.state.config = config
    uvicorn.run(
        app,
        uds=str(config.socket_path),
        log_level="info",
        lifespan="on",
    )


if __name__ == "__main__":
    from shopfront_lite.config import Config as _Config

    run_worker(_Config.from_env())
