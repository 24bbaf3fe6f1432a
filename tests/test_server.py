"""Tests for the FastAPI service."""

from __future__ import annotations

import httpx
import pytest

from shopfront_lite.checkout.payment import PaymentSessionClient
from shopfront_lite.search.hybrid import HybridSearcher
from shopfront_lite.search.vector_cache import VectorCache
from shopfront_lite.storage.models import HealthResponse
from shopfront_lite.worker import server as server_mod
from shopfront_lite.worker.server import app, make_engine_factory
from shopfront_lite.worker.sessions import SessionRegistry


@pytest.fixture
async def configured_app(tmp_config, catalog, cart_repo, audit, fake_embedder):
    """Set up app.state for testing without running full lifespan."""
    tmp_config.payment_session_url = "https://pay.example/session"

    def pay(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"sessionId": "cs_1", "url": "https://pay.example/cs_1"})

    cache = VectorCache(tmp_config, fake_embedder)
    app.state.config = tmp_config
    app.state.catalog = tuple(catalog)
    app.state.embedder = fake_embedder
    app.state.vector_cache = cache
    app.state.cart_repo = cart_repo
    app.state.audit = audit
    app.state.searcher = HybridSearcher.default(tmp_config, fake_embedder, cache, None, audit)
    app.state.payments = PaymentSessionClient(
        tmp_config, httpx.AsyncClient(transport=httpx.MockTransport(pay))
    )
    app.state.sessions = SessionRegistry(make_engine_factory(app.state))

    yield app

    await app.state.sessions.close_all()


@pytest.fixture
async def client(configured_app):
    """Async HTTP client for testing."""
    transport = httpx.ASGITransport(app=configured_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", headers={"X-Session-Id": "s1"}
    ) as c:
        yield c


async def test_health_endpoint(client, catalog):
    """GET /api/health returns status, catalog size and uptime."""
    server_mod._start_time = 0.0
    response = await client.get("/api/health")

    assert response.status_code == 200
    health = HealthResponse(**response.json())
    assert health.status == "ok"
    assert health.catalog_size == len(catalog)
    assert health.embedder_ready
    assert health.uptime_s >= 0


async def test_search_keyword_fallback(client):
    response = await client.get("/api/search", params={"q": "chelsea boots"})

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "keyword-fallback"
    assert [r["id"] for r in data["results"]] == ["10"]
    assert "embedding" not in data["results"][0]


async def test_search_explicit_filters(client):
    response = await client.get(
        "/api/search", params={"q": "luxury", "category": "Home", "max_price": 1000}
    )
    assert [r["id"] for r in response.json()["results"]] == ["11"]


async def test_search_narrows_session_view(client):
    await client.get("/api/search", params={"q": "selvedge denim"})
    data = (await client.get("/api/catalog")).json()
    assert [p["id"] for p in data["products"]] == ["9"]


async def test_search_limit_validated(client):
    response = await client.get("/api/search", params={"q": "coat", "limit": 50})
    assert response.status_code == 422


async def test_catalog_category_and_sort(client):
    data = (await client.post("/api/catalog/category", json={"category": "Home"})).json()
    assert [p["id"] for p in data["products"]] == ["4", "8", "11"]
    assert data["category"] == "Home"

    data = (await client.post("/api/catalog/sort", json={"order": "price-high"})).json()
    assert [p["id"] for p in data["products"]] == ["11", "8", "4"]


async def test_cart_flow(client):
    response = await client.post("/api/cart/add", json={"product_id": "1"})
    assert response.status_code == 200
    await client.post("/api/cart/add", json={"product_id": "2", "quantity": 2})
    cart = (await client.post("/api/cart/quantity", json={"product_id": "2", "quantity": 3})).json()

    assert cart["subtotal"] == 850 + 95 * 3
    assert cart["bundle_discount"] == 50
    assert cart["total"] == 850 + 95 * 3 - 50

    cart = (await client.post("/api/discount", json={"coupon_code": "TEN", "percent": 10})).json()
    assert cart["total"] == 977  # (1135 - 50) * 0.9 = 976.5, half-up

    cart = (await client.post("/api/cart/remove", json={"product_id": "1"})).json()
    assert [ln["product"]["id"] for ln in cart["lines"]] == ["2"]

    cart = (await client.post("/api/cart/clear")).json()
    assert cart["lines"] == []
    assert cart["total"] == 0


async def test_add_unknown_product(client):
    response = await client.post("/api/cart/add", json={"product_id": "999"})
    assert response.status_code == 404


async def test_sessions_are_isolated(client):
    await client.post("/api/cart/add", json={"product_id": "1"})
    other = (await client.get("/api/cart", headers={"X-Session-Id": "s2"})).json()
    assert other["lines"] == []


async def test_end_session_tears_down_engine(client, configured_app):
    await client.post("/api/cart/add", json={"product_id": "1"})
    engine = await configured_app.state.sessions.get("s1")
    assert "s1" in configured_app.state.sessions

    response = await client.delete("/api/session")

    assert response.json() == {"session_id": "s1", "closed": True}
    assert "s1" not in configured_app.state.sessions
    assert engine.closed
    assert (await client.delete("/api/session")).json()["closed"] is False
    # A new request starts a fresh guest store.
    assert (await client.get("/api/cart")).json()["lines"] == []


async def test_signed_in_cart_restored_in_new_session(client):
    await client.post("/api/cart/add", json={"product_id": "3"}, headers={"X-User-Id": "u1"})
    cart = (await client.get("/api/cart", headers={"X-Session-Id": "s9", "X-User-Id": "u1"})).json()
    assert [ln["product"]["id"] for ln in cart["lines"]] == ["3"]


async def test_checkout_flow(client):
    headers = {"X-User-Id": "u1"}
    await client.post("/api/cart/add", json={"product_id": "1"}, headers=headers)

    response = await client.post(
        "/api/checkout",
        json={"success_url": "https://shop/ok", "cancel_url": "https://shop/cancel"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["url"] == "https://pay.example/cs_1"
    assert data["order"]["total_amount"] == 85000

    order_id = data["order"]["id"]
    response = await client.post(f"/api/checkout/{order_id}/complete", headers=headers)
    assert response.json()["order"]["status"] == "paid"
    assert (await client.get("/api/cart", headers=headers)).json()["lines"] == []

    orders = (await client.get("/api/orders", headers=headers)).json()["orders"]
    assert [o["id"] for o in orders] == [order_id]

    response = await client.post(f"/api/checkout/{order_id}/complete", headers=headers)
    assert response.status_code == 409


async def test_checkout_complete_by_other_user_is_not_found(client):
    owner = {"X-User-Id": "alice"}
    await client.post("/api/cart/add", json={"product_id": "1"}, headers=owner)
    order_id = (
        await client.post(
            "/api/checkout", json={"success_url": "ok", "cancel_url": "cancel"}, headers=owner
        )
    ).json()["order"]["id"]

    intruder = {"X-Session-Id": "s-bob", "X-User-Id": "bob"}
    await client.post("/api/cart/add", json={"product_id": "2"}, headers=intruder)
    response = await client.post(f"/api/checkout/{order_id}/complete", headers=intruder)

    assert response.status_code == 404
    assert len((await client.get("/api/cart", headers=intruder)).json()["lines"]) == 1
    orders = (await client.get("/api/orders", headers=owner)).json()["orders"]
    assert orders[0]["status"] == "pending"


async def test_checkout_empty_cart_is_bad_gateway(client):
    response = await client.post(
        "/api/checkout", json={"success_url": "ok", "cancel_url": "cancel"}
    )
    assert response.status_code == 502


async def test_checkout_payment_failure_keeps_cart(client, configured_app, tmp_config):
    configured_app.state.payments = PaymentSessionClient(
        tmp_config,
        httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
    )
    await client.post("/api/cart/add", json={"product_id": "1"})
    response = await client.post("/api/checkout", json={"success_url": "ok", "cancel_url": "cancel"})

    assert response.status_code == 502
    assert len((await client.get("/api/cart")).json()["lines"]) == 1


async def test_complete_unknown_checkout(client):
    response = await client.post("/api/checkout/nope/complete")
    assert response.status_code == 404
