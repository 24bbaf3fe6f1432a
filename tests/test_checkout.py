"""Tests for checkout and the payment-session client."""

import json

import httpx
import pytest

from shopfront_lite.checkout.payment import CheckoutService, PaymentSessionClient, build_snapshot
from shopfront_lite.exceptions import CheckoutError, CheckoutStateError, PaymentSessionError
from shopfront_lite.storage.models import CheckoutStatus
from shopfront_lite.store.engine import StoreEngine


@pytest.fixture
def payment_requests():
    return []


@pytest.fixture
def payments(tmp_config, payment_requests):
    tmp_config.payment_session_url = "https://pay.example/session"

    def handler(request: httpx.Request) -> httpx.Response:
        payment_requests.append(json.loads(request.content))
        return httpx.Response(200, json={"sessionId": "cs_test_1", "url": "https://pay.example/cs_test_1"})

    return PaymentSessionClient(tmp_config, httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
async def engine(tmp_config, abc_products, cart_repo, audit):
    e = StoreEngine(
        tmp_config,
        catalog=abc_products,
        cart_repo=cart_repo,
        audit=audit,
        user_id="u1",
        session_id="s1",
    )
    await e.start()
    await e.add_to_cart(abc_products[2])
    await e.add_to_cart(abc_products[0])
    await e.apply_discount("SAVE20", 20)
    yield e
    await e.close()


class TestSnapshot:
    async def test_snapshot_contents(self, engine):
        snapshot = build_snapshot(engine, "https://shop/ok", "https://shop/cancel", "a@b.c", "o1")
        assert [(i.id, i.quantity) for i in snapshot.line_items] == [("C", 1), ("A", 1)]
        assert snapshot.total_amount == 20000
        assert snapshot.discount_percent == 20
        assert snapshot.coupon_code == "SAVE20"
        assert snapshot.customer_email == "a@b.c"


class TestCheckoutService:
    async def test_create_checkout(self, engine, payments, cart_repo, audit, store, payment_requests):
        service = CheckoutService(engine, payments, cart_repo, audit)
        record, session = await service.create_checkout("https://shop/ok", "https://shop/cancel", "a@b.c")

        assert session.session_id == "cs_test_1"
        assert record.status == CheckoutStatus.PENDING
        assert record.total_amount == 20000
        assert record.payment_session_id == "cs_test_1"
        assert payment_requests[0]["total_amount"] == 20000
        assert payment_requests[0]["order_id"] == record.id
        assert len(store.query_events(event_type="checkout.created")) == 1
        # Cart stays until the payment completes.
        assert len(engine.state.cart) == 2

    async def test_complete_checkout_clears_cart(self, engine, payments, cart_repo, audit, store):
        service = CheckoutService(engine, payments, cart_repo, audit)
        record, _ = await service.create_checkout("https://shop/ok", "https://shop/cancel")

        completed = await service.complete_checkout(record.id)

        assert completed.status == CheckoutStatus.PAID
        assert engine.state.cart == ()
        assert engine.state.discount.percent == 0
        assert len(store.query_events(event_type="checkout.completed")) == 1
        pairs, _ = await cart_repo.load_cart("u1")
        assert pairs == []

    async def test_payment_failure_leaves_cart(self, tmp_config, engine, cart_repo, audit, store):
        tmp_config.payment_session_url = "https://pay.example/session"
        failing = PaymentSessionClient(
            tmp_config,
            httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(502))),
        )
        service = CheckoutService(engine, failing, cart_repo, audit)

        with pytest.raises(PaymentSessionError):
            await service.create_checkout("https://shop/ok", "https://shop/cancel")

        assert len(engine.state.cart) == 2
        assert engine.state.discount.percent == 20
        assert await cart_repo.list_checkouts("u1") == []
        assert len(store.query_events(event_type="checkout.failed")) == 1

    async def test_empty_cart_rejected(self, engine, payments, payment_requests):
        await engine.clear_cart()
        with pytest.raises(CheckoutError):
            await CheckoutService(engine, payments).create_checkout("ok", "cancel")
        assert payment_requests == []

    async def test_unknown_checkout(self, engine, payments, cart_repo):
        with pytest.raises(CheckoutError):
            await CheckoutService(engine, payments, cart_repo).complete_checkout("nope")
        assert len(engine.state.cart) == 2

    async def test_other_identity_cannot_complete(
        self, tmp_config, engine, payments, cart_repo, abc_products
    ):
        record, _ = await CheckoutService(engine, payments, cart_repo).create_checkout("ok", "cancel")
        async with StoreEngine(
            tmp_config, catalog=abc_products, cart_repo=cart_repo, user_id="u2", session_id="s2"
        ) as other:
            await other.add_to_cart(abc_products[1])
            with pytest.raises(CheckoutError):
                await CheckoutService(other, payments, cart_repo).complete_checkout(record.id)
            assert len(other.state.cart) == 1

        assert (await cart_repo.get_checkout(record.id)).status == CheckoutStatus.PENDING

    async def test_completing_twice_rejected(self, engine, payments, cart_repo, abc_products):
        service = CheckoutService(engine, payments, cart_repo)
        record, _ = await service.create_checkout("ok", "cancel")
        await service.complete_checkout(record.id)
        await engine.add_to_cart(abc_products[1])

        with pytest.raises(CheckoutStateError):
            await service.complete_checkout(record.id)
        assert len(engine.state.cart) == 1

    async def test_complete_without_order_store_keeps_cart(self, engine, payments):
        with pytest.raises(CheckoutError):
            await CheckoutService(engine, payments).complete_checkout("anything")
        assert len(engine.state.cart) == 2

    async def test_list_orders(self, engine, payments, cart_repo, abc_products):
        service = CheckoutService(engine, payments, cart_repo)
        first, _ = await service.create_checkout("ok", "cancel")
        await service.complete_checkout(first.id)
        await engine.add_to_cart(abc_products[1])
        second, _ = await service.create_checkout("ok", "cancel")

        orders = await service.list_orders("u1")
        assert [o.id for o in orders] == [second.id, first.id]


class TestPaymentSessionClient:
    async def test_unconfigured_endpoint(self, tmp_config, engine):
        client = PaymentSessionClient(tmp_config, httpx.AsyncClient())
        with pytest.raises(PaymentSessionError):
            await client.create_session(build_snapshot(engine, "ok", "cancel"))
        await client.close()

    async def test_malformed_response(self, tmp_config, engine):
        tmp_config.payment_session_url = "https://pay.example/session"
        client = PaymentSessionClient(
            tmp_config,
            httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"url": "x"}))
            ),
        )
        with pytest.raises(PaymentSessionError):
            await client.create_session(build_snapshot(engine, "ok", "cancel"))
