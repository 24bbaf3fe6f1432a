"""Checkout: cart snapshot, hosted payment session, order records."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from shopfront_lite.exceptions import CheckoutError, CheckoutStateError, PaymentSessionError
from shopfront_lite.storage.models import (
    CheckoutLineItem,
    CheckoutRecord,
    CheckoutSnapshot,
    CheckoutStatus,
    PaymentSession,
)

if TYPE_CHECKING:
    from shopfront_lite.config import Config
    from shopfront_lite.logging.logger import AuditLogger
    from shopfront_lite.storage.cart_repo import CartRepository
    from shopfront_lite.store.engine import StoreEngine

logger = logging.getLogger(__name__)


class PaymentSessionClient:
    """POSTs a checkout snapshot to the payment-session endpoint."""

    def __init__(self, config: Config, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=config.http_timeout_s)

    async def create_session(self, snapshot: CheckoutSnapshot) -> PaymentSession:
        url = self.config.payment_session_url
        if not url:
            msg = "No payment-session endpoint configured"
            raise PaymentSessionError(msg)
        try:
            response = await self.client.post(url, json=snapshot.model_dump(mode="json"))
            response.raise_for_status()
            return PaymentSession.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            msg = f"Payment session request failed: {e}"
            raise PaymentSessionError(msg) from e

    async def close(self) -> None:
        await self.client.aclose()


def build_snapshot(
    engine: StoreEngine,
    success_url: str,
    cancel_url: str,
    email: str | None = None,
    order_id: str | None = None,
) -> CheckoutSnapshot:
    """Freeze the engine's cart and total into a payment request (amount in minor units)."""
    state = engine.state
    items = [
        CheckoutLineItem(
            id=ln.product.id,
            name=ln.product.name,
            price=ln.product.price,
            quantity=ln.quantity,
            image=ln.product.image_url,
        )
        for ln in state.cart
    ]
    return CheckoutSnapshot(
        line_items=items,
        total_amount=engine.total * 100,
        discount_percent=state.discount.percent,
        coupon_code=state.discount.coupon_code,
        customer_email=email,
        order_id=order_id,
        success_url=success_url,
        cancel_url=cancel_url,
    )


class CheckoutService:
    """Hands a session's cart to the payment provider and tracks the resulting order.

    A failed checkout leaves the cart and discount untouched; only a completed
    checkout clears them.
    """

    def __init__(
        self,
        engine: StoreEngine,
        payments: PaymentSessionClient,
        repo: CartRepository | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self.engine = engine
        self.payments = payments
        self.repo = repo
        self.audit = audit

    async def create_checkout(
        self, success_url: str, cancel_url: str, email: str | None = None
    ) -> tuple[CheckoutRecord, PaymentSession]:
        if not self.engine.state.cart:
            msg = "Cart is empty"
            raise CheckoutError(msg)

        order_id = str(uuid.uuid4())
        snapshot = build_snapshot(self.engine, success_url, cancel_url, email, order_id)

        try:
            session = await self.payments.create_session(snapshot)
        except PaymentSessionError as e:
            self._audit("checkout.failed", {"order_id": order_id, "error": str(e)})
            raise

        record = CheckoutRecord(
            id=order_id,
            user_id=self.engine.user_id,
            total_amount=snapshot.total_amount,
            discount_percent=snapshot.discount_percent,
            coupon_code=snapshot.coupon_code,
            payment_session_id=session.session_id,
            status=CheckoutStatus.PENDING,
            items=snapshot.line_items,
        )
        if self.repo is not None:
            try:
                record = await self.repo.create_checkout(record)
            except sqlite3.Error as e:
                self._audit("checkout.failed", {"order_id": order_id, "error": str(e)})
                msg = f"Failed to record checkout {order_id}"
                raise CheckoutError(msg) from e

        self._audit(
            "checkout.created",
            {
                "order_id": order_id,
                "total_amount": record.total_amount,
                "payment_session_id": session.session_id,
            },
        )
        return record, session

    async def complete_checkout(self, checkout_id: str) -> CheckoutRecord:
        """Mark this shopper's pending checkout paid and clear the cart.

        Ids that are unknown, belong to another identity, or are no longer
        pending raise CheckoutError and leave the cart alone.
        """
        if self.repo is None:
            msg = f"Cannot confirm checkout {checkout_id} without an order store"
            raise CheckoutError(msg)
        existing = await self.repo.get_checkout(checkout_id)
        if existing is None or existing.user_id != self.engine.user_id:
            msg = f"Unknown checkout {checkout_id}"
            raise CheckoutError(msg)
        if existing.status != CheckoutStatus.PENDING:
            msg = f"Checkout {checkout_id} is already {existing.status}"
            raise CheckoutStateError(msg)

        record = await self.repo.set_checkout_status(checkout_id, CheckoutStatus.PAID)
        if record is None:
            msg = f"Unknown checkout {checkout_id}"
            raise CheckoutError(msg)
        await self.engine.clear_cart()
        self._audit("checkout.completed", {"order_id": checkout_id})
        return record

    async def list_orders(self, user_id: str) -> list[CheckoutRecord]:
        if self.repo is None:
            return []
        return await self.repo.list_checkouts(user_id)

    def _audit(self, event_type: str, data: dict) -> None:
        if self.audit is None:
            return
        data = {**data, "user_id": self.engine.user_id}
        self.audit.log(event_type, data, session_id=self.engine.session_id)
