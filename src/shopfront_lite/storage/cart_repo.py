"""Async persistence for identity-scoped carts and checkout records."""

from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING

import aiosqlite

from shopfront_lite.exceptions import CheckoutError
from shopfront_lite.storage.migrations import migrate
from shopfront_lite.storage.models import (
    CartLine,
    CheckoutLineItem,
    CheckoutRecord,
    CheckoutStatus,
    NegotiatedDiscount,
)

if TYPE_CHECKING:
    from pathlib import Path


async def open_db(db_path: Path) -> aiosqlite.Connection:
    """Open an aiosqlite connection on a migrated database."""
    sync_conn = sqlite3.connect(str(db_path))
    try:
        migrate(sync_conn)
    finally:
        sync_conn.close()

    db = await aiosqlite.connect(str(db_path))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.execute("PRAGMA busy_timeout=3000")
    return db


class CartRepository:
    """Carts are keyed by user id; guests never reach this layer."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def save_cart(
        self,
        user_id: str,
        lines: list[CartLine],
        discount: NegotiatedDiscount,
    ) -> None:
        payload = json.dumps([{"product_id": ln.product.id, "quantity": ln.quantity} for ln in lines])
        await self.db.execute(
            """INSERT INTO carts (user_id, lines, discount_percent, coupon_code, updated_at)
               VALUES (?, ?, ?, ?, datetime('now'))
               ON CONFLICT(user_id) DO UPDATE SET
                   lines = excluded.lines,
                   discount_percent = excluded.discount_percent,
                   coupon_code = excluded.coupon_code,
                   updated_at = excluded.updated_at""",
            (user_id, payload, discount.percent, discount.coupon_code),
        )
        await self.db.commit()

    async def load_cart(
        self, user_id: str
    ) -> tuple[list[tuple[str, int]], NegotiatedDiscount] | None:
        """Saved (product_id, quantity) pairs plus discount, or None if nothing saved."""
        cursor = await self.db.execute("SELECT * FROM carts WHERE user_id = ?", (user_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        lines = [(str(item["product_id"]), int(item["quantity"])) for item in json.loads(row["lines"])]
        discount = NegotiatedDiscount(percent=row["discount_percent"], coupon_code=row["coupon_code"])
        return lines, discount

    async def delete_cart(self, user_id: str) -> None:
        await self.db.execute("DELETE FROM carts WHERE user_id = ?", (user_id,))
        await self.db.commit()

    # -----------------------------------------------------------------------
    # Checkouts
    # -----------------------------------------------------------------------
    async def create_checkout(self, record: CheckoutRecord) -> CheckoutRecord:
        await self.db.execute(
            """INSERT INTO checkouts
               (id, user_id, total_amount, discount_percent, coupon_code,
                payment_session_id, status, items)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.user_id,
                record.total_amount,
                record.discount_percent,
                record.coupon_code,
                record.payment_session_id,
                str(record.status),
                json.dumps([item.model_dump() for item in record.items]),
            ),
        )
        await self.db.commit()
        stored = await self.get_checkout(record.id)
        if stored is None:
            msg = f"Checkout {record.id} was not stored"
            raise CheckoutError(msg)
        return stored

    async def get_checkout(self, checkout_id: str) -> CheckoutRecord | None:
        cursor = await self.db.execute("SELECT * FROM checkouts WHERE id = ?", (checkout_id,))
        row = await cursor.fetchone()
        return _row_to_checkout(row) if row else None

    async def set_checkout_status(
        self, checkout_id: str, status: CheckoutStatus
    ) -> CheckoutRecord | None:
        await self.db.execute(
            "UPDATE checkouts SET status = ? WHERE id = ?",
            (str(status), checkout_id),
        )
        await self.db.commit()
        return await self.get_checkout(checkout_id)

    async def list_checkouts(self, user_id: str) -> list[CheckoutRecord]:
        """Checkouts for a user, most recent first."""
        cursor = await self.db.execute(
            "SELECT * FROM checkouts WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        return [_row_to_checkout(r) for r in await cursor.fetchall()]


def _row_to_checkout(row: aiosqlite.Row) -> CheckoutRecord:
    return CheckoutRecord(
        id=row["id"],
        user_id=row["user_id"],
        total_amount=row["total_amount"],
        discount_percent=row["discount_percent"],
        coupon_code=row["coupon_code"],
        payment_session_id=row["payment_session_id"],
        status=CheckoutStatus(row["status"]),
        items=[CheckoutLineItem(**item) for item in json.loads(row["items"])],
        created_at=row["created_at"],
    )
