"""SQLite storage with WAL mode: catalog snapshot and audit event log."""

import json
import sqlite3
import sys
import uuid
from pathlib import Path

from shopfront_lite.storage.migrations import migrate
from shopfront_lite.storage.models import EventLogEntry, Product


class SQLiteStore:
    """Thread-safe SQLite store. Each thread/process should use its own instance."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.conn = sqlite3.connect(
            str(db_path),
            isolation_level=None,
            check_same_thread=False,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.execute("PRAGMA busy_timeout=3000")
        migrate(self.conn)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    # -----------------------------------------------------------------------
    # Catalog snapshot
    # -----------------------------------------------------------------------
    def replace_catalog(self, products: list[Product]) -> None:
        """Replace the stored catalog wholesale, preserving catalog order."""
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            self.conn.execute("DELETE FROM products")
            self.conn.executemany(
                """INSERT INTO products
                   (id, position, name, description, price, floor_price, category, image_url, tags)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        p.id,
                        i,
                        p.name,
                        p.description,
                        p.price,
                        p.floor_price,
                        p.category,
                        p.image_url,
                        json.dumps(list(p.tags)),
                    )
                    for i, p in enumerate(products)
                ],
            )
            self.conn.execute("COMMIT")
        except Exception:
            self.conn.execute("ROLLBACK")
            raise

    def load_catalog(self) -> list[Product]:
        """Stored catalog in its original order. Empty if never saved."""
        rows = self.conn.execute("SELECT * FROM products ORDER BY position").fetchall()
        return [
            Product(
                id=r["id"],
                name=r["name"],
                description=r["description"],
                price=r["price"],
                floor_price=r["floor_price"],
                category=r["category"],
                image_url=r["image_url"],
                tags=json.loads(r["tags"]),
            )
            for r in rows
        ]

    def count_products(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS cnt FROM products").fetchone()
        return int(row["cnt"])

    # -----------------------------------------------------------------------
    # Event log
    # -----------------------------------------------------------------------
    def log_event(
        self,
        event_type: str,
        data: dict | None = None,
        *,
        session_id: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        """Log event to SQLite. Best-effort: swallows errors."""
        try:
            self.conn.execute(
                """INSERT INTO event_log (id, session_id, event_type, data, duration_ms)
                   VALUES (?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), session_id, event_type, json.dumps(data or {}), duration_ms),
            )
        except Exception:
            print(f"WARNING: Failed to log event {event_type}", file=sys.stderr)

    def query_events(
        self,
        event_type: str | None = None,
        session_id: str | None = None,
    ) -> list[EventLogEntry]:
        """Query events by type and/or session."""
        query = "SELECT * FROM event_log WHERE 1=1"
        params: list = []
        if event_type is not None:
            query += " AND event_type = ?"
            params.append(event_type)
        if session_id is not None:
            query += " AND session_id = ?"
            params.append(session_id)
        query += " ORDER BY created_at, rowid"
        rows = self.conn.execute(query, params).fetchall()
        return [EventLogEntry(**dict(r)) for r in rows]

    def event_counts(self) -> dict[str, int]:
        """Event totals grouped by type, for status reporting."""
        rows = self.conn.execute(
            "SELECT event_type, COUNT(*) AS cnt FROM event_log GROUP BY event_type"
        ).fetchall()
        return {r["event_type"]: r["cnt"] for r in rows}
