"""SQLite migration system using PRAGMA user_version."""

import sqlite3

# Each migration is (version, sql). Append-only, sequential.
MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            position INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            price REAL NOT NULL,
            floor_price REAL NOT NULL DEFAULT 0,
            category TEXT NOT NULL DEFAULT '',
            image_url TEXT NOT NULL DEFAULT '',
            tags TEXT NOT NULL DEFAULT '[]' CHECK(json_valid(tags)),
            loaded_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS event_log (
            id TEXT PRIMARY KEY,
            session_id TEXT,
            event_type TEXT NOT NULL,
            data TEXT NOT NULL DEFAULT '{}' CHECK(json_valid(data)),
            duration_ms INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_event_log_type ON event_log(event_type, created_at);
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS carts (
            user_id TEXT PRIMARY KEY,
            lines TEXT NOT NULL DEFAULT '[]' CHECK(json_valid(lines)),
            discount_percent REAL NOT NULL DEFAULT 0,
            coupon_code TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS checkouts (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            total_amount INTEGER NOT NULL,
            discount_percent REAL NOT NULL DEFAULT 0,
            coupon_code TEXT,
            payment_session_id TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            items TEXT NOT NULL DEFAULT '[]' CHECK(json_valid(items)),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_checkouts_user ON checkouts(user_id, created_at);
        """,
    ),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def get_version(conn: sqlite3.Connection) -> int:
    """Read the schema version stored in PRAGMA user_version."""
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0])


def migrate(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations sequentially.

    Uses EXCLUSIVE lock to prevent concurrent migration races.
    """
    current = get_version(conn)
    for version, sql in MIGRATIONS:
        if version > current:
            conn.execute("BEGIN EXCLUSIVE")
            try:
                actual = int(conn.execute("PRAGMA user_version").fetchone()[0])
                if version > actual:
                    for stmt in _split_sql(sql):
                        conn.execute(stmt)
                    conn.execute(f"PRAGMA user_version = {version}")
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
            current = version


def _split_sql(sql: str) -> list[str]:
    """Split a multi-statement SQL string into individual statements."""
    return [s.strip() for s in sql.strip().split(";") if s.strip()]
