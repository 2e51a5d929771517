"""
Upgrade a db.sqlite written by the legacy marketplace server
- Adds the 'processed_events' table if missing
- Backfills NULL order status as 'pending'
- Lower-cases user emails (lookups are case-insensitive now)
- Adds unique indexes on orders(session_id) and users(email)

Usage:
  python -m migration.migrate_legacy_db --db path/to/db.sqlite
"""
import argparse
import os
import sqlite3
from contextlib import closing


def has_table(conn: sqlite3.Connection, table: str) -> bool:
    cur = conn.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,))
    return cur.fetchone() is not None


def has_index(conn: sqlite3.Connection, index: str) -> bool:
    cur = conn.execute("SELECT 1 FROM sqlite_master WHERE type='index' AND name=?", (index,))
    return cur.fetchone() is not None


def _duplicates(conn: sqlite3.Connection, table: str, column: str) -> list:
    cur = conn.execute(
        f"SELECT {column} FROM {table} WHERE {column} IS NOT NULL GROUP BY {column} HAVING COUNT(*) > 1"
    )
    return [row[0] for row in cur.fetchall()]


def migrate(db_path: str):
    if db_path == ":memory:":
        raise ValueError("Use a file-backed DB for migration script")

    if not os.path.exists(db_path):
        raise FileNotFoundError(db_path)

    with closing(sqlite3.connect(db_path)) as conn:
        if not has_table(conn, "orders"):
            raise RuntimeError("orders table missing; cannot migrate")

        if not has_table(conn, "processed_events"):
            conn.execute(
                "CREATE TABLE processed_events ("
                "event_id TEXT PRIMARY KEY, event_type TEXT NOT NULL, processed_at INTEGER NOT NULL)"
            )

        conn.execute("UPDATE orders SET status = 'pending' WHERE status IS NULL")

        dup_sessions = _duplicates(conn, "orders", "session_id")
        if dup_sessions:
            conn.rollback()
            raise ValueError(f"duplicate order session ids: {', '.join(dup_sessions)}")
        if not has_index(conn, "ix_orders_session_id"):
            conn.execute("CREATE UNIQUE INDEX ix_orders_session_id ON orders (session_id)")

        if has_table(conn, "users"):
            conn.execute("UPDATE users SET email = lower(trim(email)) WHERE email IS NOT NULL")
            dup_emails = _duplicates(conn, "users", "email")
            if dup_emails:
                conn.rollback()
                raise ValueError(f"duplicate user emails: {', '.join(dup_emails)}")
            if not has_index(conn, "ix_users_email"):
                conn.execute("CREATE UNIQUE INDEX ix_users_email ON users (email)")

        conn.commit()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Path to SQLite database file")
    args = parser.parse_args()
    migrate(args.db)

if __name__ == "__main__":
    main()
