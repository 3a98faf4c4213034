"""
darknote_core.storage.migrations
--------------------------------
Ordered SQLite schema history. Each entry runs once, inside its own
transaction, and is recorded in `schema_version`. Append new entries; never
edit or reorder applied ones.
"""

from __future__ import annotations
from typing import List, Tuple
import sqlite3

from darknote_core.logger import get_logger
from darknote_core.utils import now_ms

log = get_logger("darknote.storage.migrations")

MIGRATIONS: List[Tuple[int, List[str]]] = [
    (1, [
        """CREATE TABLE notes(
            id TEXT PRIMARY KEY,
            ciphertext BLOB NOT NULL,
            nonce BLOB NOT NULL,
            ephemeral_public_key BLOB NOT NULL,
            recipient_identity TEXT NOT NULL,
            created_at INTEGER NOT NULL
        )""",
    ]),
    (2, [
        "ALTER TABLE notes ADD COLUMN self_destruct INTEGER NOT NULL DEFAULT 1",
        "ALTER TABLE notes ADD COLUMN max_reads INTEGER",
        "ALTER TABLE notes ADD COLUMN current_reads INTEGER NOT NULL DEFAULT 0",
        "CREATE INDEX idx_notes_created_at ON notes(created_at)",
    ]),
    (3, [
        """CREATE TABLE registered_keys(
            identity TEXT PRIMARY KEY,
            encryption_public_key BLOB NOT NULL,
            registered_at INTEGER NOT NULL
        )""",
    ]),
]


def current_version(db: sqlite3.Connection) -> int:
    db.execute(
        "CREATE TABLE IF NOT EXISTS schema_version(version INTEGER PRIMARY KEY, applied_at INTEGER NOT NULL)"
    )
    row = db.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def migrate(db: sqlite3.Connection) -> int:
    """Apply pending migrations. `db` must be in autocommit mode. Returns the new version."""
    version = current_version(db)
    for target, statements in MIGRATIONS:
        if target <= version:
            continue
        db.execute("BEGIN IMMEDIATE")
        try:
            # another process may have migrated while we waited for the lock
            if current_version(db) >= target:
                db.execute("COMMIT")
                continue
            for sql in statements:
                db.execute(sql)
            db.execute(
                "INSERT INTO schema_version(version, applied_at) VALUES(?, ?)",
                (target, now_ms()),
            )
            db.execute("COMMIT")
        except Exception:
            db.execute("ROLLBACK")
            raise
        log.info(f"[DB MIGRATE] applied schema v{target}")
        version = target
    return version
