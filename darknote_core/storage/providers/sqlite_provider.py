from __future__ import annotations
from typing import Callable, Optional, TypeVar
import os, sqlite3, threading, time

from darknote_core.constants import DEFAULT_DB_PATH, SQLITE_BUSY_TIMEOUT_SECS, SQLITE_LOCK_RETRIES
from darknote_core.crypto import EncryptedPayload
from darknote_core.errors import DuplicateId, StorageError
from darknote_core.logger import get_logger
from darknote_core.storage.migrations import migrate
from darknote_core.storage.models import Note, ReadCount, RegisteredKey
from darknote_core.storage.provider import StorageProvider

log = get_logger("darknote.storage.sqlite")

T = TypeVar("T")

_NOTE_COLUMNS = (
    "id, ciphertext, nonce, ephemeral_public_key, recipient_identity, "
    "created_at, self_destruct, max_reads, current_reads"
)


class SQLiteStorage(StorageProvider):
    def __init__(self, path=DEFAULT_DB_PATH, busy_timeout: float = SQLITE_BUSY_TIMEOUT_SECS):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.path = path
        # autocommit; transactions are opened explicitly where needed
        self.db = sqlite3.connect(
            path, timeout=busy_timeout, check_same_thread=False, isolation_level=None
        )
        self._lock = threading.RLock()
        with self._lock:
            self.db.execute("PRAGMA journal_mode=WAL")
            self.schema_version = migrate(self.db)
        # WAL readers never wait on a writer, so reads get their own connection
        self.reader = sqlite3.connect(
            path, timeout=busy_timeout, check_same_thread=False, isolation_level=None
        )
        self._read_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    def _run(self, op: str, fn: Callable[[sqlite3.Connection], T], read: bool = False) -> T:
        """Run `fn` under the matching connection lock, retrying briefly while the file is locked."""
        conn, lock = (self.reader, self._read_lock) if read else (self.db, self._lock)
        for attempt in range(1, SQLITE_LOCK_RETRIES + 1):
            try:
                with lock:
                    return fn(conn)
            except sqlite3.OperationalError as e:
                if "locked" not in str(e) or attempt == SQLITE_LOCK_RETRIES:
                    raise StorageError(f"{op} failed: {e}") from e
                log.warning(f"[DB RETRY] {op} attempt {attempt}: {e}")
                time.sleep(0.05 * attempt)
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as e:
                raise StorageError(f"{op} failed: {e}") from e
        raise StorageError(f"{op} failed")  # unreachable

    @staticmethod
    def _row_to_note(row) -> Note:
        (note_id, ciphertext, nonce, eph_pub, recipient, created_at,
         self_destruct, max_reads, current_reads) = row
        return Note(
            id=note_id,
            payload=EncryptedPayload(
                ciphertext=bytes(ciphertext), nonce=bytes(nonce), ephemeral_public_key=bytes(eph_pub)
            ),
            recipient_identity=recipient,
            created_at=created_at,
            self_destruct=bool(self_destruct),
            max_reads=max_reads,
            current_reads=current_reads,
        )

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------
    def put_note(self, note: Note) -> None:
        def insert(db):
            db.execute(
                f"INSERT INTO notes({_NOTE_COLUMNS}) VALUES(?,?,?,?,?,?,?,?,?)",
                (
                    note.id,
                    note.payload.ciphertext,
                    note.payload.nonce,
                    note.payload.ephemeral_public_key,
                    note.recipient_identity,
                    note.created_at,
                    1 if note.self_destruct else 0,
                    note.max_reads,
                    note.current_reads,
                ),
            )

        try:
            self._run("put_note", insert)
        except sqlite3.IntegrityError as e:
            raise DuplicateId(f"Note id already exists: {note.id}") from e

    def get_note(self, note_id: str) -> Optional[Note]:
        def select(db):
            return db.execute(f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id=?", (note_id,)).fetchone()

        row = self._run("get_note", select, read=True)
        return self._row_to_note(row) if row else None

    def increment_reads(self, note_id: str) -> Optional[ReadCount]:
        def bump(db):
            # write lock held from BEGIN, so other processes cannot interleave
            db.execute("BEGIN IMMEDIATE")
            try:
                cur = db.execute(
                    "UPDATE notes SET current_reads = current_reads + 1 "
                    "WHERE id=? AND (max_reads IS NULL OR current_reads < max_reads)",
                    (note_id,),
                )
                incremented = cur.rowcount > 0
                row = db.execute(
                    "SELECT current_reads, max_reads FROM notes WHERE id=?", (note_id,)
                ).fetchone()
                db.execute("COMMIT")
            except Exception:
                db.execute("ROLLBACK")
                raise
            if row is None:
                return None
            return ReadCount(current_reads=row[0], max_reads=row[1], incremented=incremented)

        return self._run("increment_reads", bump)

    def delete_note(self, note_id: str) -> bool:
        def delete(db):
            return db.execute("DELETE FROM notes WHERE id=?", (note_id,)).rowcount > 0

        return self._run("delete_note", delete)

    def delete_notes_older_than(self, cutoff_ms: int) -> int:
        def delete(db):
            return db.execute("DELETE FROM notes WHERE created_at < ?", (cutoff_ms,)).rowcount

        return self._run("delete_notes_older_than", delete)

    # ------------------------------------------------------------------
    # Key directory
    # ------------------------------------------------------------------
    def upsert_key(self, rec: RegisteredKey) -> None:
        def upsert(db):
            db.execute(
                "INSERT INTO registered_keys(identity, encryption_public_key, registered_at) VALUES(?,?,?) "
                "ON CONFLICT(identity) DO UPDATE SET encryption_public_key=excluded.encryption_public_key, "
                "registered_at=excluded.registered_at",
                (rec.identity, rec.encryption_public_key, rec.registered_at),
            )

        self._run("upsert_key", upsert)

    def get_key(self, identity: str) -> Optional[RegisteredKey]:
        def select(db):
            return db.execute(
                "SELECT identity, encryption_public_key, registered_at FROM registered_keys WHERE identity=?",
                (identity,),
            ).fetchone()

        row = self._run("get_key", select, read=True)
        if not row:
            return None
        return RegisteredKey(identity=row[0], encryption_public_key=bytes(row[1]), registered_at=row[2])

    def close(self):
        with self._read_lock:
            self.reader.close()
        with self._lock:
            self.db.close()
