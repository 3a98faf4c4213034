"""
darknote_core.lifecycle
-----------------------
Note lifecycle: Active -> Exhausted -> Destroyed.

- create() stores a note in Active state with zero reads.
- fetch() is observation only; it never counts a read.
- record_successful_decrypt() is the single place a read is counted. It goes
  through StorageProvider.increment_reads(), which is atomic and never pushes
  the count past max_reads, and destroys the note once the limit is reached.
- purge_expired() drops notes by age and is meant for a background tick.

Any number of callers may race on the same note. Concurrent destroys are
harmless: only one delete removes the row, every racer still reports
destroyed=True.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional
import os

from .constants import (
    DAY_MS, DEFAULT_NOTE_MAX_AGE_DAYS, DEFAULT_SELF_DESTRUCT, KEY_SIZE,
    MAX_CIPHERTEXT_BYTES, MAX_READS_CAP, NONCE_SIZE,
)
from .crypto import EncryptedPayload
from .errors import DuplicateId, InvalidNote, NotFound
from .logger import get_logger
from .storage.models import Note
from .storage.provider import StorageProvider
from .utils import new_note_id, now_ms

log = get_logger("darknote.lifecycle")

ID_ATTEMPTS = 3


@dataclass(frozen=True)
class ReadReceipt:
    note_id: str
    destroyed: bool
    current_reads: int

    def to_dict(self) -> dict:
        return {"deleted": self.destroyed, "currentReads": self.current_reads}


def default_max_age_ms() -> int:
    days = float(os.getenv("DARKNOTE_NOTE_MAX_AGE_DAYS", DEFAULT_NOTE_MAX_AGE_DAYS))
    return int(days * DAY_MS)


def _validate(payload: EncryptedPayload, recipient_identity: str, max_reads: Optional[int]) -> None:
    if not recipient_identity:
        raise InvalidNote("recipient identity is required")
    if max_reads is not None:
        # bool is an int subclass; True must not mean one read
        if isinstance(max_reads, bool) or not isinstance(max_reads, int):
            raise InvalidNote("Invalid maxReads value")
        if not 1 <= max_reads <= MAX_READS_CAP:
            raise InvalidNote(f"maxReads must be between 1 and {MAX_READS_CAP}")
    for name in ("ciphertext", "nonce", "ephemeral_public_key"):
        if not isinstance(getattr(payload, name), (bytes, bytearray)):
            raise InvalidNote(f"{name} must be bytes")
    if not payload.ciphertext:
        raise InvalidNote("ciphertext is required")
    if len(payload.ciphertext) > MAX_CIPHERTEXT_BYTES:
        raise InvalidNote("Message too large")
    if len(payload.nonce) != NONCE_SIZE:
        raise InvalidNote(f"nonce must be {NONCE_SIZE} bytes")
    if len(payload.ephemeral_public_key) != KEY_SIZE:
        raise InvalidNote(f"ephemeral public key must be {KEY_SIZE} bytes")


class NoteLifecycleController:
    def __init__(self, storage: StorageProvider, clock: Callable[[], int] = now_ms):
        self.storage = storage
        self.clock = clock

    def create(
        self,
        payload: EncryptedPayload,
        recipient_identity: str,
        self_destruct: bool = DEFAULT_SELF_DESTRUCT,
        max_reads: Optional[int] = None,
        note_id: Optional[str] = None,
    ) -> Note:
        """
        Store a new note. A caller-supplied `note_id` that collides raises
        DuplicateId; a generated one is regenerated a few times first.

        No check that `recipient_identity` has a registered key: notes may be
        sent before the recipient registers.
        """
        _validate(payload, recipient_identity, max_reads)

        attempts = 1 if note_id else ID_ATTEMPTS
        for attempt in range(1, attempts + 1):
            note = Note(
                id=note_id or new_note_id(),
                payload=payload,
                recipient_identity=recipient_identity,
                created_at=self.clock(),
                self_destruct=bool(self_destruct),
                max_reads=max_reads,
                current_reads=0,
            )
            try:
                self.storage.put_note(note)
            except DuplicateId:
                if attempt == attempts:
                    raise
                log.warning(f"[NOTE CREATE] id collision on attempt {attempt}, regenerating")
                continue
            log.info(f"[NOTE CREATE] id={note.id} self_destruct={note.self_destruct} max_reads={note.max_reads}")
            return note
        raise DuplicateId("Could not allocate a note id")  # unreachable

    def fetch(self, note_id: str) -> Optional[Note]:
        """
        Return the note without counting a read, or None if it is gone.

        A note found at or past max_reads lost a destroy race earlier; it is
        reported as gone and deleted now.
        """
        note = self.storage.get_note(note_id)
        if note is None:
            return None
        if note.is_exhausted:
            if self.storage.delete_note(note_id):
                log.info(f"[NOTE HEAL] removed exhausted note id={note_id}")
            return None
        return note

    def record_successful_decrypt(self, note_id: str) -> ReadReceipt:
        """
        Count one successful decrypt and destroy the note if that exhausts it.

        Notes with self_destruct and no max_reads are NOT deleted here; the
        viewer's client calls destroy() once the content has been shown.

        Raises:
            NotFound: the note was already destroyed or expired.
        """
        count = self.storage.increment_reads(note_id)
        if count is None:
            raise NotFound(f"Note not found: {note_id}")

        if count.exhausted:
            if self.storage.delete_note(note_id):
                log.info(f"[NOTE DESTROY] id={note_id} reads={count.current_reads}/{count.max_reads}")
            return ReadReceipt(note_id, destroyed=True, current_reads=count.current_reads)

        return ReadReceipt(note_id, destroyed=False, current_reads=count.current_reads)

    def destroy(self, note_id: str) -> bool:
        """Explicit burn-after-reading. False if the note was already gone."""
        deleted = self.storage.delete_note(note_id)
        if deleted:
            log.info(f"[NOTE DESTROY] id={note_id} by caller")
        return deleted

    def purge_expired(self, max_age_ms: Optional[int] = None) -> int:
        if max_age_ms is None:
            max_age_ms = default_max_age_ms()
        cutoff = self.clock() - max_age_ms
        removed = self.storage.delete_notes_older_than(cutoff)
        if removed:
            log.info(f"[NOTE PURGE] removed={removed} cutoff={cutoff}")
        return removed
