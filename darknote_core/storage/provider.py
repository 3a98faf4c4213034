# darknote_core/storage/provider.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from darknote_core.storage.models import Note, ReadCount, RegisteredKey


class StorageProvider(ABC):
    """
    Contract every DarkNote storage backend implements.

    Providers must be safe to call from several threads at once. The only
    read-modify-write on a note is increment_reads(), and it must be atomic.
    """

    # --- notes ---
    @abstractmethod
    def put_note(self, note: Note) -> None:
        """Insert a new note. Raises DuplicateId if the id is taken."""

    @abstractmethod
    def get_note(self, note_id: str) -> Optional[Note]:
        ...

    @abstractmethod
    def increment_reads(self, note_id: str) -> Optional[ReadCount]:
        """
        Atomically add one read unless the note is already at max_reads.

        Returns the post-operation count, or None if the note does not exist.
        Two concurrent calls never observe the same pre-increment value.
        """

    @abstractmethod
    def delete_note(self, note_id: str) -> bool:
        """True iff a note was removed. Deleting an absent id is a no-op."""

    @abstractmethod
    def delete_notes_older_than(self, cutoff_ms: int) -> int:
        """Remove notes with created_at < cutoff_ms and return how many."""

    # --- key directory ---
    @abstractmethod
    def upsert_key(self, rec: RegisteredKey) -> None:
        ...

    @abstractmethod
    def get_key(self, identity: str) -> Optional[RegisteredKey]:
        ...

    def close(self) -> None:
        return

    def __enter__(self) -> "StorageProvider":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
