from dataclasses import replace
from typing import Dict, Optional
import threading

from darknote_core.errors import DuplicateId
from darknote_core.storage.models import Note, ReadCount, RegisteredKey
from darknote_core.storage.provider import StorageProvider


class InMemoryStorage(StorageProvider):
    """Process-local provider for tests and single-node dev runs."""

    def __init__(self):
        self.notes: Dict[str, Note] = {}
        self.keys: Dict[str, RegisteredKey] = {}
        self._lock = threading.Lock()

    # notes
    def put_note(self, note: Note) -> None:
        with self._lock:
            if note.id in self.notes:
                raise DuplicateId(f"Note id already exists: {note.id}")
            self.notes[note.id] = note

    def get_note(self, note_id: str) -> Optional[Note]:
        return self.notes.get(note_id)

    def increment_reads(self, note_id: str) -> Optional[ReadCount]:
        with self._lock:
            note = self.notes.get(note_id)
            if note is None:
                return None
            if note.is_exhausted:
                return ReadCount(note.current_reads, note.max_reads, incremented=False)
            note = replace(note, current_reads=note.current_reads + 1)
            self.notes[note_id] = note
            return ReadCount(note.current_reads, note.max_reads, incremented=True)

    def delete_note(self, note_id: str) -> bool:
        with self._lock:
            return self.notes.pop(note_id, None) is not None

    def delete_notes_older_than(self, cutoff_ms: int) -> int:
        with self._lock:
            expired = [nid for nid, n in self.notes.items() if n.created_at < cutoff_ms]
            for nid in expired:
                del self.notes[nid]
            return len(expired)

    # key directory
    def upsert_key(self, rec: RegisteredKey) -> None:
        with self._lock:
            self.keys[rec.identity] = rec

    def get_key(self, identity: str) -> Optional[RegisteredKey]:
        return self.keys.get(identity)
