from __future__ import annotations
from typing import Optional

from .directory import KeyDirectory
from .lifecycle import NoteLifecycleController
from .logger import get_logger
from .purge import PurgeWorker
from .storage import StorageProvider, load_storage_provider

log = get_logger("darknote.service")


class DarkNoteService:
    """
    Owns the one storage handle of a running process and everything built on it.

    config keys: provider, sqlite_path (see load_storage_provider),
    max_age_ms, purge_interval, purge (bool, start the background worker).
    """

    def __init__(self, config: Optional[dict] = None, storage: Optional[StorageProvider] = None):
        config = config or {}
        self.storage = storage or load_storage_provider(config)
        self.keys = KeyDirectory(self.storage)
        self.notes = NoteLifecycleController(self.storage)
        self.purger = PurgeWorker(
            self.notes,
            max_age_ms=config.get("max_age_ms"),
            interval=config.get("purge_interval"),
        )
        if config.get("purge", True):
            self.purger.start()
        log.info(f"[SERVICE] started storage={type(self.storage).__name__}")

    def close(self) -> None:
        self.purger.stop()
        self.storage.close()
        log.info("[SERVICE] stopped")

    def __enter__(self) -> "DarkNoteService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
