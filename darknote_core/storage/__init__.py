# darknote_core/storage/__init__.py

from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator
import os

from darknote_core.constants import DEFAULT_DB_PATH
from .models import Note, ReadCount, RegisteredKey
from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the runtime storage backend.

        - sqlite (default)
        - memory
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("DARKNOTE_STORAGE_PROVIDER", "sqlite")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("DARKNOTE_DB_PATH", DEFAULT_DB_PATH)
        return SQLiteStorage(str(db_path))

    raise ValueError(f"Unknown storage provider: {provider}")


@contextmanager
def open_storage(config: dict | None = None) -> Iterator[StorageProvider]:
    """Open a provider for the duration of a block and always close it."""
    storage = load_storage_provider(config)
    try:
        yield storage
    finally:
        storage.close()


__all__ = [
    "Note",
    "ReadCount",
    "RegisteredKey",
    "StorageProvider",
    "InMemoryStorage",
    "SQLiteStorage",
    "load_storage_provider",
    "open_storage",
]
