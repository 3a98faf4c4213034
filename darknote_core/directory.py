from __future__ import annotations
from typing import Callable, Optional

from .constants import KEY_SIZE
from .errors import InvalidKey
from .logger import get_logger
from .storage.models import RegisteredKey
from .storage.provider import StorageProvider
from .utils import now_ms

log = get_logger("darknote.directory")


class KeyDirectory:
    """
    Identity -> encryption public key.

    One record per identity, last write wins. Identity format is the caller's
    concern; this only checks the key is 32 bytes.
    """

    def __init__(self, storage: StorageProvider, clock: Callable[[], int] = now_ms):
        self.storage = storage
        self.clock = clock

    def register(self, identity: str, public_key: bytes) -> RegisteredKey:
        if not identity:
            raise ValueError("identity is required")
        if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != KEY_SIZE:
            raise InvalidKey(f"Invalid encryption public key (must be {KEY_SIZE} bytes)")

        rec = RegisteredKey(identity=identity, encryption_public_key=bytes(public_key), registered_at=self.clock())
        self.storage.upsert_key(rec)
        log.info(f"[KEY REGISTER] identity={identity}")
        return rec

    def lookup(self, identity: str) -> Optional[RegisteredKey]:
        return self.storage.get_key(identity)
