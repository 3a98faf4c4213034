# darknote_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from darknote_core.crypto import EncryptedPayload
from darknote_core.utils import b64e


@dataclass(frozen=True)
class Note:
    """
    Storage-level representation of one encrypted note.

    `current_reads` is the only field that changes while the note exists, and
    only through StorageProvider.increment_reads().
    """
    id: str
    payload: EncryptedPayload
    recipient_identity: str
    created_at: int                 # ms since epoch
    self_destruct: bool = True
    max_reads: Optional[int] = None  # None = unlimited
    current_reads: int = 0

    @property
    def is_exhausted(self) -> bool:
        return self.max_reads is not None and self.current_reads >= self.max_reads

    def to_public_dict(self) -> Dict[str, Any]:
        d = {"id": self.id}
        d.update(self.payload.to_dict())
        d.update({
            "recipientAddress": self.recipient_identity,
            "createdAt": self.created_at,
            "selfDestruct": self.self_destruct,
            "maxReads": self.max_reads,
            "currentReads": self.current_reads,
        })
        return d


@dataclass(frozen=True)
class RegisteredKey:
    identity: str
    encryption_public_key: bytes
    registered_at: int  # ms since epoch

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "walletAddress": self.identity,
            "encryptionPublicKey": b64e(self.encryption_public_key),
            "registeredAt": self.registered_at,
        }


@dataclass(frozen=True)
class ReadCount:
    """Outcome of one atomic increment attempt."""
    current_reads: int
    max_reads: Optional[int]
    incremented: bool

    @property
    def exhausted(self) -> bool:
        return self.max_reads is not None and self.current_reads >= self.max_reads
