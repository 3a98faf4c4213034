"""
DarkNote Core Package
=====================
Zero-knowledge, self-destructing notes addressed to a wallet identity.

Provides:
- Sealed-box encryption (X25519 + HKDF + AES-GCM) with per-message ephemeral keys
- Encryption keypair derivation from a wallet signature
- Key directory (identity -> encryption public key)
- Note lifecycle with atomic read counting and destroy-after-N-reads
- Pluggable storage (SQLite default, in-memory)
"""

from .errors import (
    DarkNoteError, InvalidKey, DecryptionFailed, InvalidEncoding,
    SigningError, SigningDenied, SigningUnavailable, DerivationFailed,
    InvalidNote, NotFound, DuplicateId, StorageError,
)
from .crypto import EncryptionKeypair, EncryptedPayload, encrypt_message, decrypt_message
from .keys import challenge_message, derive_keypair, keypair_from_signature
from .storage import Note, RegisteredKey, load_storage_provider, open_storage
from .directory import KeyDirectory
from .lifecycle import NoteLifecycleController, ReadReceipt
from .purge import PurgeWorker
from .service import DarkNoteService

__version__ = "0.1.0"
