"""
darknote_core.constants
-----------------------
Protocol sizes and note policy limits shared across the package.
"""

SCHEMA_VERSION = 3

# X25519 keys and AES-256-GCM
KEY_SIZE = 32
NONCE_SIZE = 12
BOX_INFO = b"darknote-box-v1"

# Domain-separated challenge the wallet signs to derive an encryption key
CHALLENGE_PREFIX = "DarkNote encryption key for "

NOTE_ID_BYTES = 16
MAX_READS_CAP = 1000
MAX_CIPHERTEXT_BYTES = 75_000  # ~100k chars once base64 encoded
DEFAULT_SELF_DESTRUCT = True

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_NOTE_MAX_AGE_DAYS = 30
DEFAULT_PURGE_INTERVAL_SECS = 3600
DEFAULT_SIGN_TIMEOUT_SECS = 120.0

DEFAULT_DB_PATH = "db/darknote.db"
SQLITE_BUSY_TIMEOUT_SECS = 5.0
SQLITE_LOCK_RETRIES = 3
