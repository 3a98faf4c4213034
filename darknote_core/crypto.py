"""
darknote_core.crypto
--------------------
Sealed-box encryption for DarkNote notes:

- X25519: key agreement between a per-message ephemeral key and the recipient
- HKDF-SHA256: turns the shared secret into a 256-bit AEAD key, bound to both
  public keys
- AES-256-GCM: authenticated encryption of the UTF-8 message

The server only ever sees EncryptedPayload values. The ephemeral secret key is
dropped as soon as encrypt_message() returns, so a leaked key for one note says
nothing about any other note, even between the same two parties.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import os

from .constants import KEY_SIZE, NONCE_SIZE, BOX_INFO
from .errors import InvalidKey, DecryptionFailed, InvalidEncoding
from .utils import b64e, b64d

# --------- Key material ----------
@dataclass(frozen=True)
class EncryptionKeypair:
    public_key: bytes
    secret_key: bytes = field(repr=False)

    @classmethod
    def generate(cls) -> "EncryptionKeypair":
        sk = x25519.X25519PrivateKey.generate()
        return cls(
            public_key=sk.public_key().public_bytes_raw(),
            secret_key=sk.private_bytes_raw(),
        )

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> "EncryptionKeypair":
        sk = _private_key(secret_key)
        return cls(public_key=sk.public_key().public_bytes_raw(), secret_key=bytes(secret_key))

    def export(self) -> Dict[str, str]:
        """Base64 form handed to a client. The secret half must stay on the client."""
        return {"publicKey": b64e(self.public_key), "secretKey": b64e(self.secret_key)}


@dataclass(frozen=True)
class EncryptedPayload:
    """
    Opaque box stored by the server.

    Attributes:
        ciphertext: AES-GCM output including the 16-byte tag.
        nonce: 12 random bytes, fresh per message.
        ephemeral_public_key: sender's one-time X25519 public key.
    """
    ciphertext: bytes
    nonce: bytes
    ephemeral_public_key: bytes

    def to_dict(self) -> Dict[str, str]:
        return {
            "ciphertext": b64e(self.ciphertext),
            "nonce": b64e(self.nonce),
            "ephemeralPublicKey": b64e(self.ephemeral_public_key),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "EncryptedPayload":
        try:
            return cls(
                ciphertext=b64d(data["ciphertext"]),
                nonce=b64d(data["nonce"]),
                ephemeral_public_key=b64d(data["ephemeralPublicKey"]),
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed encrypted payload: {e}") from e


def _check_key(key: bytes, what: str) -> bytes:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise InvalidKey(f"Invalid {what} (must be {KEY_SIZE} bytes)")
    return bytes(key)


def _private_key(secret_key: bytes) -> x25519.X25519PrivateKey:
    return x25519.X25519PrivateKey.from_private_bytes(_check_key(secret_key, "secret key"))


def _box_key(sk: x25519.X25519PrivateKey, peer_pub: bytes, eph_pub: bytes, recipient_pub: bytes) -> bytes:
    # raises ValueError for low-order points (all-zero shared secret)
    shared = sk.exchange(x25519.X25519PublicKey.from_public_bytes(peer_pub))
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=BOX_INFO + eph_pub + recipient_pub)
    return hkdf.derive(shared)


# --------- Codec ----------
def encrypt_message(message: str, recipient_public_key: bytes) -> EncryptedPayload:
    recipient_pub = _check_key(recipient_public_key, "recipient public key")

    ephemeral = x25519.X25519PrivateKey.generate()
    eph_pub = ephemeral.public_key().public_bytes_raw()
    nonce = os.urandom(NONCE_SIZE)

    try:
        key = _box_key(ephemeral, recipient_pub, eph_pub, recipient_pub)
    except ValueError as e:
        raise InvalidKey("Invalid recipient public key") from e

    ct = AESGCM(key).encrypt(nonce, message.encode("utf-8"), None)
    return EncryptedPayload(ciphertext=ct, nonce=nonce, ephemeral_public_key=eph_pub)


def decrypt_message(payload: EncryptedPayload, recipient_secret_key: bytes) -> str:
    sk = _private_key(recipient_secret_key)
    recipient_pub = sk.public_key().public_bytes_raw()

    # One failure for every cause: callers must not learn wrong key from tampered data
    try:
        key = _box_key(sk, payload.ephemeral_public_key, payload.ephemeral_public_key, recipient_pub)
        pt = AESGCM(key).decrypt(payload.nonce, payload.ciphertext, None)
    except (InvalidTag, ValueError, TypeError):
        raise DecryptionFailed("Decryption failed") from None

    try:
        return pt.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidEncoding("Decrypted message is not valid UTF-8") from None
