"""
darknote_core.keys
------------------
Derives a recipient's X25519 encryption keypair from a wallet signature.

Wallets never expose their signing secret, so the encryption key is derived,
not converted:

1. The wallet signs a fixed challenge bound to the recipient identity.
2. SHA-512 of the signature, truncated to 32 bytes, is the X25519 secret key.

The same wallet signing the same challenge always yields the same keypair, which
is what lets a recipient recover the key on any device without storing it.

WARNING: the signature over the challenge IS the secret key in all but name.
Anyone who can produce or obtain that signature can derive the private key and
read every note addressed to the identity. Treat it exactly like a private key.
"""

from __future__ import annotations
from typing import Awaitable, Callable, Optional, Union
import asyncio, hashlib, inspect, os

from .constants import CHALLENGE_PREFIX, DEFAULT_SIGN_TIMEOUT_SECS, KEY_SIZE
from .crypto import EncryptionKeypair
from .errors import DerivationFailed, SigningDenied, SigningError, SigningUnavailable
from .logger import get_logger

log = get_logger("darknote.keys")

SignFn = Callable[[bytes], Union[bytes, Awaitable[bytes]]]


def challenge_message(identity: str) -> bytes:
    return f"{CHALLENGE_PREFIX}{identity}".encode("utf-8")


def keypair_from_signature(signature: bytes) -> EncryptionKeypair:
    seed = hashlib.sha512(signature).digest()[:KEY_SIZE]
    try:
        return EncryptionKeypair.from_secret_key(seed)
    except ValueError as e:
        raise DerivationFailed("Could not expand signature seed into a keypair") from e


def _sign_timeout() -> float:
    return float(os.getenv("DARKNOTE_SIGN_TIMEOUT_SECS", DEFAULT_SIGN_TIMEOUT_SECS))


async def derive_keypair(
    sign: Optional[SignFn],
    identity: str,
    timeout: Optional[float] = None,
) -> EncryptionKeypair:
    """
    Ask `sign` to sign the identity's challenge and derive the keypair from it.

    `sign` may be a plain function or a coroutine function; an awaited signer is
    bounded by `timeout` seconds (DARKNOTE_SIGN_TIMEOUT_SECS by default).
    Cancelling the calling task cancels the signer and propagates; no partial
    keypair is ever returned.

    Raises:
        SigningUnavailable: no signer, or it timed out.
        SigningDenied: the signer raised or returned no signature.
        DerivationFailed: the seed could not be turned into a keypair.
    """
    if sign is None:
        raise SigningUnavailable("No signing capability available")

    challenge = challenge_message(identity)
    if timeout is None:
        timeout = _sign_timeout()

    try:
        result = sign(challenge)
        if inspect.isawaitable(result):
            result = await asyncio.wait_for(result, timeout)
    except asyncio.TimeoutError:
        log.warning(f"[KEY DERIVE] signer timed out after {timeout}s")
        raise SigningUnavailable(f"Signer did not respond within {timeout}s") from None
    except SigningError:
        raise
    except Exception as e:
        log.warning(f"[KEY DERIVE] signer failed: {type(e).__name__}")
        raise SigningDenied(f"Signing failed: {e}") from e

    if not result:
        raise SigningDenied("Signer returned no signature")
    if not isinstance(result, (bytes, bytearray, memoryview)):
        raise SigningDenied(f"Signer returned {type(result).__name__}, expected bytes")

    return keypair_from_signature(bytes(result))
