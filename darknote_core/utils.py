"""
darknote_core.utils
-------------------
Small helpers for base64 encoding, millisecond timestamps and note ids.
"""

from __future__ import annotations
import base64, os, time

from .constants import NOTE_ID_BYTES


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"), validate=True)


def now_ms() -> int:
    # milliseconds since the Unix epoch, the unit of every stored timestamp
    return int(time.time() * 1000)


def new_note_id() -> str:
    # URL-safe, unpadded
    raw = base64.urlsafe_b64encode(os.urandom(NOTE_ID_BYTES)).decode("ascii")
    return raw.rstrip("=")
