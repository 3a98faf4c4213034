"""DarkNote error types."""


class DarkNoteError(Exception):
    """Base exception for DarkNote core errors."""
    pass


class InvalidKey(DarkNoteError, ValueError):
    """Key material has the wrong type or length."""
    pass


class DecryptionFailed(DarkNoteError):
    """Box could not be opened (wrong key or tampered payload)."""
    pass


class InvalidEncoding(DarkNoteError):
    """Opened plaintext is not valid UTF-8."""
    pass


class SigningError(DarkNoteError):
    pass


class SigningDenied(SigningError):
    """The signer refused or returned no signature."""
    pass


class SigningUnavailable(SigningError):
    """No signer, or it did not answer in time."""
    pass


class DerivationFailed(DarkNoteError):
    pass


class InvalidNote(DarkNoteError, ValueError):
    """Note fields rejected at creation."""
    pass


class NotFound(DarkNoteError):
    """Note or key is absent (already destroyed, expired, or never existed)."""
    pass


class DuplicateId(DarkNoteError):
    """A note with this id already exists."""
    pass


class StorageError(DarkNoteError):
    pass
