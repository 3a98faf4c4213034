import pytest

from darknote_core.crypto import EncryptionKeypair, encrypt_message
from darknote_core.storage import InMemoryStorage, SQLiteStorage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """Every store-contract test runs against both providers."""
    if request.param == "memory":
        s = InMemoryStorage()
    else:
        s = SQLiteStorage(str(tmp_path / "darknote.db"))
    yield s
    s.close()


@pytest.fixture
def recipient():
    return EncryptionKeypair.generate()


@pytest.fixture
def payload(recipient):
    return encrypt_message("meet at the usual place", recipient.public_key)
