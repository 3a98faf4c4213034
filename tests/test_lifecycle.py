from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from darknote_core.constants import DAY_MS
from darknote_core.crypto import EncryptionKeypair, decrypt_message, encrypt_message
from darknote_core.directory import KeyDirectory
from darknote_core.errors import DuplicateId, InvalidNote, NotFound
from darknote_core.lifecycle import NoteLifecycleController, ReadReceipt
from darknote_core.storage import Note

NOW = 1_760_000_000_000


@pytest.fixture
def controller(storage):
    return NoteLifecycleController(storage, clock=lambda: NOW)


def test_create_defaults(controller, payload):
    note = controller.create(payload, "alice")
    assert note.current_reads == 0
    assert note.self_destruct is True
    assert note.max_reads is None
    assert note.created_at == NOW
    assert len(note.id) == 22  # 16 bytes, url-safe, unpadded
    assert "=" not in note.id and "+" not in note.id and "/" not in note.id
    assert controller.fetch(note.id) == note


@pytest.mark.parametrize("max_reads", [0, -1, 1001, True, 2.5, "3"])
def test_create_rejects_bad_max_reads(controller, payload, max_reads):
    with pytest.raises(InvalidNote):
        controller.create(payload, "alice", max_reads=max_reads)


@pytest.mark.parametrize("max_reads", [1, 1000])
def test_create_accepts_max_reads_bounds(controller, payload, max_reads):
    assert controller.create(payload, "alice", max_reads=max_reads).max_reads == max_reads


def test_create_rejects_bad_payload(controller, payload):
    with pytest.raises(InvalidNote):
        controller.create(payload, "")
    with pytest.raises(InvalidNote):
        controller.create(replace(payload, ciphertext=b"\x00" * 75_001), "alice")
    with pytest.raises(InvalidNote):
        controller.create(replace(payload, nonce=b"\x00" * 24), "alice")
    with pytest.raises(InvalidNote):
        controller.create(replace(payload, ephemeral_public_key=b"\x00" * 31), "alice")


@pytest.mark.parametrize("field", ["ciphertext", "nonce", "ephemeral_public_key"])
def test_create_rejects_non_bytes_payload(controller, storage, payload, field):
    as_text = getattr(payload, field).decode("latin-1")
    with pytest.raises(InvalidNote, match=f"{field} must be bytes"):
        controller.create(replace(payload, **{field: as_text}), "alice", note_id="text")
    assert storage.get_note("text") is None


def test_create_without_registered_key(controller, payload, storage):
    # send now, register later
    assert KeyDirectory(storage).lookup("nobody-yet") is None
    assert controller.create(payload, "nobody-yet").recipient_identity == "nobody-yet"


def test_duplicate_supplied_id(controller, payload):
    controller.create(payload, "alice", note_id="fixed")
    with pytest.raises(DuplicateId):
        controller.create(payload, "alice", note_id="fixed")


def test_generated_id_collision_is_retried(controller, payload, monkeypatch):
    ids = iter(["taken", "taken", "fresh"])
    monkeypatch.setattr("darknote_core.lifecycle.new_note_id", lambda: next(ids))
    controller.create(payload, "alice", note_id="taken")
    assert controller.create(payload, "alice").id == "fresh"


def test_generated_id_collision_gives_up(controller, payload, monkeypatch):
    monkeypatch.setattr("darknote_core.lifecycle.new_note_id", lambda: "taken")
    controller.create(payload, "alice")
    with pytest.raises(DuplicateId):
        controller.create(payload, "alice")


def test_fetch_does_not_count_reads(controller, payload):
    note = controller.create(payload, "alice", max_reads=1)
    for _ in range(3):
        assert controller.fetch(note.id).current_reads == 0


def test_two_read_note(controller, payload):
    note = controller.create(payload, "alice", self_destruct=True, max_reads=2)

    assert controller.record_successful_decrypt(note.id) == ReadReceipt(note.id, False, 1)
    assert controller.fetch(note.id) is not None

    last = controller.record_successful_decrypt(note.id)
    assert last == ReadReceipt(note.id, True, 2)
    assert last.to_dict() == {"deleted": True, "currentReads": 2}
    assert controller.fetch(note.id) is None

    with pytest.raises(NotFound):
        controller.record_successful_decrypt(note.id)


def test_burn_after_reading_is_caller_driven(controller, payload):
    note = controller.create(payload, "alice", self_destruct=True, max_reads=None)

    receipt = controller.record_successful_decrypt(note.id)
    assert (receipt.destroyed, receipt.current_reads) == (False, 1)
    assert controller.fetch(note.id) is not None

    assert controller.destroy(note.id) is True
    assert controller.fetch(note.id) is None
    assert controller.destroy(note.id) is False


def test_permanent_note_survives_reads(controller, payload):
    note = controller.create(payload, "alice", self_destruct=False, max_reads=None)
    for i in range(1, 6):
        assert controller.record_successful_decrypt(note.id).current_reads == i
    assert controller.fetch(note.id).current_reads == 5


def test_record_on_missing_note(controller):
    with pytest.raises(NotFound):
        controller.record_successful_decrypt("never-existed")


def test_fetch_heals_exhausted_note(controller, storage, payload):
    # a destroy that never happened, e.g. the process died after the increment
    storage.put_note(Note("stuck", payload, "alice", NOW, max_reads=1, current_reads=1))
    assert controller.fetch("stuck") is None
    assert storage.get_note("stuck") is None


def test_concurrent_decrypts_respect_max_reads(controller, storage, payload, monkeypatch):
    note = controller.create(payload, "alice", max_reads=50)

    deletes, increments = [], []
    real_delete, real_increment = storage.delete_note, storage.increment_reads

    def counting_delete(note_id):
        removed = real_delete(note_id)
        deletes.append(removed)
        return removed

    def counting_increment(note_id):
        count = real_increment(note_id)
        increments.append(count)
        return count

    monkeypatch.setattr(storage, "delete_note", counting_delete)
    monkeypatch.setattr(storage, "increment_reads", counting_increment)

    def read(_):
        try:
            return controller.record_successful_decrypt(note.id)
        except NotFound:
            return None

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(read, range(100)))

    receipts = [r for r in results if r is not None]
    live = sorted(r.current_reads for r in receipts if not r.destroyed)
    destroyed = [r for r in receipts if r.destroyed]

    assert live == list(range(1, 50))
    assert destroyed and all(r.current_reads == 50 for r in destroyed)
    assert sum(1 for c in increments if c is not None and c.incremented) == 50
    assert max(c.current_reads for c in increments if c is not None) == 50
    assert deletes.count(True) == 1
    assert storage.get_note(note.id) is None


def test_purge_expired(storage, payload):
    old = NoteLifecycleController(storage, clock=lambda: NOW - 31 * DAY_MS).create(payload, "alice")
    recent = NoteLifecycleController(storage, clock=lambda: NOW - 29 * DAY_MS).create(payload, "alice")

    controller = NoteLifecycleController(storage, clock=lambda: NOW)
    assert controller.purge_expired(30 * DAY_MS) == 1
    assert controller.fetch(old.id) is None
    assert controller.fetch(recent.id) is not None


def test_purge_default_age_from_env(storage, payload, monkeypatch):
    NoteLifecycleController(storage, clock=lambda: NOW - 3 * DAY_MS).create(payload, "alice")
    controller = NoteLifecycleController(storage, clock=lambda: NOW)

    assert controller.purge_expired() == 0  # 30 day default
    monkeypatch.setenv("DARKNOTE_NOTE_MAX_AGE_DAYS", "2")
    assert controller.purge_expired() == 1


def test_send_and_read_flow(storage):
    """Sender looks up the key, server stores ciphertext, recipient decrypts and reports."""
    keys = KeyDirectory(storage, clock=lambda: NOW)
    notes = NoteLifecycleController(storage, clock=lambda: NOW)
    bob = EncryptionKeypair.generate()
    keys.register("bob", bob.public_key)

    recipient_key = keys.lookup("bob").encryption_public_key
    note = notes.create(encrypt_message("the eagle has landed", recipient_key), "bob", max_reads=1)

    fetched = notes.fetch(note.id)
    assert decrypt_message(fetched.payload, bob.secret_key) == "the eagle has landed"
    assert notes.record_successful_decrypt(note.id).destroyed is True
    assert notes.fetch(note.id) is None


def test_lifecycle_is_logged(controller, payload, caplog):
    caplog.set_level("INFO", logger="darknote.lifecycle")
    note = controller.create(payload, "alice", max_reads=1)
    controller.record_successful_decrypt(note.id)
    assert "[NOTE CREATE]" in caplog.text
    assert "[NOTE DESTROY]" in caplog.text
    assert "meet at the usual place" not in caplog.text
